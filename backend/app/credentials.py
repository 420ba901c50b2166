"""Upstream endpoint credentials: bootstrap and process-wide decryption."""

import logging
from functools import lru_cache
from pathlib import Path

from dotenv import set_key

from .config import get_settings
from .crypto import KeyMaterial, decrypt_text, encrypt_text, generate_key_and_iv
from .errors import ConfigError

logger = logging.getLogger(__name__)


@lru_cache
def get_upstream_endpoint() -> str:
    """Decrypt the stored webhook endpoint once per process.

    Raises:
        ConfigError: If init has not been run or the stored values are invalid
    """
    settings = get_settings()
    if not settings.credentials_configured:
        raise ConfigError("Upstream credentials are not configured; call init first")
    return decrypt_text(settings.bx_link, settings.crypto_key, settings.crypto_iv)


def reset_credentials_cache() -> None:
    """Drop cached settings and endpoint so the next call rereads the env file."""
    get_settings.cache_clear()
    get_upstream_endpoint.cache_clear()


def initialize_credentials(bx_link: str, env_path: Path) -> KeyMaterial:
    """Encrypt a new webhook endpoint and persist it with fresh key material.

    Writes CRYPTO_KEY, CRYPTO_IV and BX_LINK into the env file, keeping any
    other lines, then resets the cached settings.

    Args:
        bx_link: Plaintext incoming-webhook base URL
        env_path: Env file to update (created if missing)

    Returns:
        The generated key material
    """
    material = generate_key_and_iv()
    encrypted = encrypt_text(bx_link, material.crypto_key, material.crypto_iv)

    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.touch(exist_ok=True)
    for key, value in (
        ("CRYPTO_KEY", material.crypto_key),
        ("CRYPTO_IV", material.crypto_iv),
        ("BX_LINK", encrypted),
    ):
        set_key(str(env_path), key, value, quote_mode="never")

    reset_credentials_cache()
    logger.info(f"Stored encrypted upstream endpoint in {env_path}")
    return material
