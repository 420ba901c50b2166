"""AES-256-CBC codec for the upstream webhook endpoint.

The endpoint is the only secret the router stores. It lives in the env file
as base64 text: the ciphertext is hex-encoded first and that hex form is then
re-encoded as base64 so it sits safely in a line-based config file. Key and
IV are hex strings (32 and 16 bytes once decoded).
"""

import base64
import binascii
import secrets
from dataclasses import dataclass

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import ConfigError

KEY_BYTES = 32
IV_BYTES = 16


@dataclass(frozen=True)
class KeyMaterial:
    """Hex-encoded key and IV pair produced during bootstrap."""

    crypto_key: str
    crypto_iv: str


def generate_key_and_iv() -> KeyMaterial:
    """Generate a fresh random key and IV, hex-encoded."""
    return KeyMaterial(
        crypto_key=secrets.token_bytes(KEY_BYTES).hex(),
        crypto_iv=secrets.token_bytes(IV_BYTES).hex(),
    )


def hex_to_base64(hex_text: str) -> str:
    """Re-encode hex ciphertext into its at-rest base64 form."""
    try:
        return base64.b64encode(bytes.fromhex(hex_text)).decode("ascii")
    except ValueError as e:
        raise ConfigError(f"Ciphertext is not valid hex: {e}") from e


def _cipher(key_hex: str, iv_hex: str) -> Cipher:
    try:
        key = bytes.fromhex(key_hex)
        iv = bytes.fromhex(iv_hex)
    except ValueError as e:
        raise ConfigError(f"Key material is not valid hex: {e}") from e

    if len(key) != KEY_BYTES or len(iv) != IV_BYTES:
        raise ConfigError(
            "Invalid key or IV length. AES-256-CBC requires a "
            f"{KEY_BYTES}-byte key and a {IV_BYTES}-byte IV."
        )
    return Cipher(algorithms.AES(key), modes.CBC(iv))


def encrypt_text(plaintext: str, key_hex: str, iv_hex: str) -> str:
    """Encrypt plaintext and return the base64 storage form.

    Args:
        plaintext: Text to encrypt
        key_hex: 32-byte key, hex-encoded
        iv_hex: 16-byte IV, hex-encoded

    Returns:
        Ciphertext, hex-encoded and then re-encoded as base64

    Raises:
        ConfigError: If the key or IV is malformed
    """
    cipher = _cipher(key_hex, iv_hex)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = cipher.encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return hex_to_base64(ciphertext.hex())


def decrypt_text(ciphertext_b64: str, key_hex: str, iv_hex: str) -> str:
    """Decrypt a base64 storage-form ciphertext back to plaintext.

    Raises:
        ConfigError: If the key or IV is malformed, or the ciphertext does not
            decrypt under them
    """
    cipher = _cipher(key_hex, iv_hex)

    try:
        ciphertext = base64.b64decode(ciphertext_b64, validate=True)
    except binascii.Error as e:
        raise ConfigError(f"Ciphertext is not valid base64: {e}") from e

    try:
        decryptor = cipher.decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plain = unpadder.update(padded) + unpadder.finalize()
        return plain.decode("utf-8")
    except ValueError as e:
        # Wrong key or corrupt ciphertext
        raise ConfigError(f"Failed to decrypt ciphertext: {e}") from e
