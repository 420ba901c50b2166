"""Configuration management for Task Router."""

import os

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream credentials (written by the init endpoint)
    crypto_key: str = ""
    crypto_iv: str = ""
    bx_link: str = ""  # encrypted, base64

    # File settings are read from and the init endpoint writes to
    env_file_path: str = ".env"

    # Routing (empty = config/routing.yaml at project root)
    routing_config_path: str = ""

    # Upstream HTTP
    upstream_timeout_seconds: float = 30.0
    directory_page_size: int = 50

    # App
    log_level: str = "INFO"
    env: str = "development"

    @property
    def credentials_configured(self) -> bool:
        """Whether init has been run and all three values are present."""
        return bool(self.crypto_key and self.crypto_iv and self.bx_link)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings(_env_file=os.getenv("ENV_FILE_PATH", ".env"))
