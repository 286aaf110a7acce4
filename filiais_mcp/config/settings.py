"""Application settings and configuration."""

import re
from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PORT = 3000


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = DEFAULT_PORT
    DEBUG: bool = False

    # Upstream Modular API
    API_TOKEN: str = ""
    FILIAIS_API_URL: str = "https://sistemamodular.com.br/api/clicktrans/v4/filial"
    REQUEST_TIMEOUT: float = 30.0
    MAX_RETRIES: int = 1

    # SSE configuration
    EVENTS_PATH: str = "/events"
    MESSAGE_PATH: str = "/message"
    SSE_KEEPALIVE_INTERVAL: int = 15
    SSE_BUFFER_SIZE: int = 32

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("PORT", mode="before")
    @classmethod
    def _parse_port(cls, value: Any) -> Any:
        """Read the leading digits of PORT, falling back to the default."""
        if isinstance(value, str):
            match = re.match(r"\d+", value.strip())
            return int(match.group()) if match else DEFAULT_PORT
        return value

    @field_validator("MAX_RETRIES")
    @classmethod
    def _non_negative_retries(cls, value: int) -> int:
        return max(0, value)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
