"""Settings and configuration management."""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_LOG_FORMATS = ("text", "json")


class Settings(BaseSettings):
    """Library settings.

    Priority chain: init kwargs > env vars (CACHEABLE_*) > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="CACHEABLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend
    default_backend: str = Field(
        "memory",
        description="Name of the backend created on first use (e.g. 'memory')",
    )

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("text", description="Log format: 'text' or 'json'")

    @field_validator("default_backend")
    @classmethod
    def _validate_default_backend(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("default_backend must not be empty")
        return value

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in _LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(_LOG_FORMATS)}")
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
