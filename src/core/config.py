"""Application configuration and .env loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized runtime configuration."""

    registry_db_path: str = Field(
        default="data/registry/registry.sqlite", validation_alias="REGISTRY_DB_PATH"
    )
    registry_busy_timeout: float = Field(
        default=5.0, ge=0, validation_alias="REGISTRY_BUSY_TIMEOUT"
    )

    transaction_max_attempts: int = Field(
        default=3, ge=1, validation_alias="TRANSACTION_MAX_ATTEMPTS"
    )
    transaction_retry_max_wait: float = Field(
        default=2.0, ge=0, validation_alias="TRANSACTION_RETRY_MAX_WAIT"
    )

    whitelists_path: str | None = Field(default=None, validation_alias="WHITELISTS_PATH")
    default_dataset_name: str = Field(
        default="online", validation_alias="DEFAULT_DATASET_NAME"
    )

    log_level: str = Field(default="WARNING", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once from .env/environment."""
    return Settings()


__all__ = ["Settings", "get_settings"]
