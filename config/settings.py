"""
Cache fallback settings loaded from environment variables.

Uses Pydantic Settings for type-safe configuration with validation.
All settings can be overridden via CACHE_FALLBACK_* environment variables
or a .env file.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.common.logging.config import configure_logging

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class FallbackSettings(BaseSettings):
    """
    Disk fallback configuration.

    Example:
        CACHE_FALLBACK_DIRECTORY=/var/cache/rates
        CACHE_FALLBACK_LOCK_EXPIRY_MINUTES=5
        CACHE_FALLBACK_KEEPER_FAILURE_POLICY=rethrow
    """

    model_config = SettingsConfigDict(
        env_prefix="CACHE_FALLBACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    directory: Path = Field(
        default=Path("data/cache_fallback"),
        description="Directory holding one fallback file (and lock marker) per cache key",
    )
    lock_expiry_minutes: int = Field(
        default=10,
        ge=1,
        le=1440,  # Max 24 hours
        description="Age in minutes after which an abandoned lock marker is reclaimed",
    )
    keeper_failure_policy: Literal["log", "rethrow"] = Field(
        default="log",
        description="On failure to write a fallback value: log it, or fail the load",
    )

    # Logging Configuration
    service_name: str = Field(
        default="cache_fallback",
        description="Service name written into every JSON log record",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}")
        return normalized

    def setup_logging(self) -> logging.Logger:
        """
        Configure JSON logging for the service using these settings.

        Example:
            >>> settings = get_settings()
            >>> settings.setup_logging()
            >>> decorator = LoaderWithDiskFallbackDecorator.from_settings(settings, naming, marshaller)
        """
        return configure_logging(service_name=self.service_name, log_level=self.log_level)


@lru_cache
def get_settings() -> FallbackSettings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.

    Example:
        >>> settings = get_settings()
        >>> settings.lock_expiry_minutes
        10
    """
    return FallbackSettings()
