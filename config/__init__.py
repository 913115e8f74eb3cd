"""Configuration management."""

from config.settings import FallbackSettings, get_settings

__all__ = [
    "FallbackSettings",
    "get_settings",
]
