"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Function to get settings (for dependency injection)
    Settings: Settings class (for building explicit instances in tests)
    configure_logging: structlog/stdlib logging setup
"""

from config.settings import settings, get_settings, Settings
from config.log_setup import configure_logging

__all__ = [
    # Settings
    "settings",
    "get_settings",
    "Settings",

    # Logging
    "configure_logging",
]
