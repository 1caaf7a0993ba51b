"""Configuration package."""

from moneystore.config.settings import (
    LoggingSettings,
    Settings,
    StoreSettings,
    get_settings,
)

__all__ = [
    "LoggingSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
]
