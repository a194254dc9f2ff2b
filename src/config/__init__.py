"""Configuration package."""

from src.config.settings import (
    GoogleSheetsSettings,
    Settings,
    StoreSettings,
    get_settings,
)

__all__ = [
    "GoogleSheetsSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
]
