"""Configuration package."""

from expense_tracker.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    TelegramSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "TelegramSettings",
    "get_settings",
    "validate_all_settings",
]
