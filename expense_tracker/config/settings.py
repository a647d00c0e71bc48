"""
Configuration Management for Expense Tracker

Three groups of settings read from the environment (and .env):
TELEGRAM_* for the bot, GOOGLE_SHEETS_* for the ledger document and
unprefixed app settings for budget, access control and logging.

DESIGN DECISION: A missing bot token, spreadsheet id or credentials
path is a fatal startup error; everything else has a default.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelegramSettings(BaseSettings):
    """Telegram bot configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    bot_token: str = Field(
        ...,
        min_length=1,
        description="Bot token issued by BotFather"
    )
    bot_username: Optional[str] = Field(
        default=None,
        description="Bot username (without @), informational"
    )


class GoogleSheetsSettings(BaseSettings):
    """Where the ledger lives and how to authenticate to it."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file (JSON)"
    )
    spreadsheet_id: str = Field(
        ...,
        min_length=1,
        description="Spreadsheet id from the document URL"
    )

    # Default tab checked at startup
    sheet_name: str = Field(
        default="Expenses",
        description="Name of the default sheet"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns: it may be mounted after import."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the bot."
            )
        return v


class AppSettings(BaseSettings):
    """
    Budget, access control and logging knobs (no prefix).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    # Budget
    target_expense: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Default monthly target written to new ledgers"
    )
    reset_target_expense: Decimal = Field(
        default=Decimal("150000"),
        ge=0,
        description="Target written when a ledger is reset from chat"
    )
    currency_format_pattern: str = Field(
        default='"Rs"#,##0.00',
        description="Number format pattern for summary and breakdown cells"
    )

    # Access control
    admin_user_id: Optional[int] = Field(
        default=None,
        description="Telegram user id that is always approved"
    )
    approved_users_file: str = Field(
        default="approved_users.json",
        description="Where the approved user ids are persisted"
    )

    # Pending category selections
    pending_selection_ttl_seconds: int = Field(
        default=86400,
        ge=60,
        description="How long an expense waits for its category"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Entry point to every settings group.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def telegram(self) -> TelegramSettings:
        return TelegramSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings; get_settings.cache_clear() forces a reload.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load every settings group.

    Returns a dict of {setting_name: is_valid}, plus {setting_name}_error
    entries describing failures. Used by the startup check.
    """
    results = {}

    settings = get_settings()

    for name in ("telegram", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
