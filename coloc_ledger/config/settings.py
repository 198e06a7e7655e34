"""
Configuration Management for Colocation Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Secrets (the month reopening passphrase, notification credentials) are
injected from the environment and never appear as literals in the code.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Bookkeeping rules and the reopening secret."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_ignore_empty=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    reopen_passphrase: Optional[SecretStr] = Field(
        default=None,
        description="Passphrase required to reopen a closed month"
    )
    amount_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        gt=0,
        description="Allocations are accepted when off by less than this"
    )
    pool_account_name: str = Field(
        default="Caisse commune",
        min_length=1,
        description="Counterparty name used for the shared pool in settlements"
    )
    savings_account_name: str = Field(
        default="Épargne",
        min_length=1,
        description="Counterparty name used for the savings pool in settlements"
    )
    currency_symbol: str = Field(
        default="€",
        description="Symbol used when rendering amounts"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )
    data_sheet_name: str = Field(
        default="LedgerData",
        description="Worksheet holding the months, members and settings collections"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class EmailJSSettings(BaseSettings):
    """EmailJS notification service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EMAILJS_",
        env_ignore_empty=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    service_id: str = Field(
        ...,
        description="EmailJS service ID"
    )
    template_id: str = Field(
        ...,
        description="EmailJS template ID"
    )
    public_key: str = Field(
        ...,
        description="EmailJS public key (user_id)"
    )
    private_key: Optional[SecretStr] = Field(
        default=None,
        description="EmailJS private key (accessToken), if strict mode is enabled"
    )
    api_url: str = Field(
        default="https://api.emailjs.com/api/v1.0/email/send",
        description="EmailJS REST endpoint"
    )
    timeout_seconds: int = Field(
        default=15,
        ge=1,
        le=120,
        description="HTTP timeout per delivery attempt"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
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
        description="Minimum level for local structured logs"
    )
    storage_backend: Literal["memory", "google_sheets"] = Field(
        default="google_sheets",
        description="Where months, members and settings are persisted"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def emailjs(self) -> EmailJSSettings:
        return EmailJSSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "google_sheets", "emailjs", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    # Closing works without it, reopening does not
    try:
        results["reopen_passphrase"] = settings.ledger.reopen_passphrase is not None
    except Exception:
        results["reopen_passphrase"] = False

    return results
