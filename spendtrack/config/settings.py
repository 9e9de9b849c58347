"""
Configuration Management for Spendtrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The installment due-date convention is configuration, not code:
one ledger instance always applies exactly one variant.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScheduleVariant(str, Enum):
    """
    Due-date convention for installment plans.

    FIRST_DUE_NEXT_MONTH (variant A): installment i is due purchase date + i months.
    FIRST_DUE_ON_PURCHASE (variant B): installment i is due purchase date + (i - 1)
    months, and installment 1 is created already paid.
    """
    FIRST_DUE_NEXT_MONTH = "A"
    FIRST_DUE_ON_PURCHASE = "B"


class StorageBackend(str, Enum):
    """Which document store implementation to wire up."""
    MEMORY = "memory"
    GOOGLE_SHEETS = "google_sheets"


class LedgerSettings(BaseSettings):
    """Expense and installment ledger behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    schedule_variant: ScheduleVariant = Field(
        default=ScheduleVariant.FIRST_DUE_NEXT_MONTH,
        description="Installment due-date convention (A or B)"
    )
    default_card_id: str = Field(
        default="default_credit",
        min_length=1,
        description="Card key used for installment plans with no card selected"
    )
    default_category: str = Field(
        default="other",
        description="Category applied when an expense has none"
    )
    default_expense_type: str = Field(
        default="daily",
        description="Expense type applied when an expense has none"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
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
    documents_sheet_name: str = Field(
        default="Documents",
        description="Name of the worksheet holding every stored document"
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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    storage_backend: StorageBackend = Field(
        default=StorageBackend.MEMORY,
        description="Document store implementation"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )
    persist_audit_events: bool = Field(
        default=False,
        description="Also append audit events to the user's auditLog collection"
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

    # Loaded lazily so a memory-backed setup never needs Sheets credentials

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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
    Google Sheets is only checked when it is the configured backend.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)

    try:
        app = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)
        return results

    if app.storage_backend == StorageBackend.GOOGLE_SHEETS:
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
