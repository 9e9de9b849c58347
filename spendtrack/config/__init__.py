"""Configuration package."""

from spendtrack.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    ScheduleVariant,
    Settings,
    StorageBackend,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "ScheduleVariant",
    "Settings",
    "StorageBackend",
    "get_settings",
    "validate_all_settings",
]
