"""Configuration package."""

from finance_core.config.settings import (
    DocumentStoreSettings,
    RelationalStoreSettings,
    Settings,
    StoreSelectionSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DocumentStoreSettings",
    "RelationalStoreSettings",
    "Settings",
    "StoreSelectionSettings",
    "get_settings",
    "validate_all_settings",
]
