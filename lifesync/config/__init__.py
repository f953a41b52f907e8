"""Configuration package."""

from lifesync.config.settings import (
    DriveSettings,
    Settings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DriveSettings",
    "Settings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
