"""
Configuration Management for LifeSync

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage names, debounce timing and remote endpoints are the only knobs
the sync engine has, and all of them are validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncSettings(BaseSettings):
    """Local slot and sync engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LIFESYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    storage_key: str = Field(
        default="lifeos",
        min_length=1,
        description="Key of the single local storage slot"
    )
    schema_version: str = Field(
        default="2.0.0",
        description="Payload shape version written into every envelope"
    )
    debounce_ms: int = Field(
        default=1000,
        ge=0,
        le=60000,
        description="Window in which rapid saves are coalesced into one remote write"
    )
    data_dir: str = Field(
        default=".lifesync",
        description="Directory holding the local storage slot"
    )
    local_quota_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Maximum size of the local record (device storage quota)"
    )
    default_max_backups: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Backups kept when the user has not chosen a limit"
    )

    @field_validator('storage_key')
    @classmethod
    def validate_storage_key(cls, v: str) -> str:
        """Storage key becomes a file name, so path separators are not allowed."""
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"Invalid storage key: {v!r}")
        return v

    @property
    def debounce_seconds(self) -> float:
        """Debounce window in seconds."""
        return self.debounce_ms / 1000.0

    @property
    def data_path(self) -> Path:
        """Local data directory as a Path."""
        return Path(self.data_dir).expanduser()


class DriveSettings(BaseSettings):
    """Google Drive remote storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DRIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Names inside the user's Drive
    folder_name: str = Field(
        default="LifeOS",
        description="Name of the app folder in the user's Drive"
    )
    file_name: str = Field(
        default="lifeos.json",
        description="Name of the main data file inside the app folder"
    )
    backups_folder_name: str = Field(
        default="Backups",
        description="Subfolder holding timestamped backups"
    )
    backup_prefix: str = Field(
        default="backup",
        description="Default prefix of backup file names"
    )

    # API endpoints
    api_base: str = Field(
        default="https://www.googleapis.com/drive/v3",
        description="Drive metadata API base URL"
    )
    upload_api_base: str = Field(
        default="https://www.googleapis.com/upload/drive/v3",
        description="Drive upload API base URL"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout applied to every Drive HTTP request"
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

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def drive(self) -> DriveSettings:
        return DriveSettings()


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

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the ones that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("sync", "drive"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
