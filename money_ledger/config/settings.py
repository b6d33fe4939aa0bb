"""
Configuration Management for Money Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see where the ledger keeps its data and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Snapshot and audit log persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="file",
        pattern="^(file|memory)$",
        description="Where snapshots are kept: 'file' or 'memory'"
    )
    data_dir: str = Field(
        default="./data",
        description="Directory holding the snapshot and audit files"
    )
    snapshot_filename: str = Field(
        default="ledger.json",
        description="Name of the whole-ledger snapshot file"
    )
    audit_filename: str = Field(
        default="audit.jsonl",
        description="Name of the append-only audit log file"
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a failed file write is attempted"
    )

    @field_validator('snapshot_filename', 'audit_filename')
    @classmethod
    def validate_plain_filename(cls, v: str) -> str:
        """File names must not smuggle in a directory."""
        if Path(v).name != v:
            raise ValueError(f"Expected a bare file name, got: {v}")
        return v

    @property
    def snapshot_path(self) -> Path:
        return Path(self.data_dir) / self.snapshot_filename

    @property
    def audit_path(self) -> Path:
        return Path(self.data_dir) / self.audit_filename


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

    # Ledger defaults
    default_account_name: str = Field(
        default="Default Bank Account",
        min_length=1,
        description="Name given to the settlement account of a fresh ledger"
    )
    currency_code: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
        description="ISO code shown next to amounts (single currency only)"
    )

    # Reports
    recent_activity_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many account entries the dashboard shows"
    )
    export_filename_prefix: str = Field(
        default="ledger_export",
        min_length=1,
        description="Prefix of exported snapshot file names"
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
    def storage(self) -> StorageSettings:
        return StorageSettings()

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

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" entry for each section that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
