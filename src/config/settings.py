"""
Configuration Management for Personal Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which backend the store talks to and
ensures required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.records import CollectionKind


class StoreSettings(BaseSettings):
    """Document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORE_",
        extra="ignore"
    )

    backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Key-value backend the store persists to"
    )

    # Storage keys, one per collection
    transactions_key: str = Field(default="@transactions")
    loans_key: str = Field(default="@loans")
    local_institutions_key: str = Field(default="@local_institutions")
    institutional_banks_key: str = Field(default="@institutional_banks")
    audit_log_key: str = Field(
        default="@audit_log",
        description="Key for the persisted audit trail"
    )
    audit_log_max_events: int = Field(
        default=1000,
        ge=10,
        description="Oldest audit events are dropped beyond this many"
    )

    quarantine_malformed: bool = Field(
        default=True,
        description="Copy unreadable stored values to a side key before resetting them"
    )
    serialize_writes: bool = Field(
        default=False,
        description="Run overlapping operations on one collection one at a time"
    )

    def key_for(self, kind: CollectionKind) -> str:
        """Storage key holding the collection of `kind`."""
        return {
            CollectionKind.TRANSACTION: self.transactions_key,
            CollectionKind.LOAN: self.loans_key,
            CollectionKind.LOCAL_INSTITUTION: self.local_institutions_key,
            CollectionKind.INSTITUTIONAL_BANK: self.institutional_banks_key,
        }[CollectionKind(kind)]


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets backend configuration."""

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
    store_sheet_name: str = Field(
        default="KeyValueStore",
        description="Name of the worksheet holding one row per storage key"
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
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()

