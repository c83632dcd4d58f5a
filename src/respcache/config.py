"""
Configuration management using pydantic-settings.

Loads store configuration from environment variables and .env files.
Validates fields and provides typed access to settings.
"""

from __future__ import annotations

import math
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# 2 GB
MAX_ENTRY_SIZE = 2 * 1000 * 1000 * 1000

MEMORY_LOCATION = ":memory:"

JournalMode = Literal["WAL", "DELETE", "TRUNCATE", "PERSIST", "MEMORY", "OFF"]


class Settings(BaseSettings):
    """Store settings loaded from environment variables.

    Optional:
        CACHE_LOCATION: SQLite file path, or ":memory:"
        CACHE_MAX_COUNT: Row count that triggers eviction (unset = unbounded)
        CACHE_MAX_ENTRY_SIZE: Per-entry body cap in bytes
        CACHE_LOOSE: Skip input shape validation
        CACHE_JOURNAL_MODE: SQLite journal mode applied on connect
        LOG_LEVEL: Logging level
        LOG_FILE: JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    CACHE_LOCATION: str = Field(
        default=MEMORY_LOCATION,
        description="Path to the SQLite database, or :memory:",
    )
    CACHE_MAX_COUNT: int | None = Field(
        default=None, ge=0, description="Capacity bound triggering eviction"
    )
    CACHE_MAX_ENTRY_SIZE: int = Field(
        default=MAX_ENTRY_SIZE, ge=0, description="Per-entry byte cap"
    )
    CACHE_LOOSE: bool = Field(
        default=False, description="Skip shape validation of keys and values"
    )
    CACHE_JOURNAL_MODE: JournalMode = Field(
        default="WAL", description="SQLite journal mode"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON-lines log file")

    @field_validator("CACHE_JOURNAL_MODE", mode="before")
    @classmethod
    def normalize_journal_mode(cls, v: object) -> object:
        """Accept journal modes in any case."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("CACHE_LOCATION")
    @classmethod
    def validate_location(cls, v: str) -> str:
        """Reject an empty location, which SQLite would treat as a temp file."""
        if not v.strip():
            raise ValueError("CACHE_LOCATION must not be empty")
        return v

    @property
    def max_count(self) -> float:
        """Capacity bound, with unset mapped to infinity."""
        return math.inf if self.CACHE_MAX_COUNT is None else self.CACHE_MAX_COUNT

    def display(self) -> dict[str, str | int | bool | None]:
        """Return effective settings for display."""
        return {
            "CACHE_LOCATION": self.CACHE_LOCATION,
            "CACHE_MAX_COUNT": self.CACHE_MAX_COUNT,
            "CACHE_MAX_ENTRY_SIZE": self.CACHE_MAX_ENTRY_SIZE,
            "CACHE_LOOSE": self.CACHE_LOOSE,
            "CACHE_JOURNAL_MODE": self.CACHE_JOURNAL_MODE,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
