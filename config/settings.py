"""
Central configuration using Pydantic BaseSettings.

Every value has a working default so the client starts without a .env file.
Environment variables use the EASYTABLE_ prefix.

Usage:
    from config.settings import get_settings

    settings = get_settings()
    print(settings.api.url)

Lazy initialization: get_settings() creates the singleton on first call.
Tests can reset via get_settings.cache_clear().
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


# =============================================================================
# Nested Settings Groups
# =============================================================================


class ApiSettings(BaseSettings):
    """Backend REST API location."""

    model_config = {"env_prefix": "EASYTABLE_API_", "extra": "ignore"}

    url: str = "http://localhost:8080"


class StorageSettings(BaseSettings):
    """Client-local persistence for the session token and user."""

    model_config = {"env_prefix": "EASYTABLE_STORAGE_", "extra": "ignore"}

    enabled: bool = True
    path: str = ""  # Falls back to ~/.easytable/storage.json

    @property
    def resolved_path(self) -> Path:
        """Storage document location."""
        if self.path:
            return Path(self.path).expanduser()
        return Path.home() / ".easytable" / "storage.json"


class SessionSettings(BaseSettings):
    """Session countdown and navigation targets."""

    model_config = {"env_prefix": "EASYTABLE_SESSION_", "extra": "ignore"}

    tick_interval_seconds: float = Field(default=1.0, gt=0)
    expiry_warning_seconds: int = Field(default=60, ge=0)

    home_path: str = "/"
    login_path: str = "/auth/login"


class ReservationSettings(BaseSettings):
    """Reservation submission defaults."""

    model_config = {"env_prefix": "EASYTABLE_RESERVATION_", "extra": "ignore"}

    offset_minutes: int = Field(default=10, ge=0)


# =============================================================================
# Root Settings
# =============================================================================


class AppSettings(BaseSettings):
    """Root application settings composing all sub-settings."""

    model_config = {
        "env_prefix": "EASYTABLE_",
        "extra": "ignore",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    # Logging
    log_level: str = "WARNING"
    log_format: str = "text"
    log_file: str = ""

    # Nested groups (initialized separately to support env_prefix)
    api: ApiSettings = None  # type: ignore[assignment]
    storage: StorageSettings = None  # type: ignore[assignment]
    session: SessionSettings = None  # type: ignore[assignment]
    reservation: ReservationSettings = None  # type: ignore[assignment]

    @model_validator(mode="before")
    @classmethod
    def _init_nested(cls, values):
        """Initialize nested settings from environment."""
        if values.get("api") is None:
            values["api"] = ApiSettings()
        if values.get("storage") is None:
            values["storage"] = StorageSettings()
        if values.get("session") is None:
            values["session"] = SessionSettings()
        if values.get("reservation") is None:
            values["reservation"] = ReservationSettings()
        return values


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """
    Get the application settings singleton.

    Lazy-initialized on first call.
    Tests can reset via: get_settings.cache_clear()
    """
    return AppSettings()
