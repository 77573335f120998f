"""Application configuration utilities.

This module centralizes environment configuration for the assessment engine:
which data store adapter to use, where the SQLite file lives, autosave timing
and the trend classification threshold.

Controls:
- Validate enum-like env values.
- Avoid crashing on missing or malformed env; provide safe defaults for dev.

Environment variables:
- DATA_PROVIDER: 'memory' (default) or 'sqlite'
- DB_PATH: Optional absolute/relative path to the sqlite database. If not
  provided, a local file next to the backend package is used.
- CORS_ORIGINS: Comma separated list of allowed origins.
- AUTOSAVE_DEBOUNCE_MS: Debounce window for wizard autosave (default 500).
- TREND_THRESHOLD: Minimum absolute score change counted as a trend (default 0.3).
- LOG_LEVEL: Root log level (default INFO).
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional
from pydantic import BaseModel, Field, ValidationError


_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseModel):
    """Configuration settings loaded from environment with safe defaults."""
    data_provider: Literal["memory", "sqlite"] = Field(
        default="memory", description="Data store adapter for assessments and catalog."
    )
    db_path: Optional[str] = Field(
        default=None, description="SQLite DB path (used when DATA_PROVIDER=sqlite)."
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Allowed CORS origins.",
    )
    autosave_debounce_ms: int = Field(
        default=500, ge=0, description="Debounce window for draft autosave in milliseconds."
    )
    trend_threshold: float = Field(
        default=0.3, ge=0, description="Score delta above which a competency counts as improving/declining."
    )
    log_level: str = Field(default="INFO", description="Root log level.")


def _env_number(name: str, default: float, cast=float):
    """Parse a non-negative number from the environment, falling back to `default`."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return cast(default)
    try:
        value = cast(raw)
    except ValueError:
        return cast(default)
    return value if value >= 0 else cast(default)


def _default_db_path() -> str:
    """Resolve the default SQLite file path under the backend workspace."""
    return str(Path(__file__).resolve().parents[2] / "assessments.db")


def load_settings() -> Settings:
    """Load settings from environment with robust defaults and validation.

    Returns:
        Settings: Validated settings object.

    Raises:
        ValidationError: If environment values are invalid.
    """
    data_provider = os.getenv("DATA_PROVIDER", "memory").strip().lower()
    if data_provider not in {"memory", "sqlite"}:
        data_provider = "memory"

    cors_origins_raw = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    cors_origins = [o.strip() for o in cors_origins_raw.split(",") if o.strip()]

    db_path_env = os.getenv("DB_PATH")
    db_path = db_path_env if db_path_env else _default_db_path()

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in _LOG_LEVELS:
        log_level = "INFO"

    try:
        settings = Settings(
            data_provider=data_provider,  # type: ignore[arg-type]
            db_path=db_path,
            cors_origins=cors_origins,
            autosave_debounce_ms=_env_number("AUTOSAVE_DEBOUNCE_MS", 500, int),
            trend_threshold=_env_number("TREND_THRESHOLD", 0.3),
            log_level=log_level,
        )
    except ValidationError as ve:
        # Keep error generic to avoid leaking values
        raise ve
    return settings


# Singleton-style accessor
_settings: Optional[Settings] = None

# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Get cached application settings."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings

# PUBLIC_INTERFACE
def reset_settings_cache() -> None:
    """Reset the cached settings.

    This is primarily intended for tests to ensure that changes to environment
    variables (e.g., DATA_PROVIDER, DB_PATH) take effect on subsequent calls
    to get_settings().
    """
    global _settings
    _settings = None
