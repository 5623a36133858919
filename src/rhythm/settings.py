"""Settings for rhythm.

Manifesto:
    The scheduler has very few knobs, but hosts still need to turn them
    without code changes: disable metrics in production, route callback
    faults into their log pipeline, or make the idle sleep shorter in tests.

    - **Pydantic validation:** Type-checked at startup, not at first tick
    - **Environment-driven:** ``RHYTHM_*`` env vars and an optional ``.env``
    - **Sensible defaults:** metrics on, 10 ms late threshold, 100 ms idle sleep

Examples:
    >>> from rhythm.settings import get_settings
    >>> settings = get_settings()
    >>> settings.late_threshold_ms
    10

Tags:
    settings, configuration, pydantic, environment, rhythm

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from datetime import timedelta
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class RhythmSettings(BaseSettings):
    """Scheduler configuration.

    All fields can be set via ``RHYTHM_*`` environment variables (e.g.
    ``RHYTHM_METRICS_ENABLED=false``) or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="RHYTHM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Metrics ──────────────────────────────────────────────────
    metrics_enabled: bool = Field(default=True, description="Sample every callback invocation")
    late_threshold_ms: int = Field(default=10, ge=0, description="Start delay that counts as late")

    # ── Loop ─────────────────────────────────────────────────────
    idle_sleep_ms: int = Field(default=100, ge=0, description="Sleep before loop() exits on an empty registry")

    # ── Diagnostics ──────────────────────────────────────────────
    diagnostic_sink: Literal["stderr", "log"] = Field(default="stderr")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")

    @field_validator("log_level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}, got '{v}'"
            )
        return level

    # ── Derived properties ───────────────────────────────────────

    @property
    def late_threshold(self) -> timedelta:
        return timedelta(milliseconds=self.late_threshold_ms)

    @property
    def idle_sleep(self) -> timedelta:
        return timedelta(milliseconds=self.idle_sleep_ms)


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, RhythmSettings] = {}


def get_settings(*, _force_reload: bool = False) -> RhythmSettings:
    """Load, validate, and cache a :class:`RhythmSettings` instance.

    Raises:
        ConfigError: if any environment value fails validation
    """
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    try:
        settings = RhythmSettings()
    except ValidationError as e:
        raise ConfigError(f"Invalid rhythm settings: {e}", cause=e) from e

    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "RhythmSettings",
    "get_settings",
    "clear_settings_cache",
]
