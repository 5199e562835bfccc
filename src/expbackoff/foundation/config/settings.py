"""Environment-based configuration using pydantic-settings.

Provides type-safe defaults for trackers, timer factories and logging,
loaded from environment variables and optional .env files.

Example:
    >>> from expbackoff.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.backoff.base_delay
    1000.0
    >>> settings.logging.level
    'INFO'

    # Or with environment variables:
    # EXPBACKOFF_BACKOFF_MAX_DELAY=30000
    # EXPBACKOFF_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from expbackoff.runtime.retry.backoff import BackoffOptions


class BackoffSettings(BaseSettings):
    """Default backoff parameters (milliseconds).

    Deliberately unconstrained: out-of-range values are passed through to
    the calculator exactly as given.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXPBACKOFF_BACKOFF_",
        extra="ignore",
    )

    base_delay: float = Field(default=1000.0, description="Delay for the first retry in ms")
    max_delay: float = Field(default=5000.0, description="Ceiling applied before jitter in ms")
    jitter_factor: float = Field(default=0.2, description="Jitter fraction, intended range 0-1")

    def to_options(self) -> BackoffOptions:
        from expbackoff.runtime.retry.backoff import BackoffOptions
        return BackoffOptions(base_delay=self.base_delay, max_delay=self.max_delay, jitter_factor=self.jitter_factor)


class TimerSettings(BaseSettings):
    """Defaults for backoff timers."""

    model_config = SettingsConfigDict(
        env_prefix="EXPBACKOFF_TIMER_",
        extra="ignore",
    )

    emit_delay: bool = False
    enable_debug_logs: bool = False


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPBACKOFF_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class ExpBackoffSettings(BaseSettings):
    """Root settings.

    Loads configuration from environment variables with EXPBACKOFF_ prefix.

    Example environment variables:
        EXPBACKOFF_DEBUG=true
        EXPBACKOFF_BACKOFF_BASE_DELAY=250
        EXPBACKOFF_TIMER_ENABLE_DEBUG_LOGS=true
        EXPBACKOFF_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="EXPBACKOFF_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Force DEBUG logging regardless of logging.level")

    backoff: BackoffSettings = Field(default_factory=BackoffSettings)
    timer: TimerSettings = Field(default_factory=TimerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> ExpBackoffSettings:
    """Get the global settings instance (cached)."""
    return ExpBackoffSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
