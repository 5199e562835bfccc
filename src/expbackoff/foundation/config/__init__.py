"""Configuration management using pydantic-settings."""

from .settings import (
    BackoffSettings,
    ExpBackoffSettings,
    LoggingSettings,
    TimerSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "BackoffSettings",
    "ExpBackoffSettings",
    "LoggingSettings",
    "TimerSettings",
    "clear_settings_cache",
    "get_settings",
]
