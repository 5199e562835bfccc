"""Foundation layer: configuration and error classification."""

from .config import ExpBackoffSettings, clear_settings_cache, get_settings
from .errors import DEFAULT_RETRYABLE, ErrorCode, classify_exception, is_retryable

__all__ = [
    "ExpBackoffSettings",
    "clear_settings_cache",
    "get_settings",
    "DEFAULT_RETRYABLE",
    "ErrorCode",
    "classify_exception",
    "is_retryable",
]
