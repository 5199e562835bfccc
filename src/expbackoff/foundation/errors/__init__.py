"""Error classification for retry decisions.

- ErrorCode: Standard error codes for failed operations
- classify_exception/classify_status: Map failures onto error codes
- DEFAULT_RETRYABLE: Codes considered transient
"""

from .errors import DEFAULT_RETRYABLE, ErrorCode, classify_exception, classify_status, is_retryable

__all__ = ["DEFAULT_RETRYABLE", "ErrorCode", "classify_exception", "classify_status", "is_retryable"]
