"""Error classification for retry decisions.

Maps arbitrary exceptions onto a small set of error codes so callers can
decide whether a failure is transient. Nothing here is applied by default:
the retry tracker retries every error unless a predicate says otherwise.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache


class ErrorCode(StrEnum):
    """Standard error codes for failed operations."""
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    INVALID_PARAMS = "INVALID_PARAMS"
    PARSE_ERROR = "PARSE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    UNKNOWN = "UNKNOWN"


# Transient errors that may succeed on retry
DEFAULT_RETRYABLE: frozenset[ErrorCode] = frozenset({
    ErrorCode.RATE_LIMITED,
    ErrorCode.TIMEOUT,
    ErrorCode.NETWORK_ERROR,
    ErrorCode.EXTERNAL_SERVICE_ERROR,
})

# Flattened pattern -> code mapping, checked in insertion order
_PATTERN_CODES: dict[str, ErrorCode] = {
    "timeout": ErrorCode.TIMEOUT,
    "timedout": ErrorCode.TIMEOUT,
    "connection": ErrorCode.NETWORK_ERROR,
    "network": ErrorCode.NETWORK_ERROR,
    "rate": ErrorCode.RATE_LIMITED,
    "throttl": ErrorCode.RATE_LIMITED,
    "permission": ErrorCode.PERMISSION_DENIED,
    "forbidden": ErrorCode.PERMISSION_DENIED,
    "unauthorized": ErrorCode.PERMISSION_DENIED,
    "parse": ErrorCode.PARSE_ERROR,
    "json": ErrorCode.PARSE_ERROR,
    "decode": ErrorCode.PARSE_ERROR,
    "validation": ErrorCode.INVALID_PARAMS,
    "value": ErrorCode.INVALID_PARAMS,
    "notfound": ErrorCode.NOT_FOUND,
}
_PATTERN_KEYS = tuple(_PATTERN_CODES.keys())


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorCode:
    """Cached classification by exception signature."""
    haystack = exc_key.lower().replace(" ", "").replace("_", "")
    for pattern in _PATTERN_KEYS:
        if pattern in haystack:
            return _PATTERN_CODES[pattern]
    return ErrorCode.UNKNOWN


def classify_status(status: int) -> ErrorCode | None:
    """Map an HTTP-style status code to an error code.

    429 and 5xx are transient; other 4xx are caller errors. Returns None for
    anything outside 400-599.
    """
    match status:
        case 429: return ErrorCode.RATE_LIMITED
        case 408 | 504: return ErrorCode.TIMEOUT
        case 401 | 403: return ErrorCode.PERMISSION_DENIED
        case 404: return ErrorCode.NOT_FOUND
        case s if 500 <= s < 600: return ErrorCode.EXTERNAL_SERVICE_ERROR
        case s if 400 <= s < 500: return ErrorCode.INVALID_PARAMS
        case _: return None


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map exception to error code.

    Checks a ``status`` or ``status_code`` attribute first (HTTP client
    errors), then built-in transient types, then pattern-matches the
    exception's type name and message.
    """
    for attr in ("status", "status_code"):
        status = getattr(exc, attr, None)
        if isinstance(status, int) and not isinstance(status, bool):
            if (code := classify_status(status)) is not None:
                return code
    if isinstance(exc, TimeoutError):
        return ErrorCode.TIMEOUT
    if isinstance(exc, ConnectionError):
        return ErrorCode.NETWORK_ERROR
    return _classify_cached(f"{type(exc).__name__} {exc}")


def is_retryable(exc: BaseException, codes: frozenset[ErrorCode] = DEFAULT_RETRYABLE) -> bool:
    """Whether the exception classifies into one of ``codes``."""
    return classify_exception(exc) in codes
