"""expbackoff - Exponential backoff delays with capping and jitter.

Computes how long to wait before retrying an operation that failed
transiently. The calculation is a pure function; a tracker and cancellable
timers build on it for retry loops.

Quick Start:
    >>> from expbackoff import calculate_backoff
    >>>
    >>> result = calculate_backoff(3)           # ~4000ms +/- 800ms
    >>> result.delay_ms, result.was_capped
    >>> print(result)
    Retry 3: 4213.7ms (raw: 4000ms, jitter: +214ms)

Retry Loops:
    >>> from expbackoff import RetryTracker, limit_attempts, retry_on_codes
    >>>
    >>> tracker = RetryTracker(can_retry=limit_attempts(5), should_retry=retry_on_codes())
    >>> while True:
    ...     try:
    ...         return await fetch()
    ...     except Exception as e:
    ...         if not (tracker.can_retry() and tracker.should_retry(e)):
    ...             raise
    ...         await tracker.wait_for_next_retry()

Timers:
    >>> from expbackoff import create_backoff_delay_function
    >>>
    >>> delay = create_backoff_delay_function({"base_delay": 250, "max_delay": 1000})
    >>> sub = delay(error, 2).subscribe(lambda _: resubscribe())
    >>> sub.cancel()  # guaranteed no callback
"""

from __future__ import annotations

__version__ = "0.1.0"

from .foundation import (
    DEFAULT_RETRYABLE,
    ErrorCode,
    ExpBackoffSettings,
    classify_exception,
    clear_settings_cache,
    get_settings,
    is_retryable,
)
from .runtime.observability import configure_from_settings, configure_logging, get_logger, log_context
from .runtime.retry import (
    BackoffOptions,
    BackoffResult,
    BackoffTimer,
    BackoffTimerFactory,
    BackoffTimerOptions,
    RandomSource,
    RetryTracker,
    Subscription,
    TimerState,
    all_of,
    any_of,
    calculate_backoff,
    create_backoff_delay_function,
    create_backoff_timer,
    debug_backoff_delay,
    limit_attempts,
    normalize_attempt,
    retry_on,
    retry_on_codes,
)

__all__ = [
    "__version__",
    # Calculation
    "BackoffOptions",
    "BackoffResult",
    "RandomSource",
    "calculate_backoff",
    "normalize_attempt",
    # Tracker & predicates
    "RetryTracker",
    "limit_attempts",
    "retry_on",
    "retry_on_codes",
    "any_of",
    "all_of",
    # Timers
    "BackoffTimer",
    "BackoffTimerFactory",
    "BackoffTimerOptions",
    "Subscription",
    "TimerState",
    "create_backoff_timer",
    "create_backoff_delay_function",
    "debug_backoff_delay",
    # Errors
    "ErrorCode",
    "DEFAULT_RETRYABLE",
    "classify_exception",
    "is_retryable",
    # Settings
    "ExpBackoffSettings",
    "get_settings",
    "clear_settings_cache",
    # Logging
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "log_context",
]
