"""Exponential backoff for retry loops.

Provides the pure delay calculation plus two thin consumers of it:
a stateful tracker for hand-written retry loops and cancellable timers
for retry orchestration layers.

Example:
    >>> from expbackoff.runtime.retry import RetryTracker, calculate_backoff, limit_attempts
    >>>
    >>> calculate_backoff(3, {"jitter_factor": 0}).delay_ms
    4000.0
    >>>
    >>> tracker = RetryTracker(can_retry=limit_attempts(5))
    >>> await tracker.wait_for_next_retry()
"""

from .backoff import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_JITTER_FACTOR,
    DEFAULT_MAX_DELAY_MS,
    BackoffOptions,
    BackoffResult,
    RandomSource,
    calculate_backoff,
    normalize_attempt,
)
from .policy import all_of, any_of, limit_attempts, retry_on, retry_on_codes
from .timer import (
    BackoffTimer,
    BackoffTimerFactory,
    BackoffTimerOptions,
    Subscription,
    TimerState,
    create_backoff_delay_function,
    create_backoff_timer,
    debug_backoff_delay,
)
from .tracker import RetryTracker

__all__ = [
    # Calculation
    "BackoffOptions",
    "BackoffResult",
    "RandomSource",
    "calculate_backoff",
    "normalize_attempt",
    "DEFAULT_BASE_DELAY_MS",
    "DEFAULT_MAX_DELAY_MS",
    "DEFAULT_JITTER_FACTOR",
    # Tracker
    "RetryTracker",
    # Predicates
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
]
