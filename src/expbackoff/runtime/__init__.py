"""Runtime layer: backoff calculation, retry tracking, timers and logging."""

from .observability import configure_logging, get_logger
from .retry import (
    BackoffOptions,
    BackoffResult,
    BackoffTimer,
    BackoffTimerFactory,
    BackoffTimerOptions,
    RetryTracker,
    calculate_backoff,
    create_backoff_delay_function,
    create_backoff_timer,
    debug_backoff_delay,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "BackoffOptions",
    "BackoffResult",
    "BackoffTimer",
    "BackoffTimerFactory",
    "BackoffTimerOptions",
    "RetryTracker",
    "calculate_backoff",
    "create_backoff_delay_function",
    "create_backoff_timer",
    "debug_backoff_delay",
]
