"""Stateful retry tracker around the backoff calculator.

Counts attempts, computes the next delay and suspends the caller for it.
Whether to retry at all is decided by two pluggable predicates; both default
to "always". Errors from the retried operation are never touched here.

Example:
    >>> tracker = RetryTracker(
    ...     {"base_delay": 500, "max_delay": 10_000, "jitter_factor": 0.25},
    ...     can_retry=limit_attempts(5),
    ...     should_retry=retry_on_codes(DEFAULT_RETRYABLE),
    ... )
    >>> while True:
    ...     try:
    ...         return await risky_operation()
    ...     except Exception as e:
    ...         if not (tracker.can_retry() and tracker.should_retry(e)):
    ...             raise
    ...         await tracker.wait_for_next_retry()
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from typing import Callable

from expbackoff.runtime.observability import get_logger

from .backoff import BackoffOptions, BackoffResult, RandomSource, calculate_backoff

CanRetry = Callable[[int], bool]
ShouldRetry = Callable[[BaseException], bool]


def _always_can_retry(attempt_count: int) -> bool:
    return True


def _always_should_retry(error: BaseException) -> bool:
    return True


class RetryTracker:
    """Attempt counter with backoff waits and pluggable retry predicates.

    Not safe for concurrent use: one tracker serves one sequential retry loop.
    Call reset() before reusing it for an unrelated operation.

    Args:
        options: Backoff options or mapping (default: from settings)
        can_retry: Predicate on the current attempt count (default: always True)
        should_retry: Predicate on the failure (default: always True)
        rng: Randomness source passed to the calculator
    """

    __slots__ = ("_attempt_count", "_options", "_can_retry", "_should_retry", "_rng")

    def __init__(
        self,
        options: BackoffOptions | Mapping[str, object] | None = None,
        *,
        can_retry: CanRetry | None = None,
        should_retry: ShouldRetry | None = None,
        rng: RandomSource | None = None,
    ) -> None:
        self._attempt_count = 0
        self._options = _resolve_options(options)
        self._can_retry = can_retry or _always_can_retry
        self._should_retry = should_retry or _always_should_retry
        self._rng = rng

    @property
    def attempt_count(self) -> int:
        """Number of waits performed since construction or the last reset()."""
        return self._attempt_count

    @property
    def options(self) -> BackoffOptions:
        return self._options

    def can_retry(self) -> bool:
        """Whether another retry attempt is permitted."""
        return self._can_retry(self._attempt_count)

    def should_retry(self, error: BaseException) -> bool:
        """Whether this specific failure is worth retrying."""
        return self._should_retry(error)

    def _advance(self) -> BackoffResult:
        self._attempt_count += 1
        result = calculate_backoff(self._attempt_count, self._options, rng=self._rng)
        get_logger("expbackoff.tracker").debug("backoff wait", **result.to_dict())
        return result

    async def wait_for_next_retry(self) -> BackoffResult:
        """Increment the attempt count, then sleep for the computed delay.

        Returns:
            The BackoffResult that was waited on
        """
        result = self._advance()
        await asyncio.sleep(result.delay_seconds)
        return result

    def wait_for_next_retry_sync(self) -> BackoffResult:
        """Blocking variant of wait_for_next_retry() for threaded callers."""
        result = self._advance()
        time.sleep(result.delay_seconds)
        return result

    def preview_next_delay(self) -> BackoffResult:
        """Calculate the next delay without waiting or incrementing the count."""
        return calculate_backoff(self._attempt_count + 1, self._options, rng=self._rng)

    def reset(self) -> None:
        self._attempt_count = 0

    def __repr__(self) -> str:
        o = self._options
        return (f"RetryTracker(attempts={self._attempt_count}, base_delay={o.base_delay}, "
                f"max_delay={o.max_delay}, jitter_factor={o.jitter_factor})")


def _resolve_options(options: BackoffOptions | Mapping[str, object] | None) -> BackoffOptions:
    if isinstance(options, BackoffOptions):
        return options
    from expbackoff.foundation.config import get_settings
    return get_settings().backoff.to_options().merged(options)
