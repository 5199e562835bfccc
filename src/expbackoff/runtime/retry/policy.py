"""Predicate builders for RetryTracker hooks.

The tracker retries everything by default. These helpers build the two
predicates it accepts for callers that want a bounded or selective loop:

- ``can_retry``: called with the current attempt count
- ``should_retry``: called with the failure

Example:
    >>> tracker = RetryTracker(
    ...     can_retry=limit_attempts(3),
    ...     should_retry=any_of(retry_on(ConnectionError), retry_on_codes({ErrorCode.RATE_LIMITED})),
    ... )
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Callable, TypeVar

from expbackoff.foundation.errors import DEFAULT_RETRYABLE, ErrorCode, classify_exception

T = TypeVar("T")


def limit_attempts(max_attempts: int) -> Callable[[int], bool]:
    """Permit retries while fewer than ``max_attempts`` waits have happened."""
    def can_retry(attempt_count: int) -> bool:
        return attempt_count < max_attempts
    return can_retry


def retry_on(*exc_types: type[BaseException]) -> Callable[[BaseException], bool]:
    """Retry only failures that are instances of ``exc_types``."""
    def should_retry(error: BaseException) -> bool:
        return isinstance(error, exc_types)
    return should_retry


def retry_on_codes(codes: Iterable[ErrorCode | str] = DEFAULT_RETRYABLE) -> Callable[[BaseException], bool]:
    """Retry failures whose classify_exception() code is in ``codes``."""
    allowed = frozenset(ErrorCode(c) for c in codes)

    def should_retry(error: BaseException) -> bool:
        return classify_exception(error) in allowed
    return should_retry


def any_of(*predicates: Callable[[T], bool]) -> Callable[[T], bool]:
    return lambda value: any(p(value) for p in predicates)


def all_of(*predicates: Callable[[T], bool]) -> Callable[[T], bool]:
    return lambda value: all(p(value) for p in predicates)
