"""Cancellable backoff timers for retry orchestration layers.

A BackoffTimer is a single delayed notification: it emits ``0`` once its
backoff delay has elapsed (optionally preceded by an immediate emission of
the delay itself) and then completes. It can be consumed three ways:

- ``timer.subscribe(on_next, on_complete=...)``: callback style, returns a
  Subscription whose cancel() guarantees the callbacks never fire
- ``async for value in timer``: async-iterator style; cancel the consuming task
- ``await timer.wait()``: plain sleep returning the BackoffResult

Example:
    >>> factory = BackoffTimerFactory({"base_delay": 1000, "max_delay": 5000, "jitter_factor": 0.2})
    >>> async for _ in factory.create(retry_count):
    ...     pass  # delay elapsed, retry now
    >>>
    >>> # Hand a delay function to any "retry with delay per attempt" layer
    >>> delay = create_backoff_delay_function({"base_delay": 250, "max_delay": 1000})
    >>> timer = delay(error, 3)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from enum import StrEnum
from typing import Callable

from pydantic import AliasChoices, Field

from expbackoff.runtime.observability import get_logger

from .backoff import BackoffOptions, BackoffResult, RandomSource, calculate_backoff


class BackoffTimerOptions(BackoffOptions):
    """Backoff options plus timer-only switches.

    Attributes:
        emit_delay: Emit the delay value immediately before waiting (default: False)
        enable_debug_logs: Log the calculation when a timer is created (default: False)
    """

    emit_delay: bool = Field(default=False, validation_alias=AliasChoices("emit_delay", "emitDelay"))
    enable_debug_logs: bool = Field(
        default=False,
        validation_alias=AliasChoices("enable_debug_logs", "enableDebugLogs"),
    )

    def backoff_options(self) -> BackoffOptions:
        return BackoffOptions(base_delay=self.base_delay, max_delay=self.max_delay, jitter_factor=self.jitter_factor)


class TimerState(StrEnum):
    """Subscription lifecycle states."""
    ACTIVE = "active"        # Waiting for the delay to elapse
    COMPLETED = "completed"  # Notification delivered
    CANCELLED = "cancelled"  # Cancelled before firing


class Subscription:
    """Handle to a scheduled timer notification."""

    __slots__ = ("_handle", "_state")

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._state = TimerState.ACTIVE

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def closed(self) -> bool:
        """Whether the subscription will deliver nothing more."""
        return self._state is not TimerState.ACTIVE

    @property
    def cancelled(self) -> bool:
        return self._state is TimerState.CANCELLED

    def cancel(self) -> bool:
        """Cancel the pending notification and release its timer.

        Returns:
            True if cancelled, False if it had already fired or been cancelled
        """
        if self._state is not TimerState.ACTIVE:
            return False
        self._state = TimerState.CANCELLED
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        return True

    def __repr__(self) -> str:
        return f"Subscription({self._state.value})"


class BackoffTimer:
    """Single delayed notification for one backoff calculation."""

    __slots__ = ("_result", "_emit_delay")

    def __init__(self, result: BackoffResult, *, emit_delay: bool = False) -> None:
        self._result = result
        self._emit_delay = emit_delay

    @property
    def result(self) -> BackoffResult:
        return self._result

    @property
    def delay_ms(self) -> float:
        return self._result.delay_ms

    @property
    def emit_delay(self) -> bool:
        return self._emit_delay

    def subscribe(
        self,
        on_next: Callable[[float], object],
        *,
        on_complete: Callable[[], object] | None = None,
    ) -> Subscription:
        """Schedule the notification on the running event loop.

        With ``emit_delay``, ``on_next(delay_ms)`` is called before this
        method returns. After the delay, ``on_next(0)`` then ``on_complete()``.

        Raises:
            RuntimeError: If called without a running event loop
        """
        loop = asyncio.get_running_loop()
        sub = Subscription()
        if self._emit_delay:
            on_next(self._result.delay_ms)

        def fire() -> None:
            if sub._state is not TimerState.ACTIVE:
                return
            sub._state, sub._handle = TimerState.COMPLETED, None
            on_next(0)
            if on_complete is not None:
                on_complete()

        sub._handle = loop.call_later(self._result.delay_seconds, fire)
        return sub

    async def wait(self) -> BackoffResult:
        """Sleep for the backoff delay and return the calculation."""
        await asyncio.sleep(self._result.delay_seconds)
        return self._result

    async def _emissions(self) -> AsyncIterator[float]:
        if self._emit_delay:
            yield self._result.delay_ms
        await asyncio.sleep(self._result.delay_seconds)
        yield 0

    def __aiter__(self) -> AsyncIterator[float]:
        return self._emissions()

    def __repr__(self) -> str:
        return f"BackoffTimer({self._result})"


class BackoffTimerFactory:
    """Creates BackoffTimers with shared default options.

    Args:
        options: Timer options or mapping (default: from settings)
        rng: Randomness source passed to the calculator

    Example:
        >>> factory = BackoffTimerFactory({"jitter_factor": 0, "enable_debug_logs": True})
        >>> timer = factory.create(3)
        >>> timer.delay_ms
        4000.0
    """

    __slots__ = ("_options", "_rng")

    def __init__(
        self,
        options: BackoffOptions | Mapping[str, object] | None = None,
        *,
        rng: RandomSource | None = None,
    ) -> None:
        self._options = _resolve_options(options)
        self._rng = rng

    @property
    def options(self) -> BackoffTimerOptions:
        return self._options

    def create(
        self,
        retry_count: object,
        overrides: BackoffOptions | Mapping[str, object] | None = None,
    ) -> BackoffTimer:
        """Calculate the backoff for ``retry_count`` and wrap it in a timer.

        Args:
            retry_count: 1-based retry attempt
            overrides: Per-call option overrides (only given keys apply)
        """
        opts = self._options.merged(overrides)
        result = calculate_backoff(retry_count, opts.backoff_options(), rng=self._rng)
        if opts.enable_debug_logs:
            get_logger("expbackoff.timer", level=logging.DEBUG).debug(
                "backoff timer created", description=str(result), **result.to_dict()
            )
        return BackoffTimer(result, emit_delay=opts.emit_delay)


def _resolve_options(options: BackoffOptions | Mapping[str, object] | None) -> BackoffTimerOptions:
    if isinstance(options, BackoffTimerOptions):
        return options
    from expbackoff.foundation.config import get_settings
    s = get_settings()
    defaults = BackoffTimerOptions(
        base_delay=s.backoff.base_delay,
        max_delay=s.backoff.max_delay,
        jitter_factor=s.backoff.jitter_factor,
        emit_delay=s.timer.emit_delay,
        enable_debug_logs=s.timer.enable_debug_logs,
    )
    return defaults.merged(options)


def create_backoff_timer(
    retry_count: object,
    options: BackoffOptions | Mapping[str, object] | None = None,
) -> BackoffTimer:
    """One-off timer without keeping a factory around."""
    return BackoffTimerFactory(options).create(retry_count)


def create_backoff_delay_function(
    options: BackoffOptions | Mapping[str, object] | None = None,
) -> Callable[[BaseException, int], BackoffTimer]:
    """Build a ``(error, retry_count) -> BackoffTimer`` callback.

    The error is ignored; classification belongs to the orchestration layer.
    """
    factory = BackoffTimerFactory(options)

    def delay(error: BaseException, retry_count: int) -> BackoffTimer:
        return factory.create(retry_count)

    return delay


debug_backoff_delay = create_backoff_delay_function(BackoffTimerOptions(
    base_delay=1000.0,
    max_delay=5000.0,
    jitter_factor=0.2,
    emit_delay=False,
    enable_debug_logs=True,
))
