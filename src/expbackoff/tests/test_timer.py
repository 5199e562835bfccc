"""Tests for backoff timers, the timer factory and delay functions."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable

import pytest

from expbackoff import (
    BackoffOptions,
    BackoffTimer,
    BackoffTimerFactory,
    BackoffTimerOptions,
    TimerState,
    calculate_backoff,
    clear_settings_cache,
    configure_logging,
    create_backoff_delay_function,
    create_backoff_timer,
    debug_backoff_delay,
)

LogLines = Callable[[], list[dict[str, object]]]


def fast_factory(**extra: object) -> BackoffTimerFactory:
    return BackoffTimerFactory({"base_delay": 10, "max_delay": 40, "jitter_factor": 0, **extra})


# ─────────────────────────────────────────────────────────────────────────────
# Factory
# ─────────────────────────────────────────────────────────────────────────────


class TestFactory:
    def test_default_options(self) -> None:
        opts = BackoffTimerFactory().options
        assert (opts.base_delay, opts.max_delay, opts.jitter_factor) == (1000, 5000, 0.2)
        assert opts.emit_delay is False
        assert opts.enable_debug_logs is False

    def test_partial_options_merge_with_defaults(self) -> None:
        opts = BackoffTimerFactory({"baseDelayMs": 200, "emitDelay": True}).options
        assert (opts.base_delay, opts.max_delay, opts.emit_delay) == (200, 5000, True)

    def test_settings_provide_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXPBACKOFF_TIMER_EMIT_DELAY", "true")
        monkeypatch.setenv("EXPBACKOFF_BACKOFF_MAX_DELAY", "900")
        clear_settings_cache()
        opts = BackoffTimerFactory().options
        assert opts.emit_delay is True
        assert opts.max_delay == 900

    def test_creates_timer_with_calculated_delay(self) -> None:
        timer = BackoffTimerFactory({"jitter_factor": 0}).create(3)
        assert timer.delay_ms == 4000
        assert timer.result == calculate_backoff(3, {"jitter_factor": 0})

    def test_overrides_apply_per_call_only(self) -> None:
        factory = BackoffTimerFactory({"jitter_factor": 0})
        assert factory.create(4, {"maxDelay": 3000}).delay_ms == 3000
        assert factory.create(4, BackoffOptions(max_delay=6000, jitter_factor=0)).delay_ms == 6000
        assert factory.create(4).delay_ms == 5000

    def test_edge_case_retry_counts(self) -> None:
        factory = fast_factory()
        assert factory.create(0).delay_ms == 10
        assert factory.create(-1).delay_ms == 10
        assert factory.create(100, {"max_delay": 50}).delay_ms == 50

    def test_jitter_uses_injected_rng(self, fixed_random: type) -> None:
        factory = BackoffTimerFactory({"jitter_factor": 0.2}, rng=fixed_random(0.75))
        assert factory.create(1).delay_ms == pytest.approx(1100)

    def test_explicit_timer_options_are_kept(self) -> None:
        opts = BackoffTimerOptions(emit_delay=True)
        factory = BackoffTimerFactory(opts)
        assert factory.options is opts
        assert factory.options.backoff_options().model_dump() == BackoffOptions().model_dump()


# ─────────────────────────────────────────────────────────────────────────────
# Debug Logging
# ─────────────────────────────────────────────────────────────────────────────


class TestDebugLogs:
    def test_logs_when_enabled(self, log_lines: LogLines) -> None:
        BackoffTimerFactory({"jitter_factor": 0, "enable_debug_logs": True}).create(4)
        (line,) = log_lines()
        assert line["level"] == "debug"
        assert line["logger"] == "expbackoff.timer"
        assert line["description"] == "Retry 4: 5000ms (raw: 8000ms, capped, no jitter)"
        assert line["was_capped"] is True
        assert line["jitter_offset_ms"] == 0

    def test_silent_when_disabled(self, log_lines: LogLines) -> None:
        BackoffTimerFactory({"jitter_factor": 0}).create(2)
        assert log_lines() == []

    def test_debug_lines_ignore_configured_level(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(format="console", level="WARNING", output=sys.stderr, colors=False)
        BackoffTimerFactory({"jitter_factor": 0, "enableDebugLogs": True}).create(1)
        err = capsys.readouterr().err
        assert "[debug] backoff timer created" in err
        assert 'description="Retry 1: 1000ms (raw: 1000ms, no jitter)"' in err

    def test_debug_backoff_delay_logs(self, log_lines: LogLines) -> None:
        timer = debug_backoff_delay(RuntimeError("boom"), 2)
        (line,) = log_lines()
        assert line["attempt"] == 2
        assert 1600 <= timer.delay_ms <= 2400


# ─────────────────────────────────────────────────────────────────────────────
# Subscription
# ─────────────────────────────────────────────────────────────────────────────


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_emits_zero_then_completes(self) -> None:
        events: list[object] = []
        sub = fast_factory().create(1).subscribe(events.append, on_complete=lambda: events.append("done"))
        assert events == []
        assert not sub.closed

        await asyncio.sleep(0.05)
        assert events == [0, "done"]
        assert sub.state is TimerState.COMPLETED
        assert sub.closed and not sub.cancelled
        assert sub.cancel() is False

    @pytest.mark.asyncio
    async def test_emit_delay_emits_immediately(self) -> None:
        events: list[object] = []
        fast_factory(emit_delay=True).create(2).subscribe(events.append)
        assert events == [20]
        await asyncio.sleep(0.06)
        assert events == [20, 0]

    @pytest.mark.asyncio
    async def test_cancel_before_fire_never_delivers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        loop = asyncio.get_running_loop()
        handles: list[asyncio.TimerHandle] = []
        real_call_later = loop.call_later

        def spy(delay: float, callback: Callable[..., object], *args: object, **kwargs: object) -> asyncio.TimerHandle:
            handles.append(handle := real_call_later(delay, callback, *args, **kwargs))
            return handle

        monkeypatch.setattr(loop, "call_later", spy)

        events: list[object] = []
        timer = BackoffTimerFactory({"base_delay": 1000, "jitter_factor": 0}).create(1)
        sub = timer.subscribe(events.append, on_complete=lambda: events.append("done"))
        await asyncio.sleep(0.01)

        assert sub.cancel() is True
        assert sub.closed and sub.cancelled
        assert sub.state is TimerState.CANCELLED
        assert handles[0].when() - loop.time() > 0.5
        assert handles[0].cancelled()
        assert sub.cancel() is False
        assert events == []

    @pytest.mark.asyncio
    async def test_cancelled_short_timer_stays_silent(self) -> None:
        events: list[object] = []
        sub = BackoffTimerFactory({"base_delay": 50, "jitter_factor": 0}).create(1).subscribe(events.append)
        await asyncio.sleep(0.01)
        sub.cancel()
        await asyncio.sleep(0.1)
        assert events == []

    def test_subscribe_requires_running_loop(self) -> None:
        with pytest.raises(RuntimeError):
            fast_factory().create(1).subscribe(lambda _: None)

    @pytest.mark.asyncio
    async def test_callback_errors_propagate_to_loop(self) -> None:
        loop = asyncio.get_running_loop()
        seen: list[BaseException] = []
        loop.set_exception_handler(lambda _loop, ctx: seen.append(ctx["exception"]))
        try:
            def explode(_: float) -> None:
                raise ValueError("consumer failed")

            fast_factory().create(1).subscribe(explode)
            await asyncio.sleep(0.05)
        finally:
            loop.set_exception_handler(None)
        assert len(seen) == 1 and isinstance(seen[0], ValueError)


# ─────────────────────────────────────────────────────────────────────────────
# Async Iteration & Wait
# ─────────────────────────────────────────────────────────────────────────────


class TestAsyncConsumption:
    @pytest.mark.asyncio
    async def test_iteration_yields_zero(self) -> None:
        assert [v async for v in fast_factory().create(1)] == [0]

    @pytest.mark.asyncio
    async def test_iteration_with_emit_delay(self) -> None:
        assert [v async for v in fast_factory(emit_delay=True).create(3)] == [40, 0]

    @pytest.mark.asyncio
    async def test_cancelling_consumer_stops_emission(self) -> None:
        values: list[float] = []

        async def consume(timer: BackoffTimer) -> None:
            async for v in timer:
                values.append(v)

        task = asyncio.create_task(consume(BackoffTimerFactory({"jitter_factor": 0, "emit_delay": True}).create(1)))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert values == [1000]

    @pytest.mark.asyncio
    async def test_wait_returns_result(self) -> None:
        timer = fast_factory().create(2)
        assert await timer.wait() is timer.result


# ─────────────────────────────────────────────────────────────────────────────
# Convenience Functions
# ─────────────────────────────────────────────────────────────────────────────


def test_create_backoff_timer_uses_defaults() -> None:
    timer = create_backoff_timer(1)
    assert 800 <= timer.delay_ms <= 1200
    assert not timer.emit_delay


def test_create_backoff_timer_independent_options() -> None:
    assert create_backoff_timer(2, {"base_delay": 100, "jitter_factor": 0}).delay_ms == 200
    assert create_backoff_timer(2, {"jitter_factor": 0}).delay_ms == 2000


def test_delay_function_follows_retry_count() -> None:
    delay = create_backoff_delay_function({"base_delay": 250, "max_delay": 1000, "jitter_factor": 0})
    err = ConnectionError("down")
    assert [delay(err, n).delay_ms for n in range(1, 5)] == [250, 500, 1000, 1000]


@pytest.mark.asyncio
async def test_delay_function_drives_retry_loop() -> None:
    delay = create_backoff_delay_function({"base_delay": 1, "jitter_factor": 0})
    attempts = 0

    async def flaky() -> str:
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise ConnectionError("transient")
        return "ok"

    retry_count = 0
    while True:
        try:
            result = await flaky()
            break
        except ConnectionError as e:
            retry_count += 1
            await delay(e, retry_count).wait()

    assert result == "ok"
    assert retry_count == 2
