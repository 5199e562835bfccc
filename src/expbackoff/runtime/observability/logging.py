"""Structured logging for backoff diagnostics.

Key/value events rendered as one console line each during development or
as JSON lines for aggregation. Renderer and threshold live in context
variables, so tests and tasks can configure them independently.

Quick Start:
    >>> from expbackoff.runtime.observability import configure_logging, get_logger
    >>>
    >>> configure_logging(format="console", level="DEBUG")
    >>> get_logger("expbackoff.tracker").debug("backoff wait", attempt=2, delay_ms=2000.0)
    # => 10:30:45.120 [debug] backoff wait attempt=2 delay_ms=2000.0 logger="expbackoff.tracker"
"""

from __future__ import annotations

import logging
import sys
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, TextIO, runtime_checkable

JsonDict = dict[str, object]

_log_context: ContextVar[JsonDict] = ContextVar("log_context", default={})
_renderer: ContextVar[LogRenderer | None] = ContextVar("log_renderer", default=None)
_default_level: ContextVar[int] = ContextVar("log_level", default=logging.INFO)


@dataclass(slots=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    context: JsonDict


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


# ─────────────────────────────────────────────────────────────────────────────
# Logger
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class BoundLogger:
    """Logger carrying a fixed context and threshold. bind() returns a new logger."""

    context: JsonDict = field(default_factory=dict)
    _renderer: LogRenderer | None = None
    _level: int = logging.DEBUG

    def bind(self, **kw: object) -> BoundLogger:
        return BoundLogger(context={**self.context, **kw}, _renderer=self._renderer, _level=self._level)

    def is_enabled_for(self, level: int) -> bool:
        return level >= self._level

    def _log(self, level: int, event: str, kw: JsonDict) -> None:
        if not self.is_enabled_for(level):
            return
        entry = LogEntry(time.time(), logging.getLevelName(level).lower(), event,
                         {**_log_context.get(), **self.context, **kw})
        (self._renderer or _active_renderer()).render(entry)

    def debug(self, event: str, **kw: object) -> None: self._log(logging.DEBUG, event, kw)
    def info(self, event: str, **kw: object) -> None: self._log(logging.INFO, event, kw)
    def warning(self, event: str, **kw: object) -> None: self._log(logging.WARNING, event, kw)
    def error(self, event: str, **kw: object) -> None: self._log(logging.ERROR, event, kw)


class log_context:
    """Adds key-value pairs to every entry logged inside the ``with`` block."""

    __slots__ = ("_ctx", "_token")

    def __init__(self, **kw: object) -> None:
        self._ctx: JsonDict = dict(kw)
        self._token: object | None = None

    def __enter__(self) -> log_context:
        self._token = _log_context.set({**_log_context.get(), **self._ctx})
        return self

    def __exit__(self, *_: object) -> None:
        if self._token is not None:
            _log_context.reset(self._token)  # type: ignore[arg-type]


# ─────────────────────────────────────────────────────────────────────────────
# Renderers
# ─────────────────────────────────────────────────────────────────────────────


_RESET = "\033[0m"
_LEVEL_COLORS = {"debug": "\033[2m", "info": "\033[32m", "warning": "\033[33m", "error": "\033[31m"}


@dataclass(slots=True)
class ConsoleRenderer:
    """One line per entry: ``HH:MM:SS.mmm [level] event key=value ...``, keys sorted."""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None  # None = color only when writing to a tty

    def __post_init__(self) -> None:
        if self.colors is None:
            self.colors = getattr(self.output, "isatty", lambda: False)()

    def render(self, entry: LogEntry) -> None:
        level = f"[{entry.level}]"
        if self.colors:
            level = f"{_LEVEL_COLORS.get(entry.level, '')}{level}{_RESET}"
        clock = datetime.fromtimestamp(entry.timestamp, tz=UTC).strftime("%H:%M:%S.%f")[:-3]
        fields = (f"{k}={_console_value(v)}" for k, v in sorted(entry.context.items()))
        print(" ".join([clock, level, entry.event, *fields]), file=self.output)


@dataclass(slots=True)
class JsonRenderer:
    """JSON Lines output; non-finite floats become null."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def render(self, entry: LogEntry) -> None:
        import orjson
        ts = datetime.fromtimestamp(entry.timestamp, tz=UTC).isoformat()
        line = orjson.dumps({"timestamp": ts, "level": entry.level, "event": entry.event, **entry.context},
                            default=str)
        print(line.decode(), file=self.output)


class NoOpRenderer:
    def render(self, entry: LogEntry) -> None:
        pass


def _console_value(v: object) -> str:
    match v:
        case str(): return f'"{v}"'
        case bool(): return str(v).lower()
        case _: return str(v)


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────


def configure_logging(
    format: str = "console",  # noqa: A002
    level: str | int = "INFO",
    *,
    output: TextIO | None = None,
    colors: bool | None = None,
) -> LogRenderer:
    """Set the renderer and default threshold. Format: "console", "json" or "none"."""
    match format:
        case "console": renderer: LogRenderer = ConsoleRenderer(output=output or sys.stderr, colors=colors)
        case "json": renderer = JsonRenderer(output=output or sys.stdout)
        case "none": renderer = NoOpRenderer()
        case _: raise ValueError(f"Unknown format: {format}. Use 'console', 'json', or 'none'")
    _default_level.set(_parse_level(level))
    _renderer.set(renderer)
    return renderer


def configure_from_settings() -> LogRenderer:
    """Configure logging from EXPBACKOFF_LOG_* settings; EXPBACKOFF_DEBUG forces DEBUG."""
    from expbackoff.foundation.config import get_settings
    settings = get_settings()
    level = "DEBUG" if settings.debug else settings.logging.level
    return configure_logging(format=settings.logging.format, level=level)


def reset_logging() -> None:
    """Drop the configured renderer and level (next log call falls back to console/INFO)."""
    _renderer.set(None)
    _default_level.set(logging.INFO)


def get_logger(name: str | None = None, *, level: str | int | None = None, **initial_context: object) -> BoundLogger:
    """Get a structured logger. Name is added to context as 'logger'.

    ``level`` pins the logger's threshold instead of inheriting the configured one.
    """
    ctx = {**initial_context, **({"logger": name} if name else {})}
    return BoundLogger(context=ctx, _level=_default_level.get() if level is None else _parse_level(level))


def _active_renderer() -> LogRenderer:
    if (renderer := _renderer.get()) is None:
        _renderer.set(renderer := ConsoleRenderer())
    return renderer


def _parse_level(level: str | int) -> int:
    return level if isinstance(level, int) else getattr(logging, level.upper(), logging.INFO)
