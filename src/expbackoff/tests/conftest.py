"""Shared fixtures: isolated settings and logging per test."""

from __future__ import annotations

import io
import os
from collections.abc import Callable

import orjson
import pytest

from expbackoff.foundation.config import clear_settings_cache
from expbackoff.runtime.observability import configure_logging, reset_logging


class FixedRandom:
    """Randomness source returning a constant and counting draws."""

    def __init__(self, value: float) -> None:
        self.value = value
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.value


@pytest.fixture(autouse=True)
def clean_state(monkeypatch: pytest.MonkeyPatch) -> object:
    """Strip EXPBACKOFF_* env vars and reset cached settings and logging."""
    for key in list(os.environ):
        if key.startswith("EXPBACKOFF_"):
            monkeypatch.delenv(key)
    clear_settings_cache()
    reset_logging()
    yield
    clear_settings_cache()
    reset_logging()


@pytest.fixture
def log_lines() -> Callable[[], list[dict[str, object]]]:
    """Route logs to an in-memory JSON sink; call the fixture value to read parsed lines."""
    buf = io.StringIO()
    configure_logging(format="json", level="DEBUG", output=buf)
    return lambda: [orjson.loads(line) for line in buf.getvalue().splitlines()]


@pytest.fixture
def fixed_random() -> type[FixedRandom]:
    return FixedRandom
