"""Exponential backoff calculation with capping and jitter.

Delay derivation for attempt ``n`` (1-based, milliseconds):

    raw    = base_delay * 2 ** (n - 1)
    capped = min(raw, max_delay)
    offset = uniform(-1, 1) * capped * |jitter_factor|     (jitter_factor > 0 only)
    final  = max(0, capped + offset)

The cap is applied before jitter, so once the ceiling is reached delays
spread symmetrically around ``max_delay`` instead of around an ever-growing
raw value.

Default settings (base 1000ms, cap 5000ms, jitter 0.2):
    - Attempt 1: ~1000ms +/- 200ms
    - Attempt 2: ~2000ms +/- 400ms
    - Attempt 3: ~4000ms +/- 800ms
    - Attempt 4+: ~5000ms +/- 1000ms (capped)

Example:
    >>> from expbackoff import BackoffOptions, calculate_backoff
    >>> calculate_backoff(4, BackoffOptions(jitter_factor=0)).delay_ms
    5000.0
    >>> str(calculate_backoff(2, {"baseDelay": 100, "jitterFactor": 0}))
    'Retry 2: 200ms (raw: 200ms, no jitter)'
"""

from __future__ import annotations

import math
import random
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

DEFAULT_BASE_DELAY_MS = 1000.0
DEFAULT_MAX_DELAY_MS = 5000.0
DEFAULT_JITTER_FACTOR = 0.2


@runtime_checkable
class RandomSource(Protocol):
    """Anything with a ``random()`` returning a float in [0, 1).

    ``random.Random`` instances and the ``random`` module itself both qualify.
    """

    def random(self) -> float: ...


class BackoffOptions(BaseModel):
    """Backoff tuning parameters, in milliseconds.

    Intentionally permissive: unknown keys are ignored, ``None`` or
    unparseable values fall back to the field default, and no range checks
    are applied. A ``max_delay`` below ``base_delay`` caps from the first
    attempt; a ``jitter_factor`` above 1 simply widens the jitter range.

    Attributes:
        base_delay: Delay for attempt 1 (default: 1000)
        max_delay: Ceiling applied before jitter (default: 5000)
        jitter_factor: Fraction of the capped delay used as jitter range (default: 0.2)
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        revalidate_instances="never",
    )

    base_delay: float = Field(
        default=DEFAULT_BASE_DELAY_MS,
        validation_alias=AliasChoices("base_delay", "baseDelay", "base_delay_ms", "baseDelayMs"),
    )
    max_delay: float = Field(
        default=DEFAULT_MAX_DELAY_MS,
        validation_alias=AliasChoices("max_delay", "maxDelay", "max_delay_ms", "maxDelayMs"),
    )
    jitter_factor: float = Field(
        default=DEFAULT_JITTER_FACTOR,
        validation_alias=AliasChoices("jitter_factor", "jitterFactor"),
    )

    @field_validator("*", mode="wrap")
    @classmethod
    def _default_on_invalid(cls, v: object, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> object:
        try:
            return handler(v)
        except ValidationError:
            return cls.model_fields[info.field_name].default

    @property
    def jitter_enabled(self) -> bool:
        return self.jitter_factor > 0

    def merged(self, overrides: BackoffOptions | Mapping[str, object] | None) -> BackoffOptions:
        """Return a copy with only the explicitly given override fields replaced.

        Keys mapped to ``None`` count as not given.
        """
        if not overrides:
            return self
        parsed = overrides if isinstance(overrides, BaseModel) else type(self).model_validate(_given(overrides))
        update = {k: getattr(parsed, k) for k in parsed.model_fields_set if k in type(self).model_fields}
        return self.model_copy(update=update)


_DEFAULT_OPTIONS = BackoffOptions()


@dataclass(frozen=True, slots=True)
class BackoffResult:
    """One backoff calculation and how it was derived.

    Attributes:
        delay_ms: Final delay to wait, never negative
        raw_delay_ms: Exponential delay before capping and jitter
        capped_delay_ms: Delay after the cap, before jitter
        jitter_offset_ms: Signed random offset applied (0 without jitter)
        retry_attempt: Normalized attempt number used for the calculation
    """

    delay_ms: float
    raw_delay_ms: float
    capped_delay_ms: float
    jitter_offset_ms: float
    retry_attempt: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "delay_ms", max(0.0, self.delay_ms))

    @property
    def was_capped(self) -> bool:
        """Whether the raw exponential delay exceeded the cap."""
        return self.raw_delay_ms > self.capped_delay_ms

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0

    def to_dict(self) -> dict[str, float | int | bool]:
        return {
            "attempt": self.retry_attempt,
            "delay_ms": self.delay_ms,
            "raw_delay_ms": self.raw_delay_ms,
            "capped_delay_ms": self.capped_delay_ms,
            "jitter_offset_ms": self.jitter_offset_ms,
            "was_capped": self.was_capped,
        }

    def __str__(self) -> str:
        parts = [f"raw: {_ms(self.raw_delay_ms)}ms"]
        if self.was_capped:
            parts.append("capped")
        if self.jitter_offset_ms:
            sign = "+" if self.jitter_offset_ms >= 0 else ""
            parts.append(f"jitter: {sign}{round(self.jitter_offset_ms)}ms")
        else:
            parts.append("no jitter")
        return f"Retry {self.retry_attempt}: {_ms(self.delay_ms)}ms ({', '.join(parts)})"


def normalize_attempt(attempt: object) -> int:
    """Coerce any attempt value to an integer >= 1.

    Values are floored; anything below 1, NaN, infinite, None or non-numeric
    becomes 1.
    """
    try:
        n = math.floor(attempt)  # type: ignore[call-overload]
    except (TypeError, ValueError, OverflowError):
        return 1
    return max(1, n)


def _raw_delay(base: float, attempt: int) -> float:
    # ldexp never builds 2 ** n as an int
    try:
        return math.ldexp(base, attempt - 1)
    except OverflowError:
        return math.copysign(math.inf, base)


def calculate_backoff(
    attempt: object,
    options: BackoffOptions | Mapping[str, object] | None = None,
    *,
    rng: RandomSource | None = None,
) -> BackoffResult:
    """Calculate the exponential backoff delay for a retry attempt.

    Never raises for any ``attempt`` value: it is normalized, not rejected.
    Draws exactly one random number when jitter is enabled and none otherwise.

    Args:
        attempt: 1-based retry attempt (values <= 0 behave as 1)
        options: BackoffOptions or mapping of option keys (defaults: 1000/5000/0.2)
        rng: Randomness source for jitter (default: the ``random`` module)

    Returns:
        BackoffResult with the final delay and derivation metadata

    Example:
        >>> calculate_backoff(3, {"jitter_factor": 0}).delay_ms
        4000.0
        >>> calculate_backoff(20, {"jitter_factor": 0}).was_capped
        True
    """
    opts = _coerce_options(options)
    n = normalize_attempt(attempt)
    raw = _raw_delay(opts.base_delay, n)
    capped = min(raw, opts.max_delay)

    offset, final = 0.0, capped
    if opts.jitter_enabled:
        jitter_range = capped * abs(opts.jitter_factor)
        offset = ((rng or random).random() * 2 - 1) * jitter_range
        final = max(0.0, capped + offset)

    return BackoffResult(final, raw, capped, offset, n)


def _coerce_options(options: BackoffOptions | Mapping[str, object] | None) -> BackoffOptions:
    if options is None:
        return _DEFAULT_OPTIONS
    if isinstance(options, BackoffOptions):
        return options
    return BackoffOptions.model_validate(_given(options))


def _given(options: Mapping[str, object]) -> dict[str, object]:
    return {k: v for k, v in options.items() if v is not None}


def _ms(value: float) -> str:
    """Render milliseconds without a trailing .0 for whole values."""
    if math.isfinite(value) and value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return f"{value:.1f}" if math.isfinite(value) else str(value)
