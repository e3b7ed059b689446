"""
Rate limiter options.

Instance-level defaults are captured once at construction; each check may
override rate, burst and op_count field by field.
"""

import math
from dataclasses import dataclass
from numbers import Real
from typing import Optional

from shared.errors import ConfigurationError


@dataclass(frozen=True)
class LimiterDefaults:
    """Defaults fixed when the limiter is built."""

    rate: Optional[float] = None
    burst: Optional[int] = None
    prefix: str = "rzrate"


@dataclass(frozen=True)
class CheckOptions:
    """Per-call overrides; unset fields fall back to ``LimiterDefaults``."""

    rate: Optional[float] = None
    burst: Optional[int] = None
    op_count: Optional[int] = None


@dataclass(frozen=True)
class EffectiveOptions:
    """Validated options for one check."""

    rate: float
    burst: int
    op_count: int = 1


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def resolve_options(defaults: LimiterDefaults, options: Optional[CheckOptions] = None) -> EffectiveOptions:
    """Merge ``options`` over ``defaults`` and validate the result.

    Raises:
        ConfigurationError: rate or burst is missing from both sources, or a
            value is out of range.
    """
    options = options or CheckOptions()

    rate = options.rate if options.rate is not None else defaults.rate
    burst = options.burst if options.burst is not None else defaults.burst
    op_count = options.op_count if options.op_count is not None else 1

    if rate is None:
        raise ConfigurationError("No rate configured", {"field": "rate"})
    if burst is None:
        raise ConfigurationError("No burst configured", {"field": "burst"})

    if isinstance(rate, bool) or not isinstance(rate, Real) or not math.isfinite(rate) or rate <= 0:
        raise ConfigurationError("rate must be a positive number", {"field": "rate", "value": rate})
    if not _is_int(burst) or burst < 1:
        raise ConfigurationError("burst must be a positive integer", {"field": "burst", "value": burst})
    if not _is_int(op_count) or op_count < 1:
        raise ConfigurationError("op_count must be a positive integer", {"field": "op_count", "value": op_count})

    return EffectiveOptions(rate=float(rate), burst=burst, op_count=op_count)


def defaults_from_settings(settings) -> LimiterDefaults:
    """Build ``LimiterDefaults`` from ``RateLimiterSettings``."""
    return LimiterDefaults(
        rate=settings.default_rate,
        burst=settings.default_burst,
        prefix=settings.prefix,
    )
