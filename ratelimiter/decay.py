"""
Leaky-bucket decay arithmetic.

One unit drains from a bucket every ``1 / rate`` seconds; each check adds its
operation count to whatever remains. These functions are pure and mirror the
arithmetic of the Lua ``rateCheck`` script in ``ratelimiter.scripts``.
"""

import math
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BucketState:
    """Fill level of one bucket as of ``timestamp`` (ms since the epoch)."""

    count: int
    timestamp: int


def compute_new_count(prior_count: int, rate: float, elapsed_ms: int, op_count: int = 1) -> int:
    """Decay ``prior_count`` over ``elapsed_ms`` at ``rate`` Hz and add ``op_count``."""
    periods_elapsed = math.floor(elapsed_ms * rate / 1000)
    return max(prior_count - periods_elapsed, 0) + op_count


def compute_new_state(state: Optional[BucketState], rate: float, now_ms: int, op_count: int = 1) -> BucketState:
    """Return the state after recording ``op_count`` operations at ``now_ms``.

    A missing state counts as an empty bucket. Elapsed time is clamped at zero
    and the timestamp never moves backwards, so a caller whose clock lags
    behind the last writer neither gains capacity nor rewinds the bucket.
    """
    if state is None:
        return BucketState(count=op_count, timestamp=now_ms)

    elapsed_ms = max(now_ms - state.timestamp, 0)
    return BucketState(
        count=compute_new_count(state.count, rate, elapsed_ms, op_count),
        timestamp=max(now_ms, state.timestamp),
    )


def decayed_count(state: Optional[BucketState], rate: float, now_ms: int) -> int:
    """Count still outstanding at ``now_ms``, without recording anything."""
    if state is None:
        return 0
    return compute_new_count(state.count, rate, max(now_ms - state.timestamp, 0), op_count=0)


def ttl_seconds(count: int, rate: float) -> int:
    """Whole seconds until a bucket holding ``count`` fully drains."""
    return math.ceil(count / rate)


def retry_after_seconds(count: int, burst: int, rate: float) -> int:
    """Whole seconds until a rejected check producing ``count`` would fit under ``burst``."""
    return max(math.ceil((count - burst) / rate), 0)
