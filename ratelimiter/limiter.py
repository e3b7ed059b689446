"""
Distributed leaky-bucket rate limiter.
"""

import asyncio
import dataclasses
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Union

from opentelemetry import trace

from shared.errors import BackendUnavailable, ConfigurationError, LimitExceeded
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .decay import BucketState, decayed_count, retry_after_seconds
from .executor import AtomicCheckExecutor
from .options import CheckOptions, EffectiveOptions, LimiterDefaults, resolve_options
from .router import ShardRouter
from .store import BucketStore

tracer = trace.get_tracer(__name__)


def current_time_ms() -> int:
    """Wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class RateLimiter:
    """Keyed rate limiter whose bucket state lives in Redis.

    Each identifier gets a bucket at ``<prefix>:<identifier>`` that drains
    ``rate`` units per second and holds at most ``burst`` units. ``check``
    either records the operations or raises ``LimitExceeded``.
    """

    def __init__(
        self,
        backend: Union[ShardRouter, BucketStore],
        defaults: Optional[LimiterDefaults] = None,
        clock: Callable[[], int] = current_time_ms,
        metrics: Optional[MetricsCollector] = None,
        executor: Optional[AtomicCheckExecutor] = None,
    ):
        self.router = backend if isinstance(backend, ShardRouter) else ShardRouter([backend])
        self.defaults = defaults or LimiterDefaults()
        self.clock = clock
        self.metrics = metrics
        self.executor = executor or AtomicCheckExecutor(metrics=metrics)
        self.logger = get_logger("ratelimiter.limiter")
        self._closed = False

    @property
    def prefix(self) -> str:
        return self.defaults.prefix

    def make_key(self, identifier: str) -> str:
        """Namespaced store key for ``identifier``."""
        if not identifier:
            raise ConfigurationError("identifier must be a non-empty string")
        return f"{self.defaults.prefix}:{identifier}"

    async def check(
        self,
        identifier: str,
        options: Optional[CheckOptions] = None,
        *,
        rate: Optional[float] = None,
        burst: Optional[int] = None,
        op_count: Optional[int] = None,
    ) -> None:
        """Record ``op_count`` operations for ``identifier`` if the bucket has room.

        Keyword overrides take precedence over ``options``, which take
        precedence over the limiter's defaults.

        Raises:
            LimitExceeded: The operations would take the bucket past ``burst``.
                Nothing is written. ``details`` carry the rejected ``count`` and
                ``retry_after``, the seconds until the same check would fit.
            ConfigurationError: rate or burst is missing or invalid.
            BackendUnavailable: The limiter has been closed.
            redis.RedisError: Store failures propagate unchanged.
        """
        effective = resolve_options(self.defaults, _override(options, rate, burst, op_count))
        key = self.make_key(identifier)
        if self._closed:
            raise BackendUnavailable("Rate limiter is closed")

        store = self.router.shard_for(key)

        with tracer.start_as_current_span("ratelimiter.check") as span, self._timed() as timing:
            span.set_attribute("ratelimiter.key", key)
            span.set_attribute("ratelimiter.burst", effective.burst)
            span.set_attribute("ratelimiter.op_count", effective.op_count)

            try:
                admitted, count = await self.executor.evaluate(
                    store,
                    key,
                    self.clock(),
                    effective.rate,
                    effective.burst,
                    effective.op_count,
                )
            except Exception as e:
                self.logger.error("Rate limit check failed", key=key, store=store.name, error=str(e))
                raise

            span.set_attribute("ratelimiter.admitted", admitted)
            if not admitted:
                timing["outcome"] = "rejected"
                self.logger.info(
                    "Rate limit exceeded",
                    key=key,
                    rate=effective.rate,
                    burst=effective.burst,
                    op_count=effective.op_count,
                )
                raise LimitExceeded(details=_details(key, effective, count))

            timing["outcome"] = "admitted"

    async def inspect(self, identifier: str) -> Optional[BucketState]:
        """Stored state for ``identifier`` as last written, or None when absent.

        This is a plain read outside the atomic unit, meant for observability.
        """
        key = self.make_key(identifier)
        if self._closed:
            raise BackendUnavailable("Rate limiter is closed")

        count, timestamp = await self.router.shard_for(key).read_fields(key, ["count", "timestamp"])
        if count is None or timestamp is None:
            return None
        return BucketState(count=int(count), timestamp=int(timestamp))

    async def current_count(self, identifier: str, rate: Optional[float] = None) -> int:
        """Operations still outstanding for ``identifier`` as of now."""
        effective_rate = rate if rate is not None else self.defaults.rate
        if effective_rate is None or effective_rate <= 0:
            raise ConfigurationError("rate must be a positive number", {"field": "rate", "value": effective_rate})
        return decayed_count(await self.inspect(identifier), effective_rate, self.clock())

    async def initialize(self) -> None:
        """Register the rate check script on every shard up front."""
        await asyncio.gather(*(self.executor.initialize(shard) for shard in self.router.shards))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.router.close()

    async def __aenter__(self) -> "RateLimiter":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @contextmanager
    def _timed(self) -> Iterator[dict]:
        if self.metrics is None:
            yield {"outcome": "error"}
            return
        with self.metrics.time_check() as timing:
            yield timing


def _override(
    options: Optional[CheckOptions],
    rate: Optional[float],
    burst: Optional[int],
    op_count: Optional[int],
) -> CheckOptions:
    options = options or CheckOptions()
    overrides = {
        name: value
        for name, value in (("rate", rate), ("burst", burst), ("op_count", op_count))
        if value is not None
    }
    return dataclasses.replace(options, **overrides) if overrides else options


def _details(key: str, effective: EffectiveOptions, count: int) -> dict:
    return {
        "key": key,
        "rate": effective.rate,
        "burst": effective.burst,
        "op_count": effective.op_count,
        "count": count,
        "retry_after": retry_after_seconds(count, effective.burst, effective.rate),
    }
