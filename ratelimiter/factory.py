"""
Builds a ``RateLimiter`` from settings.
"""

from typing import Optional

from shared.config import RateLimiterSettings, get_settings
from shared.logging import get_logger
from shared.metrics import MetricsCollector, get_metrics_collector

from .limiter import RateLimiter
from .options import defaults_from_settings
from .router import ShardRouter
from .store import RedisBucketStore

logger = get_logger("ratelimiter.factory")


def create_router(settings: RateLimiterSettings) -> ShardRouter:
    """One Redis store per shard URL, or a single cluster-aware store."""
    client_kwargs = {
        "socket_timeout": settings.socket_timeout,
        "socket_connect_timeout": settings.socket_connect_timeout,
    }

    if settings.cluster_mode:
        shards = [RedisBucketStore.from_url(settings.redis_url, cluster_mode=True, **client_kwargs)]
    else:
        shards = [
            RedisBucketStore.from_url(url, **client_kwargs)
            for url in settings.effective_shard_urls()
        ]

    logger.info(
        "Rate limiter shards configured",
        shards=[shard.name for shard in shards],
        cluster_mode=settings.cluster_mode,
    )
    return ShardRouter(shards)


def create_rate_limiter(
    settings: Optional[RateLimiterSettings] = None,
    metrics: Optional[MetricsCollector] = None,
) -> RateLimiter:
    """Build a rate limiter wired to the configured Redis shards.

    Metrics go to the process-wide collector unless ``metrics`` is given.
    """
    settings = settings or get_settings()
    return RateLimiter(
        create_router(settings),
        defaults=defaults_from_settings(settings),
        metrics=metrics if metrics is not None else get_metrics_collector(),
    )
