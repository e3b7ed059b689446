"""
Shared fixtures for rate limiter tests.
"""

import pytest
from prometheus_client import CollectorRegistry

from ratelimiter.limiter import RateLimiter
from ratelimiter.options import LimiterDefaults
from shared.metrics import MetricsCollector
from shared.test_helpers import FakeBucketStore, FakeClock


@pytest.fixture
def clock():
    """Clock shared by the limiter and the fake store."""
    return FakeClock()


@pytest.fixture
def store(clock):
    """In-process store honoring TTLs against ``clock``."""
    return FakeBucketStore(clock=clock)


@pytest.fixture
def registry():
    """Isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return MetricsCollector("ratelimiter", registry=registry)


@pytest.fixture
def rate_limiter(store, clock, metrics):
    """Limiter with rate=10Hz, burst=3 defaults under the "test" prefix."""
    return RateLimiter(
        store,
        defaults=LimiterDefaults(rate=10, burst=3, prefix="test"),
        clock=clock,
        metrics=metrics,
    )
