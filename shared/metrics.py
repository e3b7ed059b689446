"""
Shared metrics configuration for the rate limiter.
"""

from prometheus_client import Counter, Histogram, CollectorRegistry, REGISTRY
from typing import Dict, Any, Optional
import time
from contextlib import contextmanager
from functools import lru_cache


class MetricsCollector:
    """Centralized metrics collector for the rate limiter."""

    def __init__(self, service_name: str = "ratelimiter", registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up rate limiter metrics."""
        self._metrics["rate_limit_checks_total"] = Counter(
            "rate_limit_checks_total",
            "Total rate limit checks",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["rate_limit_check_duration_seconds"] = Histogram(
            "rate_limit_check_duration_seconds",
            "Rate limit check duration in seconds",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["rate_limit_script_loads_total"] = Counter(
            "rate_limit_script_loads_total",
            "Total rate check script registrations",
            ["status"],
            registry=self.registry
        )

    def record_check(self, outcome: str, duration: float):
        """Record the outcome and latency of one check."""
        self._metrics["rate_limit_checks_total"].labels(outcome=outcome).inc()
        self._metrics["rate_limit_check_duration_seconds"].labels(outcome=outcome).observe(duration)

    def record_script_load(self, status: str):
        """Record a script registration attempt."""
        self._metrics["rate_limit_script_loads_total"].labels(status=status).inc()

    @contextmanager
    def time_check(self):
        """Time a check; the caller sets ``outcome`` on the yielded dict."""
        start_time = time.perf_counter()
        result = {"outcome": "error"}
        try:
            yield result
        finally:
            self.record_check(result["outcome"], time.perf_counter() - start_time)


@lru_cache()
def get_metrics_collector(service_name: str = "ratelimiter") -> MetricsCollector:
    """Get the process-wide metrics collector bound to the default registry."""
    return MetricsCollector(service_name)
