"""
Shared utilities for the rate limiter.

This package aggregates the ambient building blocks used by ``ratelimiter``:

- config: Settings via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- test_helpers: Fake clock and in-process store for tests

Only test_helpers may import from ``ratelimiter``.
"""
