"""
Distributed leaky-bucket rate limiter backed by Redis.

- decay: pure bucket arithmetic
- scripts: the atomic ``rateCheck`` Lua script
- store: store capability interface and Redis adapter
- executor: atomic script execution with one-time registration
- router: hash-slot shard routing
- options: defaults, per-call overrides and validation
- limiter: the ``RateLimiter`` entry point
- factory: building a limiter from settings
- middleware: FastAPI integration
"""

from shared.errors import BackendUnavailable, ConfigurationError, LimitExceeded

from .decay import BucketState
from .executor import AtomicCheckExecutor
from .factory import create_rate_limiter
from .limiter import RateLimiter
from .options import CheckOptions, LimiterDefaults
from .router import ShardRouter
from .store import BucketStore, RedisBucketStore

__all__ = [
    "AtomicCheckExecutor",
    "BackendUnavailable",
    "BucketState",
    "BucketStore",
    "CheckOptions",
    "ConfigurationError",
    "LimitExceeded",
    "LimiterDefaults",
    "RateLimiter",
    "RedisBucketStore",
    "ShardRouter",
    "create_rate_limiter",
]
