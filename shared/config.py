"""
Shared configuration management for the rate limiter.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="RATELIMIT_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    socket_timeout: Optional[float] = 5.0
    socket_connect_timeout: Optional[float] = 5.0


class RateLimiterSettings(BaseConfig):
    """Rate limiter configuration.

    ``shard_urls`` lists one Redis URL per shard; when empty, ``redis_url`` is
    the single shard. With ``cluster_mode`` enabled ``redis_url`` points at a
    Redis Cluster node and the cluster client handles slot routing.
    """

    shard_urls: List[str] = Field(default_factory=list)
    cluster_mode: bool = False

    # Defaults applied when a check does not override them
    default_rate: Optional[float] = None
    default_burst: Optional[int] = None
    prefix: str = "rzrate"

    def effective_shard_urls(self) -> List[str]:
        """Return the Redis URLs backing each shard, in routing order."""
        return list(self.shard_urls) or [self.redis_url]


@lru_cache()
def get_settings() -> RateLimiterSettings:
    """Get the process-wide rate limiter settings."""
    return RateLimiterSettings()
