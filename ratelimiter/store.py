"""
Store capability interface and its Redis adapter.

The rate limiter depends on ``BucketStore`` rather than on a concrete client
so that each shard is just one more adapter instance.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlsplit, urlunsplit

import redis.asyncio as redis
from redis.asyncio.cluster import RedisCluster
from redis.exceptions import NoScriptError

from shared.errors import ScriptNotLoaded
from shared.logging import get_logger

FieldValue = Union[str, int, float]


def _redact(url: str) -> str:
    """Drop credentials from a Redis URL so it can be logged."""
    parts = urlsplit(url)
    if parts.password is None and parts.username is None:
        return url
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class BucketStore(ABC):
    """Operations the rate limiter needs from one store partition."""

    name: str = "store"

    @abstractmethod
    async def read_fields(self, key: str, fields: Sequence[str]) -> List[Optional[str]]:
        """Read ``fields`` of the hash at ``key``; missing fields come back as None."""
        raise NotImplementedError

    @abstractmethod
    async def write_fields(self, key: str, mapping: Mapping[str, FieldValue]) -> None:
        """Write every field of ``mapping`` to the hash at ``key``."""
        raise NotImplementedError

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> None:
        """Expire ``key`` after ``seconds``."""
        raise NotImplementedError

    @abstractmethod
    async def load_script(self, source: str) -> str:
        """Register ``source`` with the store and return its handle (SHA1)."""
        raise NotImplementedError

    @abstractmethod
    async def run_script(self, sha: str, keys: Sequence[str], args: Sequence[FieldValue]) -> Any:
        """Evaluate a registered script atomically.

        Raises:
            ScriptNotLoaded: The store no longer holds ``sha``.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release the store's connections."""


class RedisBucketStore(BucketStore):
    """``BucketStore`` backed by a ``redis.asyncio`` client (standalone or cluster)."""

    def __init__(self, client: Union[redis.Redis, RedisCluster], name: Optional[str] = None):
        self.client = client
        self.name = name or "redis"
        self.logger = get_logger("ratelimiter.store")

    @classmethod
    def from_url(cls, url: str, cluster_mode: bool = False, **client_kwargs) -> "RedisBucketStore":
        """Build a store for ``url`` with string responses."""
        client_kwargs.setdefault("decode_responses", True)
        client_kwargs.setdefault("encoding", "utf-8")
        if cluster_mode:
            client = RedisCluster.from_url(url, **client_kwargs)
        else:
            client = redis.from_url(url, **client_kwargs)
        return cls(client, name=_redact(url))

    async def read_fields(self, key: str, fields: Sequence[str]) -> List[Optional[str]]:
        values = await self.client.hmget(key, list(fields))
        return [v.decode("utf-8") if isinstance(v, bytes) else v for v in values]

    async def write_fields(self, key: str, mapping: Mapping[str, FieldValue]) -> None:
        await self.client.hset(key, mapping=dict(mapping))

    async def expire(self, key: str, seconds: int) -> None:
        await self.client.expire(key, seconds)

    async def load_script(self, source: str) -> str:
        # Cluster clients broadcast SCRIPT LOAD to every primary
        sha = await self.client.script_load(source)
        return sha.decode("utf-8") if isinstance(sha, bytes) else sha

    async def run_script(self, sha: str, keys: Sequence[str], args: Sequence[FieldValue]) -> Any:
        try:
            return await self.client.evalsha(sha, len(keys), *keys, *args)
        except NoScriptError as e:
            self.logger.warning("Script missing on store", store=self.name, sha=sha)
            raise ScriptNotLoaded(sha, {"store": self.name}) from e

    async def close(self) -> None:
        await self.client.aclose()
        self.logger.info("Redis store closed", store=self.name)

    def __repr__(self) -> str:
        return f"RedisBucketStore({self.name!r})"

