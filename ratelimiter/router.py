"""
Shard routing.

Keys map to Redis Cluster hash slots (CRC16 of the key, or of its ``{tag}``
section, modulo 16384) and every shard owns one contiguous slot range. The
mapping depends only on the key and the number of shards.
"""

from typing import List, Sequence

from redis.crc import REDIS_CLUSTER_HASH_SLOTS, key_slot

from shared.errors import ConfigurationError
from shared.logging import get_logger

from .store import BucketStore


class ShardRouter:
    """Selects the store partition responsible for a key."""

    def __init__(self, shards: Sequence[BucketStore]):
        if not shards:
            raise ConfigurationError("At least one shard is required")
        self._shards: List[BucketStore] = list(shards)
        self.logger = get_logger("ratelimiter.router")

    @property
    def shards(self) -> List[BucketStore]:
        return list(self._shards)

    @staticmethod
    def slot_for(key: str) -> int:
        """Hash slot of ``key``."""
        return key_slot(key.encode("utf-8"))

    def index_for(self, key: str) -> int:
        """Index of the shard that owns ``key``'s slot."""
        return self.slot_for(key) * len(self._shards) // REDIS_CLUSTER_HASH_SLOTS

    def shard_for(self, key: str) -> BucketStore:
        """Store holding ``key``'s state."""
        return self._shards[self.index_for(key)]

    async def close(self) -> None:
        """Close every shard, raising the first failure after trying them all."""
        first_error = None
        for shard in self._shards:
            try:
                await shard.close()
            except Exception as e:
                self.logger.error("Failed to close shard", store=shard.name, error=str(e))
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
