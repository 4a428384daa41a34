"""Redis implementation of DurableCacheStore.

Each entry is a hash under `{prefix}:entry:{key_hash}`. Two sorted sets index
the entries: `{prefix}:by_hits` (score = hits) serves warm start and top
queries, `{prefix}:by_created` (score = created_at) serves counting and TTL
cleanup. Entries carry no Redis EXPIRE; expiry is decided by the response
cache and enforced through delete / delete_many so the indexes stay exact.
"""

import logging
from typing import Any

import redis.asyncio as redis

from completion_orchestrator.config import get_redis_client, settings
from completion_orchestrator.entities import CacheEntry

logger = logging.getLogger(__name__)

# KEYS: entry hash, by_hits index. ARGV: increment, last_accessed_at, member.
_INCREMENT_HITS = """
if redis.call("EXISTS", KEYS[1]) == 0 then
    return nil
end
local hits = redis.call("HINCRBY", KEYS[1], "hits", ARGV[1])
redis.call("HSET", KEYS[1], "last_accessed_at", ARGV[2])
redis.call("ZINCRBY", KEYS[2], ARGV[1], ARGV[3])
return hits
"""


class RedisCacheRepository:
    """Redis implementation of the durable cache tier.

    This class satisfies the DurableCacheStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
    ) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: asyncio Redis client. If None, creates default.
            key_prefix: Namespace for all keys. Defaults to settings.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix or settings.cache_key_prefix
        self._hits_index = f"{self._prefix}:by_hits"
        self._created_index = f"{self._prefix}:by_created"
        self._increment_script = self._client.register_script(_INCREMENT_HITS)

    @classmethod
    def create(
        cls,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
    ) -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository with defaults.

        Args:
            redis_client: asyncio Redis client. If None, uses settings.
            key_prefix: Key namespace. If None, uses settings.

        Returns:
            Configured RedisCacheRepository
        """
        return cls(redis_client=redis_client, key_prefix=key_prefix)

    def _entry_key(self, key_hash: str) -> str:
        return f"{self._prefix}:entry:{key_hash}"

    @staticmethod
    def _to_entry(data: dict[str, str]) -> CacheEntry:
        return CacheEntry(
            key_hash=data["key_hash"],
            query=data.get("query", ""),
            response=data.get("response", ""),
            provider_used=data.get("provider_used", "unknown"),
            created_at=float(data.get("created_at", 0)),
            hits=int(data.get("hits", 0)),
            last_accessed_at=float(data.get("last_accessed_at", 0)),
        )

    async def find(self, key_hash: str) -> CacheEntry | None:
        """Fetch an entry by query hash.

        Args:
            key_hash: Hash of the normalized query

        Returns:
            The stored entry, or None if absent
        """
        data = await self._client.hgetall(self._entry_key(key_hash))
        if not data:
            return None
        return self._to_entry(data)

    async def upsert(self, key_hash: str, create: dict[str, Any], update: dict[str, Any]) -> None:
        """Create or update an entry in a single MULTI/EXEC.

        Fields in `update` are always written. Fields only in `create` are
        written with HSETNX, so an existing entry keeps them (hits and
        created_at survive a refresh).

        Args:
            key_hash: Hash of the normalized query
            create: Full field set for a new entry
            update: Fields to overwrite on an existing entry
        """
        key = self._entry_key(key_hash)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping={"key_hash": key_hash, **update})
            for field, value in create.items():
                if field not in update:
                    pipe.hsetnx(key, field, value)

            if "hits" in update:
                pipe.zadd(self._hits_index, {key_hash: update["hits"]})
            elif "hits" in create:
                pipe.zadd(self._hits_index, {key_hash: create["hits"]}, nx=True)

            if "created_at" in update:
                pipe.zadd(self._created_index, {key_hash: update["created_at"]})
            elif "created_at" in create:
                pipe.zadd(self._created_index, {key_hash: create["created_at"]}, nx=True)

            await pipe.execute()

    async def increment_hits(self, key_hash: str, by: int, last_accessed_at: float) -> int | None:
        """Add to an entry's hits and keep the by_hits index in step.

        Runs as one Lua script so a missing entry is never recreated as a
        partial hash.

        Returns:
            The new hit count, or None if the entry does not exist
        """
        hits = await self._increment_script(
            keys=[self._entry_key(key_hash), self._hits_index],
            args=[by, last_accessed_at, key_hash],
        )
        return None if hits is None else int(hits)

    async def delete(self, key_hash: str) -> bool:
        """Delete a single entry and its index members.

        Returns:
            True if deleted, False otherwise
        """
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(self._entry_key(key_hash))
            pipe.zrem(self._hits_index, key_hash)
            pipe.zrem(self._created_index, key_hash)
            deleted, _, _ = await pipe.execute()
        return deleted > 0

    async def delete_many(self, created_before: float | None = None) -> int:
        """Delete entries created strictly before a timestamp, or all entries.

        Args:
            created_before: Unix timestamp cutoff. None clears the namespace.

        Returns:
            Number of entries deleted
        """
        if created_before is None:
            members = await self._client.zrange(self._created_index, 0, -1)
        else:
            members = await self._client.zrangebyscore(self._created_index, "-inf", f"({created_before}")

        if not members:
            return 0

        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(*[self._entry_key(member) for member in members])
            pipe.zrem(self._hits_index, *members)
            pipe.zrem(self._created_index, *members)
            deleted, _, _ = await pipe.execute()

        logger.debug("Deleted %d durable cache entries", deleted)
        return deleted

    async def count(self) -> int:
        """Count stored entries.

        Returns:
            Total number of cached entries
        """
        return await self._client.zcard(self._created_index)

    async def find_top_by_hits(self, limit: int) -> list[CacheEntry]:
        """Return up to `limit` entries ordered by hits, highest first."""
        if limit <= 0:
            return []
        members = await self._client.zrevrange(self._hits_index, 0, limit - 1)
        if not members:
            return []

        async with self._client.pipeline(transaction=False) as pipe:
            for member in members:
                pipe.hgetall(self._entry_key(member))
            rows = await pipe.execute()

        return [self._to_entry(row) for row in rows if row]

    async def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(await self._client.ping())
        except redis.RedisError as e:
            logger.warning("Redis health check failed: %s", e)
            return False

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
