"""Durable cache store protocol.

Defines the interface for the cold tier behind the response cache. The store
is the source of truth shared across processes; the in-process hot tier can
always be rebuilt from it.

Implementations can include:
- Redis hashes with sorted-set indexes (default)
- A SQL table keyed by query hash
- Any document store with a secondary index on hits and creation time
"""

from typing import Any, Protocol, runtime_checkable

from completion_orchestrator.entities import CacheEntry


@runtime_checkable
class DurableCacheStore(Protocol):
    """Protocol for durable cache storage backends.

    All methods are coroutines: every durable-tier access is a suspension
    point for the calling task.
    """

    async def find(self, key_hash: str) -> CacheEntry | None:
        """Fetch an entry by query hash.

        Args:
            key_hash: Hash of the normalized query

        Returns:
            The stored entry, or None if absent
        """
        ...

    async def upsert(self, key_hash: str, create: dict[str, Any], update: dict[str, Any]) -> None:
        """Create an entry or update an existing one.

        Args:
            key_hash: Hash of the normalized query
            create: Full field set written when the entry does not exist
            update: Fields overwritten when it does; fields absent here keep
                their stored values

        """
        ...

    async def increment_hits(self, key_hash: str, by: int, last_accessed_at: float) -> int | None:
        """Atomically add to an entry's hit counter and stamp its access time.

        Counters are shared by every process using the store, so callers
        never write an absolute hit count.

        Returns:
            The new hit count, or None if the entry does not exist
        """
        ...

    async def delete(self, key_hash: str) -> bool:
        """Delete a single entry.

        Returns:
            True if an entry was removed
        """
        ...

    async def delete_many(self, created_before: float | None = None) -> int:
        """Delete entries created before a timestamp, or all entries if None.

        Returns:
            Number of entries deleted
        """
        ...

    async def count(self) -> int:
        """Count stored entries."""
        ...

    async def find_top_by_hits(self, limit: int) -> list[CacheEntry]:
        """Return up to `limit` entries ordered by hits, highest first."""
        ...

    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        ...
