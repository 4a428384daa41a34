"""Two-tier response cache.

Hot tier: a bounded in-process dict with LRU eviction.
Cold tier: a DurableCacheStore shared across processes and restarts.

Entries are keyed by the SHA-256 of the normalized query, live for a fixed TTL
from creation, and are removed from whichever tier they are found expired in.
"""

import asyncio
import hashlib
import logging
import re
import time
from collections.abc import Callable, Coroutine
from typing import Any

from completion_orchestrator.config import settings
from completion_orchestrator.entities import CacheEntry
from completion_orchestrator.entities.cache_entry import MAX_QUERY_LENGTH, MAX_RESPONSE_LENGTH
from completion_orchestrator.errors import CacheWriteFailure
from completion_orchestrator.protocols import DurableCacheStore

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace.

    `\\w` is Unicode-aware, so accented letters (á, ñ, ü...) are kept.
    """
    text = _PUNCTUATION.sub("", query.lower())
    return _WHITESPACE.sub(" ", text).strip()


def hash_query(query: str) -> str:
    """Stable cache key for a query."""
    return hashlib.sha256(normalize_query(query).encode("utf-8")).hexdigest()


def _preview(query: str) -> str:
    return query[:50] + ("..." if len(query) > 50 else "")


class ResponseCache:
    """Hot/durable response cache with hit/miss accounting.

    Hot-tier reads and writes happen in synchronous sections (no await between
    the lookup and the mutation), so concurrent tasks on the event loop never
    see a half-evicted table.

    Example:
        ```python
        cache = ResponseCache.create(store=RedisCacheRepository.create())
        await cache.initialize()

        await cache.set("explain the fermentation process", text, "gemini-2.5-flash#k1")
        text = await cache.get("Explain the  fermentation process!")
        ```
    """

    def __init__(
        self,
        store: DurableCacheStore,
        ttl: float | None = None,
        max_memory_size: int | None = None,
        min_query_length: int | None = None,
        min_response_length: int | None = None,
        warm_start_size: int | None = None,
        cost_per_call: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the response cache.

        Args:
            store: Durable tier (required).
            ttl: Entry lifetime in seconds from creation. Defaults to settings.
            max_memory_size: Hot-tier bound. Defaults to settings.
            min_query_length: Shorter queries are never cached. Defaults to settings.
            min_response_length: Shorter responses are never cached. Defaults to settings.
            warm_start_size: Entries pre-loaded by initialize(). Defaults to settings.
            cost_per_call: USD per avoided provider call. Defaults to settings.
            clock: Returns the current Unix time in seconds.
        """
        self._store = store
        self._ttl = ttl or settings.cache_ttl
        self._max_memory_size = max_memory_size or settings.cache_max_memory_size
        self._min_query_length = settings.cache_min_query_length if min_query_length is None else min_query_length
        self._min_response_length = (
            settings.cache_min_response_length if min_response_length is None else min_response_length
        )
        self._warm_start_size = settings.cache_warm_start_size if warm_start_size is None else warm_start_size
        self._cost_per_call = settings.cache_cost_per_call if cost_per_call is None else cost_per_call
        self._clock = clock

        self._memory: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._background: set[asyncio.Task] = set()

    @classmethod
    def create(cls, store: DurableCacheStore, **overrides: Any) -> "ResponseCache":
        """Factory method to create ResponseCache with settings defaults.

        Args:
            store: Durable tier (required).
            **overrides: Any keyword accepted by __init__.

        Returns:
            Configured ResponseCache
        """
        return cls(store=store, **overrides)

    async def initialize(self) -> int:
        """Pre-warm the hot tier with the most-hit durable entries.

        A durable-tier failure leaves the cache cold but usable.

        Returns:
            Number of entries loaded
        """
        limit = min(self._warm_start_size, self._max_memory_size)
        try:
            popular = await self._store.find_top_by_hits(limit)
        except Exception:
            logger.exception("Failed to warm the response cache from the durable tier")
            return 0

        now = self._clock()
        loaded = 0
        for entry in popular:
            if entry.is_expired(now, self._ttl):
                continue
            self._memory[entry.key_hash] = entry
            loaded += 1

        logger.info("Response cache warmed with %d popular entries", loaded)
        return loaded

    async def get(self, query: str) -> str | None:
        """Look a query up in the hot tier, then the durable tier.

        Args:
            query: Raw query text

        Returns:
            The cached response, or None on a miss
        """
        if not query or len(query) < self._min_query_length:
            self._misses += 1
            return None

        key_hash = hash_query(query)
        now = self._clock()

        entry = self._get_from_memory(key_hash, now)
        if entry is not None:
            self._hits += 1
            logger.info("Cache HIT (memory): %r (%d hits)", _preview(query), entry.hits)
            self._spawn(self._propagate_hits(entry))
            return entry.response

        try:
            stored = await self._store.find(key_hash)
            if stored is not None:
                if not stored.is_expired(now, self._ttl):
                    return await self._promote(stored, query, now)

                await self._store.delete(key_hash)
                logger.debug("Removed expired durable entry %s", key_hash[:12])
        except Exception:
            logger.exception("Durable cache lookup failed for %r", _preview(query))

        self._misses += 1
        logger.debug("Cache MISS: %r", _preview(query))
        return None

    async def set(self, query: str, response: str, provider_used: str) -> bool:
        """Store a response in both tiers.

        Args:
            query: Raw query text
            response: Generated text
            provider_used: Name of the provider entry that produced it

        Returns:
            False if the pair was rejected as not worth caching

        Raises:
            CacheWriteFailure: If the durable-tier upsert fails
        """
        entry = self.remember(query, response, provider_used)
        if entry is None:
            return False
        await self.persist(entry)
        return True

    def remember(self, query: str, response: str, provider_used: str) -> CacheEntry | None:
        """Validate, truncate and insert into the hot tier without awaiting.

        The next identical request in this process is a hit as soon as this
        returns, whether or not the durable write has happened yet.

        Returns:
            The hot-tier entry, or None if the pair is not worth caching
        """
        if not query or len(query) < self._min_query_length:
            return None
        if not response or len(response) < self._min_response_length:
            return None

        now = self._clock()
        entry = CacheEntry(
            key_hash=hash_query(query),
            query=query[:MAX_QUERY_LENGTH],
            response=response[:MAX_RESPONSE_LENGTH],
            provider_used=provider_used,
            created_at=now,
            hits=1,
            last_accessed_at=now,
        )
        self._put_in_memory(entry)
        logger.debug("Cache SET: %r", _preview(query))
        return entry

    async def persist(self, entry: CacheEntry) -> None:
        """Upsert a remembered entry into the durable tier.

        An existing durable row keeps its hits and created_at. A new row starts
        at one hit; hot hits taken before this runs are counted separately
        through increment_hits.

        Raises:
            CacheWriteFailure: If the durable-tier upsert fails
        """
        try:
            await self._store.upsert(
                entry.key_hash,
                create={**self._fields(entry), "hits": 1},
                update={
                    "response": entry.response,
                    "provider_used": entry.provider_used,
                    "last_accessed_at": entry.last_accessed_at,
                },
            )
        except Exception as e:
            raise CacheWriteFailure(entry.key_hash, str(e)) from e

    def _get_from_memory(self, key_hash: str, now: float) -> CacheEntry | None:
        entry = self._memory.get(key_hash)
        if entry is None:
            return None
        if entry.is_expired(now, self._ttl):
            del self._memory[key_hash]
            return None
        entry.touch(now)
        return entry

    def _put_in_memory(self, entry: CacheEntry) -> None:
        if entry.key_hash not in self._memory and len(self._memory) >= self._max_memory_size:
            self._evict_lru()
        self._memory[entry.key_hash] = entry

    def _evict_lru(self) -> None:
        if not self._memory:
            return
        oldest = min(self._memory.values(), key=lambda e: e.last_accessed_at)
        del self._memory[oldest.key_hash]
        logger.debug("Cache eviction: %s", oldest.key_hash[:12])

    async def _promote(self, stored: CacheEntry, query: str, now: float) -> str:
        """Count a durable hit, then copy the entry into the hot tier."""
        stored.touch(now)
        try:
            hits = await self._store.increment_hits(stored.key_hash, 1, now)
        except Exception:
            logger.warning("Failed to count durable hit for %r", _preview(query), exc_info=True)
        else:
            if hits is not None:
                stored.hits = hits
        self._put_in_memory(stored)
        self._hits += 1
        logger.info("Cache HIT (durable): %r (%d hits)", _preview(query), stored.hits)
        return stored.response

    async def _propagate_hits(self, entry: CacheEntry) -> None:
        await self._store.increment_hits(entry.key_hash, 1, entry.last_accessed_at)

    @staticmethod
    def _fields(entry: CacheEntry) -> dict[str, Any]:
        return {
            "query": entry.query,
            "response": entry.response,
            "provider_used": entry.provider_used,
            "created_at": entry.created_at,
            "hits": entry.hits,
            "last_accessed_at": entry.last_accessed_at,
        }

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Hit-count propagation failed: %s", task.exception())

    async def drain(self) -> None:
        """Wait for pending hit-count propagation."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with hit/miss counters, tier sizes and savings
        """
        total = self._hits + self._misses
        try:
            durable_entries = await self._store.count()
        except Exception:
            logger.exception("Failed to count durable cache entries")
            durable_entries = 0

        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 4) if total else 0.0,
            "memory_entries": len(self._memory),
            "durable_entries": durable_entries,
            "saved_calls": self._hits,
            "estimated_savings": f"${self._hits * self._cost_per_call:.4f} USD",
            "ttl_seconds": self._ttl,
            "max_memory_size": self._max_memory_size,
        }

    async def clean_expired(self) -> int:
        """Delete durable entries older than the TTL.

        Expired hot-tier entries are dropped as well.

        Returns:
            Number of durable entries deleted
        """
        now = self._clock()
        for key_hash in [k for k, e in self._memory.items() if e.is_expired(now, self._ttl)]:
            del self._memory[key_hash]

        removed = await self._store.delete_many(created_before=now - self._ttl)
        logger.info("Cache cleanup: %d expired entries removed", removed)
        return removed

    async def clear_all(self) -> int:
        """Empty both tiers and reset statistics.

        Returns:
            Number of durable entries deleted
        """
        self._memory.clear()
        self._hits = 0
        self._misses = 0
        removed = await self._store.delete_many()
        logger.info("Response cache cleared (%d durable entries)", removed)
        return removed

    async def get_top_queries(self, limit: int = 10) -> list[dict[str, Any]]:
        """Most reused cached queries.

        Args:
            limit: Maximum number of queries to return

        Returns:
            List of {"query", "hits"} dicts, highest hits first
        """
        entries = await self._store.find_top_by_hits(limit)
        return [{"query": entry.query, "hits": entry.hits} for entry in entries]

    async def health_check(self) -> bool:
        return await self._store.health_check()

    @property
    def memory_size(self) -> int:
        return len(self._memory)

    def peek(self, query: str) -> CacheEntry | None:
        """Return the hot-tier entry for a query without touching it (for diagnostics)."""
        return self._memory.get(hash_query(query))

    @property
    def store(self) -> DurableCacheStore:
        """Get the underlying durable store (for testing)."""
        return self._store
