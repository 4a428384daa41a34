"""Tests for the two-tier response cache."""

import pytest

from completion_orchestrator.entities import CacheEntry
from completion_orchestrator.errors import CacheWriteFailure
from completion_orchestrator.services import hash_query, normalize_query
from completion_orchestrator.services.response_cache import ResponseCache

QUERY = "explain the fermentation process"
RESPONSE = "Fermentation converts sugars into acids, gases or alcohol."


def test_normalize_query_ignores_case_whitespace_and_punctuation():
    assert normalize_query("  Explain   the\tFermentation process?! ") == QUERY
    assert hash_query("EXPLAIN the fermentation, process.") == hash_query(QUERY)


def test_normalize_query_keeps_accented_letters():
    assert normalize_query("¿Qué es la fermentación?") == "qué es la fermentación"
    assert hash_query("qué es la fermentación") != hash_query("que es la fermentacion")


@pytest.mark.asyncio
async def test_set_then_get_returns_response(cache, store):
    assert await cache.set(QUERY, RESPONSE, "p1") is True

    assert await cache.get(QUERY) == RESPONSE

    entry = cache.peek(QUERY)
    assert entry.hits == 2
    assert store.rows[hash_query(QUERY)].response == RESPONSE
    await cache.drain()
    assert store.rows[hash_query(QUERY)].hits == 2


@pytest.mark.asyncio
async def test_get_matches_normalized_variants(cache):
    await cache.set(QUERY, RESPONSE, "p1")

    assert await cache.get("  EXPLAIN the Fermentation   process!! ") == RESPONSE


@pytest.mark.asyncio
async def test_short_query_is_a_miss_and_never_touches_store(cache, store):
    assert await cache.get("hi there") is None
    assert await cache.set("hi there", RESPONSE, "p1") is False

    stats = await cache.get_stats()
    assert stats["misses"] == 1
    assert stats["hits"] == 0
    assert store.rows == {}
    assert store.upserts == []
    assert cache.memory_size == 0


@pytest.mark.asyncio
async def test_degenerate_response_is_not_cached(cache, store):
    assert await cache.set(QUERY, "ok", "p1") is False
    assert await cache.set(QUERY, "", "p1") is False
    assert cache.memory_size == 0
    assert store.rows == {}


@pytest.mark.asyncio
async def test_set_truncates_query_and_response(cache, store):
    long_query = "q" * 800
    long_response = "r" * 3000

    await cache.set(long_query, long_response, "p1")

    row = store.rows[hash_query(long_query)]
    assert len(row.query) == 500
    assert len(row.response) == 2000


@pytest.mark.asyncio
async def test_expired_entry_is_absent_and_removed_from_both_tiers(cache, store, clock):
    await cache.set(QUERY, RESPONSE, "p1")
    key = hash_query(QUERY)
    cache.peek(QUERY).created_at = clock.now - 3600 - 1
    store.rows[key].created_at = clock.now - 3600 - 1

    assert await cache.get(QUERY) is None

    assert cache.peek(QUERY) is None
    assert key not in store.rows
    assert (await cache.get_stats())["misses"] == 1


@pytest.mark.asyncio
async def test_entry_expires_exactly_at_ttl(cache, clock):
    await cache.set(QUERY, RESPONSE, "p1")
    created_at = clock.now

    clock.now = created_at + 3599.999
    assert await cache.get(QUERY) == RESPONSE
    await cache.drain()

    clock.now = created_at + 3600
    assert await cache.get(QUERY) is None


@pytest.mark.asyncio
async def test_lru_eviction_removes_only_least_recently_accessed(cache, store, clock):
    queries = [f"question number {i} about bread" for i in range(3)]
    for query in queries:
        await cache.set(query, RESPONSE, "p1")
        clock.advance(1)

    # Touch the oldest so the second one becomes least recently used
    assert await cache.get(queries[0]) == RESPONSE
    clock.advance(1)

    await cache.set("question number 3 about bread", RESPONSE, "p1")

    assert cache.memory_size == 3
    assert cache.peek(queries[1]) is None
    assert cache.peek(queries[0]) is not None
    assert cache.peek(queries[2]) is not None
    # Hot-tier eviction never deletes from the durable tier
    assert hash_query(queries[1]) in store.rows


@pytest.mark.asyncio
async def test_durable_upsert_preserves_hits_and_created_at(cache, store, clock):
    await cache.set(QUERY, RESPONSE, "p1")
    key = hash_query(QUERY)
    store.rows[key].hits = 7
    created_at = store.rows[key].created_at

    clock.advance(60)
    await cache.set(QUERY, "A refreshed answer about fermentation.", "p2")

    row = store.rows[key]
    assert row.hits == 7
    assert row.created_at == created_at
    assert row.response == "A refreshed answer about fermentation."
    assert row.provider_used == "p2"
    assert row.last_accessed_at == clock.now


@pytest.mark.asyncio
async def test_durable_hit_promotes_and_increments_synchronously(store, clock):
    key = hash_query(QUERY)
    store.rows[key] = CacheEntry(
        key_hash=key,
        query=QUERY,
        response=RESPONSE,
        provider_used="p1",
        created_at=clock.now - 10,
        hits=4,
        last_accessed_at=clock.now - 10,
    )
    cache = ResponseCache(store=store, ttl=3600, max_memory_size=3, clock=clock)

    assert await cache.get(QUERY) == RESPONSE

    assert store.rows[key].hits == 5
    assert store.rows[key].last_accessed_at == clock.now
    assert cache.peek(QUERY).hits == 5


@pytest.mark.asyncio
async def test_durable_hit_evicts_lru_when_hot_tier_is_full(cache, store, clock):
    for i in range(3):
        await cache.set(f"question number {i} about bread", RESPONSE, "p1")
        clock.advance(1)
    key = hash_query(QUERY)
    store.rows[key] = CacheEntry(key, QUERY, RESPONSE, "p1", clock.now, 1, clock.now)

    assert await cache.get(QUERY) == RESPONSE

    assert cache.memory_size == 3
    assert cache.peek(QUERY) is not None
    assert cache.peek("question number 0 about bread") is None


@pytest.mark.asyncio
async def test_durable_read_failure_is_a_miss(cache, store):
    store.fail_reads = True

    assert await cache.get(QUERY) is None
    assert (await cache.get_stats())["misses"] == 1


@pytest.mark.asyncio
async def test_durable_write_failure_raises_but_keeps_hot_entry(cache, store):
    store.fail_writes = True

    with pytest.raises(CacheWriteFailure):
        await cache.set(QUERY, RESPONSE, "p1")

    assert await cache.get(QUERY) == RESPONSE
    await cache.drain()


@pytest.mark.asyncio
async def test_initialize_warms_most_hit_entries(store, clock):
    for i in range(5):
        query = f"popular question {i} about cakes"
        store.rows[hash_query(query)] = CacheEntry(
            hash_query(query), query, RESPONSE, "p1", clock.now, hits=i, last_accessed_at=clock.now
        )
    cache = ResponseCache(store=store, ttl=3600, max_memory_size=100, warm_start_size=2, clock=clock)

    assert await cache.initialize() == 2

    assert cache.peek("popular question 4 about cakes") is not None
    assert cache.peek("popular question 3 about cakes") is not None
    assert cache.peek("popular question 0 about cakes") is None


@pytest.mark.asyncio
async def test_initialize_survives_store_failure(store, clock):
    async def broken(limit):
        raise ConnectionError("store unreachable")

    store.find_top_by_hits = broken
    cache = ResponseCache(store=store, clock=clock)

    assert await cache.initialize() == 0
    assert cache.memory_size == 0


@pytest.mark.asyncio
async def test_stats_report_hit_rate_and_savings(cache):
    await cache.set(QUERY, RESPONSE, "p1")
    await cache.get(QUERY)
    await cache.get(QUERY)
    await cache.get("something never cached before")

    stats = await cache.get_stats()

    assert stats["hits"] == 2
    assert stats["misses"] == 1
    assert stats["hit_rate"] == pytest.approx(2 / 3, abs=1e-4)
    assert stats["saved_calls"] == 2
    assert stats["memory_entries"] == 1
    assert stats["durable_entries"] == 1
    assert stats["estimated_savings"] == "$0.0004 USD"


@pytest.mark.asyncio
async def test_clean_expired_deletes_old_durable_rows(cache, store, clock):
    await cache.set("an old question about sourdough", RESPONSE, "p1")
    clock.advance(4000)
    await cache.set(QUERY, RESPONSE, "p1")

    assert await cache.clean_expired() == 1

    assert list(store.rows) == [hash_query(QUERY)]
    assert cache.peek("an old question about sourdough") is None


@pytest.mark.asyncio
async def test_clear_all_empties_both_tiers_and_resets_stats(cache, store):
    await cache.set(QUERY, RESPONSE, "p1")
    await cache.get(QUERY)
    await cache.drain()

    assert await cache.clear_all() == 1

    stats = await cache.get_stats()
    assert stats["hits"] == 0
    assert stats["misses"] == 0
    assert stats["memory_entries"] == 0
    assert stats["durable_entries"] == 0


@pytest.mark.asyncio
async def test_top_queries_ordered_by_hits(cache, store):
    await cache.set(QUERY, RESPONSE, "p1")
    await cache.set("how long does proofing take", RESPONSE, "p1")
    await cache.get(QUERY)
    await cache.drain()

    top = await cache.get_top_queries(limit=1)

    assert top == [{"query": QUERY, "hits": 2}]


@pytest.mark.asyncio
async def test_hit_counts_from_two_processes_accumulate(store, clock):
    """Caches sharing one durable store add to the counter instead of overwriting it."""
    first = ResponseCache(store=store, ttl=3600, max_memory_size=10, clock=clock)
    second = ResponseCache(store=store, ttl=3600, max_memory_size=10, clock=clock)
    await first.set(QUERY, RESPONSE, "p1")

    for _ in range(5):
        assert await second.get(QUERY) == RESPONSE
    await second.drain()
    assert store.rows[hash_query(QUERY)].hits == 6

    assert await first.get(QUERY) == RESPONSE
    await first.drain()

    assert store.rows[hash_query(QUERY)].hits == 7
    top = await first.get_top_queries(limit=1)
    assert top == [{"query": QUERY, "hits": 7}]


@pytest.mark.asyncio
async def test_refresh_does_not_lower_shared_hit_count(store, clock):
    first = ResponseCache(store=store, ttl=3600, max_memory_size=10, clock=clock)
    second = ResponseCache(store=store, ttl=3600, max_memory_size=10, clock=clock)
    await first.set(QUERY, RESPONSE, "p1")
    for _ in range(3):
        await second.get(QUERY)
    await second.drain()

    await first.set(QUERY, "A refreshed answer about fermentation.", "p2")
    await first.get(QUERY)
    await first.drain()

    assert store.rows[hash_query(QUERY)].hits == 5


@pytest.mark.asyncio
async def test_durable_hit_survives_counter_write_failure(store, clock):
    key = hash_query(QUERY)
    store.rows[key] = CacheEntry(key, QUERY, RESPONSE, "p1", clock.now - 10, 4, clock.now - 10)
    cache = ResponseCache(store=store, ttl=3600, max_memory_size=3, clock=clock)
    store.fail_writes = True

    assert await cache.get(QUERY) == RESPONSE

    stats = await cache.get_stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 0
    assert cache.peek(QUERY) is not None
    assert store.rows[key].hits == 4


def test_remember_fills_hot_tier_without_touching_store(cache, store):
    entry = cache.remember(QUERY, RESPONSE, "p1")

    assert entry is not None
    assert cache.peek(QUERY) is entry
    assert store.upserts == []
    assert cache.remember("too short", RESPONSE, "p1") is None
