"""Tests for the Redis durable tier.

These need a Redis server at REDIS_URL and are skipped when none answers.
"""

import uuid

import pytest
import redis.asyncio as redis

from completion_orchestrator.config import get_redis_client
from completion_orchestrator.repositories import RedisCacheRepository
from completion_orchestrator.services import hash_query


async def open_repository() -> RedisCacheRepository:
    client = get_redis_client()
    try:
        await client.ping()
    except (redis.RedisError, OSError):
        await client.aclose()
        pytest.skip("Redis is not running")
    return RedisCacheRepository(redis_client=client, key_prefix=f"test_{uuid.uuid4().hex[:8]}")


def fields(query: str, created_at: float, hits: int = 1) -> dict:
    return {
        "query": query,
        "response": f"Answer to {query}",
        "provider_used": "gemini-2.5-flash#k1",
        "created_at": created_at,
        "hits": hits,
        "last_accessed_at": created_at,
    }


@pytest.mark.asyncio
async def test_upsert_creates_then_preserves_hits_and_created_at():
    repository = await open_repository()
    key = hash_query("how long should dough rise")
    try:
        await repository.upsert(key, create=fields("how long should dough rise", 100.0, hits=3), update={})
        await repository.upsert(
            key,
            create=fields("how long should dough rise", 500.0),
            update={"response": "About two hours.", "provider_used": "p2", "last_accessed_at": 500.0},
        )

        entry = await repository.find(key)
        assert entry.hits == 3
        assert entry.created_at == 100.0
        assert entry.response == "About two hours."
        assert entry.provider_used == "p2"
        assert entry.last_accessed_at == 500.0
        assert await repository.count() == 1
    finally:
        await repository.delete_many()
        await repository.close()


@pytest.mark.asyncio
async def test_hits_update_reorders_top_queries():
    repository = await open_repository()
    try:
        for i, hits in enumerate([1, 5, 3]):
            query = f"question {i} about pastry"
            await repository.upsert(hash_query(query), create=fields(query, 100.0, hits), update={})

        leader = hash_query("question 0 about pastry")
        await repository.upsert(leader, create=fields("question 0 about pastry", 100.0), update={"hits": 9})

        top = await repository.find_top_by_hits(2)
        assert [(entry.query, entry.hits) for entry in top] == [
            ("question 0 about pastry", 9),
            ("question 1 about pastry", 5),
        ]
        assert await repository.find_top_by_hits(0) == []
    finally:
        await repository.delete_many()
        await repository.close()


@pytest.mark.asyncio
async def test_delete_and_delete_many():
    repository = await open_repository()
    try:
        for i, created_at in enumerate([100.0, 200.0, 300.0]):
            query = f"question {i} about pastry"
            await repository.upsert(hash_query(query), create=fields(query, created_at), update={})

        assert await repository.delete(hash_query("question 2 about pastry")) is True
        assert await repository.delete(hash_query("question 2 about pastry")) is False

        # Strictly older than the cutoff
        assert await repository.delete_many(created_before=200.0) == 1
        assert await repository.find(hash_query("question 0 about pastry")) is None
        assert await repository.count() == 1

        assert await repository.delete_many() == 1
        assert await repository.count() == 0
        assert await repository.find_top_by_hits(10) == []
    finally:
        await repository.delete_many()
        await repository.close()


@pytest.mark.asyncio
async def test_health_check():
    repository = await open_repository()
    try:
        assert await repository.health_check() is True
    finally:
        await repository.close()


@pytest.mark.asyncio
async def test_increment_hits_adds_to_shared_counter():
    repository = await open_repository()
    key = hash_query("how long should dough rise")
    try:
        await repository.upsert(key, create=fields("how long should dough rise", 100.0, hits=6), update={})

        assert await repository.increment_hits(key, 1, 700.0) == 7

        entry = await repository.find(key)
        assert entry.hits == 7
        assert entry.last_accessed_at == 700.0
        assert [e.hits for e in await repository.find_top_by_hits(1)] == [7]

        # A missing entry is not recreated
        missing = hash_query("a question nobody asked")
        assert await repository.increment_hits(missing, 1, 700.0) is None
        assert await repository.find(missing) is None
    finally:
        await repository.delete_many()
        await repository.close()
