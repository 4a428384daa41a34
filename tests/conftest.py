"""Shared fakes for the test suite."""

import asyncio
import dataclasses
from typing import Any

import pytest

from completion_orchestrator.entities import CacheEntry, ProviderEntry
from completion_orchestrator.services import CompletionOrchestrator, ProviderPool, ResponseCache


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryCacheStore:
    """DurableCacheStore backed by a dict, with the same upsert rules as Redis."""

    def __init__(self) -> None:
        self.rows: dict[str, CacheEntry] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.upserts: list[tuple[str, dict, dict]] = []

    async def find(self, key_hash: str) -> CacheEntry | None:
        if self.fail_reads:
            raise ConnectionError("store unreachable")
        row = self.rows.get(key_hash)
        return dataclasses.replace(row) if row else None

    async def upsert(self, key_hash: str, create: dict[str, Any], update: dict[str, Any]) -> None:
        if self.fail_writes:
            raise ConnectionError("store unreachable")
        self.upserts.append((key_hash, dict(create), dict(update)))
        row = self.rows.get(key_hash)
        if row is None:
            self.rows[key_hash] = CacheEntry(key_hash=key_hash, **create)
        else:
            self.rows[key_hash] = dataclasses.replace(row, **update)

    async def increment_hits(self, key_hash: str, by: int, last_accessed_at: float) -> int | None:
        if self.fail_writes:
            raise ConnectionError("store unreachable")
        row = self.rows.get(key_hash)
        if row is None:
            return None
        row.hits += by
        row.last_accessed_at = last_accessed_at
        return row.hits

    async def delete(self, key_hash: str) -> bool:
        return self.rows.pop(key_hash, None) is not None

    async def delete_many(self, created_before: float | None = None) -> int:
        doomed = [
            key
            for key, row in self.rows.items()
            if created_before is None or row.created_at < created_before
        ]
        for key in doomed:
            del self.rows[key]
        return len(doomed)

    async def count(self) -> int:
        return len(self.rows)

    async def find_top_by_hits(self, limit: int) -> list[CacheEntry]:
        ranked = sorted(self.rows.values(), key=lambda row: row.hits, reverse=True)
        return [dataclasses.replace(row) for row in ranked[:limit]]

    async def health_check(self) -> bool:
        return not self.fail_reads


class ScriptedProvider:
    """CompletionProvider returning or raising from a script.

    Each outcome is a string (returned) or an exception (raised). The last
    outcome repeats once the script runs out.
    """

    def __init__(self, *outcomes: Any, model_name: str = "fake-model", delay: float = 0.0) -> None:
        self._outcomes = list(outcomes) or ["A perfectly ordinary generated answer."]
        self._model_name = model_name
        self._delay = delay
        self.calls: list[tuple[str, str]] = []

    @property
    def model_name(self) -> str:
        return self._model_name

    async def call(self, credential_ref: str, full_prompt: str) -> str:
        self.calls.append((credential_ref, full_prompt))
        if self._delay:
            await asyncio.sleep(self._delay)
        index = min(len(self.calls) - 1, len(self._outcomes) - 1)
        outcome = self._outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def make_entry(name: str, priority: int, provider: Any, model: str | None = None) -> ProviderEntry:
    return ProviderEntry(
        name=name,
        model=model or name,
        credential_ref="GEMINI_API_KEY",
        priority=priority,
        provider=provider,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def cache(store, clock) -> ResponseCache:
    return ResponseCache(
        store=store,
        ttl=3600,
        max_memory_size=3,
        min_query_length=10,
        min_response_length=10,
        warm_start_size=50,
        cost_per_call=0.0002,
        clock=clock,
    )


@pytest.fixture
def make_pool(clock):
    def _make(*entries: ProviderEntry, max_retries: int = 3, cooldown: float = 900, timeout: float = 5) -> ProviderPool:
        return ProviderPool(
            entries,
            cooldown_seconds=cooldown,
            max_retries=max_retries,
            timeout=timeout,
            clock=clock,
        )

    return _make


@pytest.fixture
def make_orchestrator(cache, make_pool):
    def _make(*entries: ProviderEntry, **pool_options: Any) -> CompletionOrchestrator:
        return CompletionOrchestrator(cache=cache, pool=make_pool(*entries, **pool_options))

    return _make
