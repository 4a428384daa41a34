"""Completion orchestrator: the single entry point for generated text.

Flow: response cache -> provider pool on a miss -> hot-tier insert, durable
write-through in the background -> GenerationResult with diagnostics.
"""

import asyncio
import logging
from typing import Any

from completion_orchestrator.entities import CacheEntry, GenerationResult
from completion_orchestrator.entities.generation_result import CACHE_PROVIDER
from completion_orchestrator.errors import CacheWriteFailure

from .provider_pool import ProviderPool
from .response_cache import ResponseCache

logger = logging.getLogger(__name__)


def build_cache_key(prompt: str, system_instruction: str | None = None) -> str:
    """Cache identity of a request.

    The system instruction is part of the key, so one prompt under two
    instructions never shares an entry.
    """
    if system_instruction:
        return f"{system_instruction}:{prompt}"
    return prompt


class CompletionOrchestrator:
    """Cache-first completion service over a fallback provider pool.

    Created once at process start and passed to whatever handles chat
    messages; it owns no global state.

    The hot tier is written before generate_content returns, so an identical
    request right after is a hit. The durable write is at-most-once: it runs
    as a background task and a failure is logged and dropped.

    Example:
        ```python
        orchestrator = CompletionOrchestrator.create(
            cache=ResponseCache.create(store=RedisCacheRepository.create()),
            pool=ProviderPool.from_settings(),
        )
        await orchestrator.initialize()

        result = await orchestrator.generate_content(
            "What sizes does the blue jacket come in?",
            system_instruction="You are a helpful sales assistant.",
        )
        print(result.text, result.provider_used, result.fallback_occurred)
        ```
    """

    def __init__(self, cache: ResponseCache, pool: ProviderPool) -> None:
        """Initialize the orchestrator.

        Args:
            cache: Two-tier response cache (required).
            pool: Provider pool (required).
        """
        self._cache = cache
        self._pool = pool
        self._background: set[asyncio.Task] = set()

    @classmethod
    def create(cls, cache: ResponseCache, pool: ProviderPool) -> "CompletionOrchestrator":
        """Factory method mirroring the other services."""
        return cls(cache=cache, pool=pool)

    async def initialize(self) -> None:
        """Warm the cache from the durable tier."""
        await self._cache.initialize()

    async def generate_content(self, prompt: str, system_instruction: str | None = None) -> GenerationResult:
        """Generate text for a prompt, from cache when possible.

        Args:
            prompt: User prompt
            system_instruction: Optional instruction for the model

        Returns:
            GenerationResult with text and diagnostics

        Raises:
            ProviderFatalFailure: The request cannot be answered
            PoolExhausted: No provider could answer right now
        """
        cache_key = build_cache_key(prompt, system_instruction)

        cached = await self._cache.get(cache_key)
        if cached is not None:
            logger.info("Response served from cache")
            return GenerationResult(
                text=cached,
                provider_used=CACHE_PROVIDER,
                fallback_occurred=False,
                attempted_providers=[CACHE_PROVIDER],
            )

        result = await self._pool.generate_content(prompt, system_instruction)

        entry = self._cache.remember(cache_key, result.text, result.provider_used)
        if entry is not None:
            self._spawn_write_through(entry)

        return GenerationResult(
            text=result.text,
            provider_used=result.provider_used,
            fallback_occurred=result.attempt_index > 0,
            attempted_providers=list(result.attempted_providers),
        )

    def _spawn_write_through(self, entry: CacheEntry) -> None:
        task = asyncio.create_task(self._cache.persist(entry))
        self._background.add(task)
        task.add_done_callback(self._on_write_done)

    def _on_write_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if isinstance(error, CacheWriteFailure):
            logger.error("%s", error)
        elif error is not None:
            logger.error("Unexpected error writing response to cache", exc_info=error)

    async def drain(self) -> None:
        """Wait for outstanding write-through and hit-propagation tasks."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        await self._cache.drain()

    # Administrative interface

    def get_system_status(self) -> dict[str, Any]:
        return self._pool.get_system_status()

    async def get_stats(self) -> dict[str, Any]:
        return await self._cache.get_stats()

    def reset_stats(self, name: str) -> bool:
        return self._pool.reset_stats(name)

    def reset_model(self, model: str) -> int:
        return self._pool.reset_model(model)

    def reset_all(self) -> None:
        self._pool.reset_all()

    async def clean_expired(self) -> int:
        return await self._cache.clean_expired()

    async def clear_all(self) -> int:
        return await self._cache.clear_all()

    async def get_top_queries(self, limit: int = 10) -> list[dict[str, Any]]:
        return await self._cache.get_top_queries(limit)

    async def is_healthy(self) -> bool:
        return await self._cache.health_check()

    async def close(self) -> None:
        """Flush background work and release provider clients."""
        await self.drain()
        await self._pool.close()

    @property
    def cache(self) -> ResponseCache:
        """Get the response cache (for testing)."""
        return self._cache

    @property
    def pool(self) -> ProviderPool:
        """Get the provider pool (for testing)."""
        return self._pool
