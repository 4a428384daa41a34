"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> CompletionOrchestrator -> ResponseCache -> DurableCacheStore
                                      -> ProviderPool  -> CompletionProvider

Usage:
    ```python
    from completion_orchestrator.services import (
        CompletionOrchestrator,
        ProviderPool,
        ResponseCache,
    )

    orchestrator = CompletionOrchestrator.create(
        cache=ResponseCache.create(store=RedisCacheRepository.create()),
        pool=ProviderPool.from_settings(),
    )
    ```
"""

from .orchestrator import CompletionOrchestrator, build_cache_key
from .provider_pool import ProviderPool, build_full_prompt
from .response_cache import ResponseCache, hash_query, normalize_query

__all__ = [
    "CompletionOrchestrator",
    "ProviderPool",
    "ResponseCache",
    "build_cache_key",
    "build_full_prompt",
    "hash_query",
    "normalize_query",
]
