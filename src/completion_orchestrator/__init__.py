"""Completion Orchestrator - cached, fallback-routed text generation.

This package sits between a conversational handler and one or more hosted
language-model providers. It answers repeated questions from a two-tier
response cache and routes the rest through a priority-ordered provider pool
that cools down providers on quota or outage errors.

Layers:
    - protocols: Interface contracts (DurableCacheStore, CompletionProvider)
    - repositories: Data access implementations (Redis, Gemini)
    - services: Business logic (ResponseCache, ProviderPool, CompletionOrchestrator)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from completion_orchestrator import (
        CompletionOrchestrator,
        ProviderPool,
        RedisCacheRepository,
        ResponseCache,
    )

    orchestrator = CompletionOrchestrator.create(
        cache=ResponseCache.create(store=RedisCacheRepository.create()),
        pool=ProviderPool.from_settings(),
    )
    await orchestrator.initialize()
    result = await orchestrator.generate_content("Explain the fermentation process")
    ```

For HTTP API:
    ```python
    from completion_orchestrator.api.app import app
    ```
"""

from completion_orchestrator.config import get_redis_client, settings
from completion_orchestrator.entities import (
    CacheEntry,
    GenerationResult,
    PoolResult,
    ProviderEntry,
    ProviderStatus,
)
from completion_orchestrator.errors import (
    AllProvidersUnavailable,
    CacheWriteFailure,
    ErrorCause,
    OrchestratorError,
    PoolExhausted,
    ProviderCallError,
    ProviderFatalFailure,
    ProviderTransientFailure,
    classify_error,
    is_retryable,
)
from completion_orchestrator.protocols import CompletionProvider, DurableCacheStore
from completion_orchestrator.repositories import GeminiProvider, RedisCacheRepository
from completion_orchestrator.services import CompletionOrchestrator, ProviderPool, ResponseCache

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Protocols (interfaces)
    "CompletionProvider",
    "DurableCacheStore",
    # Services (business logic)
    "CompletionOrchestrator",
    "ProviderPool",
    "ResponseCache",
    # Repositories (data access)
    "GeminiProvider",
    "RedisCacheRepository",
    # Entities (domain models)
    "CacheEntry",
    "GenerationResult",
    "PoolResult",
    "ProviderEntry",
    "ProviderStatus",
    # Errors
    "OrchestratorError",
    "ProviderCallError",
    "ProviderTransientFailure",
    "ProviderFatalFailure",
    "PoolExhausted",
    "AllProvidersUnavailable",
    "CacheWriteFailure",
    "ErrorCause",
    "classify_error",
    "is_retryable",
]
