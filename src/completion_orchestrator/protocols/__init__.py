"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis -> PostgreSQL, Gemini -> OpenAI, etc.)
- Unit testing with in-memory implementations
- Clear separation of concerns

Usage:
    ```python
    from completion_orchestrator.protocols import CompletionProvider, DurableCacheStore

    # Type hints work with any implementation
    store: DurableCacheStore = RedisCacheRepository.create()
    provider: CompletionProvider = GeminiProvider.create(model_name="gemini-2.5-flash")
    ```
"""

from .cache_store import DurableCacheStore
from .completion_provider import CompletionProvider

__all__ = [
    "CompletionProvider",
    "DurableCacheStore",
]
