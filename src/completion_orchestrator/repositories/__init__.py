"""Repository layer for data access.

This layer abstracts external dependencies (Redis, model provider APIs)
behind protocol-based interfaces. This enables:
- Easy swapping of implementations (Redis -> PostgreSQL, Gemini -> others)
- Unit testing with in-memory implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from completion_orchestrator.protocols import CompletionProvider, DurableCacheStore

from .gemini_provider import GeminiProvider
from .redis_repository import RedisCacheRepository

__all__ = [
    "CompletionProvider",
    "DurableCacheStore",
    "GeminiProvider",
    "RedisCacheRepository",
]
