"""Domain entities for internal representation.

These are plain dataclasses used by services and repositories. They are NOT
used for API contracts - use DTOs from the dto package for that.

Unlike pure value objects, CacheEntry and ProviderEntry are mutable: the
cache bumps hit counters in place and the pool drives each provider entry
through its status transitions for the lifetime of the process.
"""

from .cache_entry import CacheEntry
from .generation_result import GenerationResult, PoolResult
from .provider_entry import ProviderEntry, ProviderStatus

__all__ = [
    "CacheEntry",
    "GenerationResult",
    "PoolResult",
    "ProviderEntry",
    "ProviderStatus",
]
