"""Cache entry domain entity."""

from dataclasses import dataclass

MAX_QUERY_LENGTH = 500
MAX_RESPONSE_LENGTH = 2000


@dataclass
class CacheEntry:
    """A cached response, keyed by the hash of its normalized query.

    Attributes:
        key_hash: SHA-256 hex digest of the normalized query text
        query: Original query, truncated to MAX_QUERY_LENGTH
        response: Generated text, truncated to MAX_RESPONSE_LENGTH
        provider_used: Name of the ProviderEntry that produced the response
        created_at: Unix timestamp, start of the fixed TTL window
        hits: Number of reuses, counting the creating write
        last_accessed_at: Unix timestamp used for LRU ordering
    """

    key_hash: str
    query: str
    response: str
    provider_used: str
    created_at: float
    hits: int = 1
    last_accessed_at: float = 0.0

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.created_at >= ttl

    def touch(self, now: float) -> None:
        self.hits += 1
        self.last_accessed_at = now
