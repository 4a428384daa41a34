"""Generation result domain entities."""

from dataclasses import dataclass, field

CACHE_PROVIDER = "cache"


@dataclass(frozen=True)
class PoolResult:
    """Successful call made by the provider pool.

    Attributes:
        text: Generated text
        provider_used: Name of the entry that answered
        attempt_index: Zero-based attempt that succeeded (0 = first choice)
        attempted_providers: Entry names tried, in order, including the winner
    """

    text: str
    provider_used: str
    attempt_index: int
    attempted_providers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GenerationResult:
    """What generate_content hands back to the conversational handler."""

    text: str
    provider_used: str
    fallback_occurred: bool
    attempted_providers: list[str] = field(default_factory=list)

    @property
    def from_cache(self) -> bool:
        return self.provider_used == CACHE_PROVIDER
