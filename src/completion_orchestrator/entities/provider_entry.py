"""Provider entry domain entity."""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from completion_orchestrator.protocols import CompletionProvider


class ProviderStatus(str, Enum):
    """Selection state of a provider entry.

    available -> exhausted -> available (after cooldown, evaluated lazily)
    available -> error (until reset)
    """

    AVAILABLE = "available"
    EXHAUSTED = "exhausted"
    ERROR = "error"


@dataclass
class ProviderEntry:
    """One provider configuration: a model variant reached with one credential.

    Created once at startup and mutated for the lifetime of the process.
    The credential itself is never stored here, only its reference label.
    """

    name: str
    model: str
    credential_ref: str
    priority: int
    provider: "CompletionProvider" = field(repr=False, compare=False)
    status: ProviderStatus = ProviderStatus.AVAILABLE
    last_error: str | None = None
    last_error_at: float | None = None
    request_count: int = 0
    error_count: int = 0
    total_response_time_ms: float = 0.0
    average_response_time_ms: float = 0.0

    def record_success(self, elapsed_ms: float) -> None:
        self.total_response_time_ms += elapsed_ms
        self.average_response_time_ms = self.total_response_time_ms / self.request_count

    def mark_exhausted(self, error: str, now: float) -> None:
        self.status = ProviderStatus.EXHAUSTED
        self.last_error = error
        self.last_error_at = now
        self.error_count += 1

    def mark_error(self, error: str, now: float) -> None:
        self.status = ProviderStatus.ERROR
        self.last_error = error
        self.last_error_at = now
        self.error_count += 1

    def cooldown_elapsed(self, now: float, cooldown: float) -> bool:
        return (
            self.status is ProviderStatus.EXHAUSTED
            and self.last_error_at is not None
            and now - self.last_error_at >= cooldown
        )

    def reactivate(self) -> None:
        self.status = ProviderStatus.AVAILABLE
        self.last_error = None

    def reset(self) -> None:
        """Zero the counters and force the entry back to available."""
        self.status = ProviderStatus.AVAILABLE
        self.last_error = None
        self.last_error_at = None
        self.request_count = 0
        self.error_count = 0
        self.total_response_time_ms = 0.0
        self.average_response_time_ms = 0.0

    def to_status(self) -> dict:
        """Diagnostic snapshot; contains no credential material."""
        return {
            "name": self.name,
            "model": self.model,
            "credential_ref": self.credential_ref,
            "status": self.status.value,
            "priority": self.priority,
            "request_count": self.request_count,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_error_at": self.last_error_at,
            "average_response_time_ms": round(self.average_response_time_ms),
        }
