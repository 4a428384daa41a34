"""Error taxonomy for the completion layer.

Provider adapters raise ProviderCallError tagged with an ErrorCause. The pool
only looks at the tag (via classify_error) to decide between cooling a provider
down and failing the request outright. Untagged exceptions are still classified
by type and, as a last resort, by their message text.
"""

import asyncio
from enum import Enum

import httpx


class ErrorCause(str, Enum):
    """Closed set of failure causes at the provider-call boundary."""

    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    NETWORK = "network"
    REJECTED = "rejected"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


RETRYABLE_CAUSES = frozenset({ErrorCause.RATE_LIMITED, ErrorCause.UNAVAILABLE, ErrorCause.NETWORK})

_RATE_LIMIT_MARKERS = ("429", "quota", "rate limit", "too many requests", "resource_exhausted")
_UNAVAILABLE_MARKERS = ("503", "service unavailable", "temporarily unavailable", "overloaded")
_NETWORK_MARKERS = ("econnreset", "etimedout", "enotfound", "connection reset", "timed out")
_UNSUPPORTED_MARKERS = ("not found", "not supported", "supported methods")


class OrchestratorError(Exception):
    """Base class for every error raised by this package."""


class ProviderCallError(OrchestratorError):
    """Failure raised by a provider adapter, tagged with its cause."""

    def __init__(self, message: str, cause: ErrorCause, status_code: int | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        self.status_code = status_code


class ProviderTransientFailure(OrchestratorError):
    """Quota, availability or network failure; the provider is cooled down."""

    def __init__(self, provider_name: str, cause: ErrorCause, message: str) -> None:
        super().__init__(f"{provider_name}: {message}")
        self.provider_name = provider_name
        self.cause = cause


class ProviderFatalFailure(OrchestratorError):
    """The request itself cannot be served (content rejected, malformed...)."""

    def __init__(
        self,
        provider_name: str,
        cause: ErrorCause,
        message: str,
        attempted_providers: list[str] | None = None,
    ) -> None:
        super().__init__(f"{provider_name} rejected the request ({cause.value}): {message}")
        self.provider_name = provider_name
        self.cause = cause
        self.attempted_providers = list(attempted_providers or [])


class PoolExhausted(OrchestratorError):
    """No provider produced a response within the retry budget."""

    def __init__(
        self,
        attempted_providers: list[str],
        last_error: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        self.attempted_providers = list(attempted_providers)
        self.last_error = last_error
        if message is None:
            tried = ", ".join(self.attempted_providers) or "none"
            message = (
                f"Could not generate a response after {len(self.attempted_providers)} attempt(s). "
                f"Providers tried: {tried}. Last error: {last_error or 'unknown'}"
            )
        super().__init__(message)


class AllProvidersUnavailable(PoolExhausted):
    """Every provider is in error, or exhausted with an unexpired cooldown."""

    def __init__(self, attempted_providers: list[str], last_error: BaseException | None = None) -> None:
        tried = ", ".join(attempted_providers) or "none"
        super().__init__(
            attempted_providers,
            last_error,
            message=(
                "All providers are temporarily unavailable. "
                f"Providers tried: {tried}. Last error: {last_error or 'none'}"
            ),
        )


class CacheWriteFailure(OrchestratorError):
    """Durable-tier write failed. Never surfaced to generate_content callers."""

    def __init__(self, key_hash: str, message: str) -> None:
        super().__init__(f"cache write failed for {key_hash[:12]}: {message}")
        self.key_hash = key_hash


def classify_error(error: BaseException) -> ErrorCause:
    """Map an exception raised by a provider call to an ErrorCause.

    Tagged adapter errors win; known transport exception types come next;
    free-text matching covers adapters that cannot tag their errors yet.
    """
    if isinstance(error, ProviderCallError):
        return error.cause
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError, httpx.TransportError)):
        return ErrorCause.NETWORK

    message = f"{error} {error!r}".lower()
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return ErrorCause.RATE_LIMITED
    if any(marker in message for marker in _UNAVAILABLE_MARKERS):
        return ErrorCause.UNAVAILABLE
    if any(marker in message for marker in _NETWORK_MARKERS):
        return ErrorCause.NETWORK
    if "404" in message and any(marker in message for marker in _UNSUPPORTED_MARKERS):
        return ErrorCause.UNSUPPORTED
    return ErrorCause.UNKNOWN


def is_retryable(cause: ErrorCause) -> bool:
    """Whether a failure with this cause should move on to the next provider."""
    return cause in RETRYABLE_CAUSES
