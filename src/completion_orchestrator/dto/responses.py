"""Response DTOs for API endpoints."""

from pydantic import BaseModel, Field


class GenerateResponse(BaseModel):
    """Response DTO for a completion."""

    text: str = Field(..., description="Generated text")
    provider_used: str = Field(..., description="Provider entry that answered, or 'cache'")
    fallback_occurred: bool = Field(..., description="Whether the first choice failed")
    attempted_providers: list[str] = Field(
        default_factory=list,
        description="Provider entries tried, in order",
    )


class ProviderStatusItem(BaseModel):
    """Single provider entry in the system status."""

    name: str
    model: str
    credential_ref: str = Field(..., description="Credential label, never the credential itself")
    status: str = Field(..., description="available, exhausted or error")
    priority: int
    request_count: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0)
    last_error: str | None = None
    last_error_at: float | None = Field(None, description="Unix timestamp of the last failure")
    average_response_time_ms: float = Field(..., ge=0.0)


class SystemStatusResponse(BaseModel):
    """Response DTO for the provider pool status."""

    providers: list[ProviderStatusItem]
    active_provider: str | None = Field(None, description="Entry the next request would use")
    total_requests: int = Field(..., ge=0)
    total_errors: int = Field(..., ge=0)


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    hits: int = Field(..., ge=0)
    misses: int = Field(..., ge=0)
    hit_rate: float = Field(..., description="hits / (hits + misses)", ge=0.0, le=1.0)
    memory_entries: int = Field(..., description="Entries in the hot tier", ge=0)
    durable_entries: int = Field(..., description="Entries in the durable tier", ge=0)
    saved_calls: int = Field(..., description="Provider calls avoided", ge=0)
    estimated_savings: str = Field(..., description="saved_calls priced at the configured cost per call")
    ttl_seconds: float = Field(..., ge=0)
    max_memory_size: int = Field(..., ge=0)


class TopQueryItem(BaseModel):
    """Single entry of the most reused queries."""

    query: str
    hits: int = Field(..., ge=0)


class ResetResponse(BaseModel):
    """Response DTO for provider resets."""

    success: bool
    reset_count: int = Field(..., ge=0)
    message: str


class CleanupResponse(BaseModel):
    """Response DTO for cache cleanup and clear operations."""

    success: bool
    deleted_count: int = Field(..., ge=0)
    message: str


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the durable tier is reachable")
    active_provider: str | None = Field(None, description="Entry the next request would use")
