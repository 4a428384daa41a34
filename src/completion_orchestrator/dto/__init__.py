"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import GenerateRequest
from .responses import (
    CacheStatsResponse,
    CleanupResponse,
    GenerateResponse,
    HealthCheckResponse,
    ProviderStatusItem,
    ResetResponse,
    SystemStatusResponse,
    TopQueryItem,
)

__all__ = [
    "GenerateRequest",
    "GenerateResponse",
    "ProviderStatusItem",
    "SystemStatusResponse",
    "CacheStatsResponse",
    "TopQueryItem",
    "ResetResponse",
    "CleanupResponse",
    "HealthCheckResponse",
]
