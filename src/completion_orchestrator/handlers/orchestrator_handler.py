"""HTTP handlers for generation and administrative operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

import logging

from fastapi import HTTPException, status

from completion_orchestrator.dto import (
    CacheStatsResponse,
    CleanupResponse,
    GenerateRequest,
    GenerateResponse,
    HealthCheckResponse,
    ProviderStatusItem,
    ResetResponse,
    SystemStatusResponse,
    TopQueryItem,
)
from completion_orchestrator.errors import PoolExhausted, ProviderFatalFailure
from completion_orchestrator.services import CompletionOrchestrator

logger = logging.getLogger(__name__)


class OrchestratorHandler:
    """HTTP handlers for the completion orchestrator.

    This handler delegates business logic to CompletionOrchestrator
    and handles HTTP-specific concerns like:
    - Converting results to DTOs
    - Telling "try again later" (503) from "cannot answer this" (422)
    - Error handling and responses
    """

    def __init__(self, orchestrator: CompletionOrchestrator) -> None:
        """Initialize the handler.

        Args:
            orchestrator: The orchestrator for business logic (required).
        """
        self._orchestrator = orchestrator

    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        """Handle POST /generate requests.

        Raises:
            HTTPException: 503 when no provider can answer now, 422 when the
                request was rejected, 500 otherwise
        """
        try:
            result = await self._orchestrator.generate_content(
                request.prompt,
                system_instruction=request.system_instruction,
            )
        except PoolExhausted as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail={"message": str(e), "attempted_providers": e.attempted_providers},
            ) from e
        except ProviderFatalFailure as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={
                    "message": str(e),
                    "cause": e.cause.value,
                    "attempted_providers": e.attempted_providers,
                },
            ) from e
        except Exception as e:
            logger.exception("Generation failed")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to generate content: {e}",
            ) from e

        return GenerateResponse(
            text=result.text,
            provider_used=result.provider_used,
            fallback_occurred=result.fallback_occurred,
            attempted_providers=result.attempted_providers,
        )

    async def get_system_status(self) -> SystemStatusResponse:
        """Handle GET /providers/status requests."""
        snapshot = self._orchestrator.get_system_status()
        return SystemStatusResponse(
            providers=[ProviderStatusItem(**item) for item in snapshot["providers"]],
            active_provider=snapshot["active_provider"],
            total_requests=snapshot["total_requests"],
            total_errors=snapshot["total_errors"],
        )

    async def reset_provider(self, name: str) -> ResetResponse:
        """Handle POST /providers/{name}/reset requests.

        Raises:
            HTTPException: 404 if no provider entry has that name
        """
        if not self._orchestrator.reset_stats(name):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown provider: {name}",
            )
        return ResetResponse(success=True, reset_count=1, message=f"Provider {name} reset")

    async def reset_model(self, model: str) -> ResetResponse:
        """Handle POST /providers/models/{model}/reset requests.

        Raises:
            HTTPException: 404 if no provider entry serves that model
        """
        count = self._orchestrator.reset_model(model)
        if count == 0:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"No provider serves model: {model}",
            )
        return ResetResponse(success=True, reset_count=count, message=f"Model {model} reset")

    async def reset_all(self) -> ResetResponse:
        """Handle POST /providers/reset requests."""
        self._orchestrator.reset_all()
        count = len(self._orchestrator.pool.entries)
        return ResetResponse(success=True, reset_count=count, message="All providers reset")

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /cache/stats requests."""
        try:
            stats = await self._orchestrator.get_stats()
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to get stats: {e}",
            ) from e
        return CacheStatsResponse(**stats)

    async def get_top_queries(self, limit: int) -> list[TopQueryItem]:
        """Handle GET /cache/top requests."""
        try:
            top = await self._orchestrator.get_top_queries(limit)
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to get top queries: {e}",
            ) from e
        return [TopQueryItem(**item) for item in top]

    async def clean_expired(self) -> CleanupResponse:
        """Handle POST /cache/clean requests."""
        try:
            count = await self._orchestrator.clean_expired()
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to clean expired entries: {e}",
            ) from e
        return CleanupResponse(
            success=True,
            deleted_count=count,
            message=f"{count} expired entries removed",
        )

    async def clear_cache(self) -> CleanupResponse:
        """Handle DELETE /cache requests."""
        try:
            count = await self._orchestrator.clear_all()
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to clear cache: {e}",
            ) from e
        return CleanupResponse(success=True, deleted_count=count, message="Cache cleared successfully")

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        cache_healthy = await self._orchestrator.is_healthy()
        snapshot = self._orchestrator.get_system_status()
        healthy = cache_healthy and snapshot["active_provider"] is not None
        return HealthCheckResponse(
            status="healthy" if healthy else "unhealthy",
            cache_healthy=cache_healthy,
            active_provider=snapshot["active_provider"],
        )
