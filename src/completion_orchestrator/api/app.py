"""FastAPI application exposing generation and operational endpoints."""

from typing import Any

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from completion_orchestrator.api.dependencies import HandlerDep, lifespan
from completion_orchestrator.config import settings
from completion_orchestrator.dto import (
    CacheStatsResponse,
    CleanupResponse,
    GenerateRequest,
    GenerateResponse,
    HealthCheckResponse,
    ResetResponse,
    SystemStatusResponse,
    TopQueryItem,
)

app = FastAPI(
    title="Completion Orchestrator API",
    description="Cached, fallback-routed text generation over a pool of model providers",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Completion Orchestrator API",
        "version": "0.1.0",
        "endpoints": {
            "generate": "/generate",
            "providers": "/providers/status",
            "cache": "/cache/stats",
            "health": "/health",
            "docs": "/docs",
        },
    }


@app.get("/health", response_model=HealthCheckResponse)
async def health(handler: HandlerDep) -> HealthCheckResponse:
    """Health check endpoint."""
    return await handler.health_check()


@app.post("/generate", response_model=GenerateResponse)
async def generate(request: GenerateRequest, handler: HandlerDep) -> GenerateResponse:
    """Generate text for a prompt, from cache when possible."""
    return await handler.generate(request)


@app.get("/providers/status", response_model=SystemStatusResponse)
async def providers_status(handler: HandlerDep) -> SystemStatusResponse:
    """Status and counters of every provider entry."""
    return await handler.get_system_status()


@app.post("/providers/reset", response_model=ResetResponse)
async def reset_all_providers(handler: HandlerDep) -> ResetResponse:
    """Reset counters and status of every provider entry."""
    return await handler.reset_all()


@app.post("/providers/models/{model}/reset", response_model=ResetResponse)
async def reset_model(model: str, handler: HandlerDep) -> ResetResponse:
    """Reset every entry serving one model variant."""
    return await handler.reset_model(model)


@app.post("/providers/{name}/reset", response_model=ResetResponse)
async def reset_provider(name: str, handler: HandlerDep) -> ResetResponse:
    """Reset one provider entry."""
    return await handler.reset_provider(name)


@app.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(handler: HandlerDep) -> CacheStatsResponse:
    """Hit/miss counters and tier sizes."""
    return await handler.get_stats()


@app.get("/cache/top", response_model=list[TopQueryItem])
async def top_queries(handler: HandlerDep, limit: int = Query(10, ge=1, le=100)) -> list[TopQueryItem]:
    """Most reused cached queries."""
    return await handler.get_top_queries(limit)


@app.post("/cache/clean", response_model=CleanupResponse)
async def clean_expired(handler: HandlerDep) -> CleanupResponse:
    """Delete durable entries older than the TTL."""
    return await handler.clean_expired()


@app.delete("/cache", response_model=CleanupResponse)
async def clear_cache(handler: HandlerDep) -> CleanupResponse:
    """Empty both cache tiers and reset statistics."""
    return await handler.clear_cache()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "completion_orchestrator.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
