"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services created once in lifespan and stored in app.state
    - Dependency functions retrieve from request.app.state
    - No module-level singletons
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from completion_orchestrator.config import configure_logging, settings
from completion_orchestrator.handlers import OrchestratorHandler
from completion_orchestrator.repositories import RedisCacheRepository
from completion_orchestrator.services import CompletionOrchestrator, ProviderPool, ResponseCache

logger = logging.getLogger(__name__)


def get_orchestrator(request: Request) -> CompletionOrchestrator:
    """Dependency injection for CompletionOrchestrator from app.state.

    Raises:
        RuntimeError: If the orchestrator is not initialized
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise RuntimeError("CompletionOrchestrator not initialized. Check lifespan setup.")
    return orchestrator


def get_handler(request: Request) -> OrchestratorHandler:
    """Dependency injection for OrchestratorHandler from app.state.

    Raises:
        RuntimeError: If the handler is not initialized
    """
    handler = getattr(request.app.state, "handler", None)
    if handler is None:
        raise RuntimeError("OrchestratorHandler not initialized. Check lifespan setup.")
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores them in app.state:
    1. Durable store (Redis) and response cache, warmed from the store
    2. Provider pool built from the configured credentials and models
    3. Orchestrator and HTTP handler

    Cleanup:
        Flushes background cache writes, closes clients, clears app.state
    """
    configure_logging()

    repository = RedisCacheRepository.create()
    cache = ResponseCache.create(store=repository)
    pool = ProviderPool.from_settings(settings)
    orchestrator = CompletionOrchestrator.create(cache=cache, pool=pool)
    await orchestrator.initialize()

    app.state.orchestrator = orchestrator
    app.state.handler = OrchestratorHandler(orchestrator=orchestrator)

    logger.info("Completion orchestrator initialized with %d provider entries", len(pool.entries))
    logger.info("Durable tier healthy: %s", await repository.health_check())

    yield

    await orchestrator.close()
    await repository.close()
    del app.state.handler
    del app.state.orchestrator
    logger.info("Completion orchestrator shut down")


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[OrchestratorHandler, Depends(get_handler)]
OrchestratorDep = Annotated[CompletionOrchestrator, Depends(get_orchestrator)]
