"""HTTP handlers layer.

Handlers convert between DTOs (API contracts) and service calls.
"""

from .orchestrator_handler import OrchestratorHandler

__all__ = ["OrchestratorHandler"]
