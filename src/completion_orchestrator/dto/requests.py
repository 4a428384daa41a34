"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    """Request DTO for generating a completion.

    The handler will convert this to a call on the orchestrator.
    """

    prompt: str = Field(..., description="The user prompt", min_length=1)
    system_instruction: str | None = Field(
        None,
        description="Optional instruction prepended to the prompt; part of the cache identity",
    )
