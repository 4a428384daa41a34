"""Completion provider protocol.

Defines the interface for any generative-text endpoint the provider pool can
route to.

Implementations can include:
- Google Generative Language API (Gemini, default)
- OpenAI-compatible chat completion endpoints
- Local model servers
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CompletionProvider(Protocol):
    """Protocol for generative-text providers.

    Implementations should raise ProviderCallError tagged with an ErrorCause
    so the pool can tell a cooled-down provider from an unservable request.
    Untagged exceptions are classified by type and message as a fallback.
    """

    @property
    def model_name(self) -> str:
        """Return the model variant this provider calls."""
        ...

    async def call(self, credential_ref: str, full_prompt: str) -> str:
        """Generate text for a prompt.

        Args:
            credential_ref: Reference to the credential to authenticate with
            full_prompt: Prompt text, system instruction already prefixed

        Returns:
            The generated text

        Raises:
            ProviderCallError: On any failure the adapter can classify
        """
        ...
