"""Gemini completion provider.

Calls the Google Generative Language REST API (`models/{model}:generateContent`)
with httpx and translates every failure into a ProviderCallError tagged with
an ErrorCause, so the pool never has to read free-text error messages.

Status mapping:
- 429                       -> rate_limited (quota, requests per minute)
- 500, 502, 503, 504        -> unavailable
- 404, 401, 403             -> unsupported (model variant or credential unusable)
- 400, blocked prompt/reply -> rejected
- timeouts, resets, DNS     -> network
"""

import logging
from collections.abc import Mapping

import httpx

from completion_orchestrator.config import settings
from completion_orchestrator.errors import ErrorCause, ProviderCallError

logger = logging.getLogger(__name__)

_STATUS_CAUSES = {
    400: ErrorCause.REJECTED,
    401: ErrorCause.UNSUPPORTED,
    403: ErrorCause.UNSUPPORTED,
    404: ErrorCause.UNSUPPORTED,
    429: ErrorCause.RATE_LIMITED,
    500: ErrorCause.UNAVAILABLE,
    502: ErrorCause.UNAVAILABLE,
    503: ErrorCause.UNAVAILABLE,
    504: ErrorCause.UNAVAILABLE,
}

_BLOCKED_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "RECITATION"}


class GeminiProvider:
    """Gemini implementation of the CompletionProvider protocol.

    One instance serves one model variant; the credential is chosen per call
    from `credentials` by its reference label, so several pool entries can
    share a provider while using different API keys.

    Example:
        ```python
        provider = GeminiProvider.create(
            model_name="gemini-2.5-flash",
            credentials={"GEMINI_API_KEY": "..."},
        )
        text = await provider.call("GEMINI_API_KEY", "Explain fermentation")
        ```
    """

    def __init__(
        self,
        model_name: str,
        credentials: Mapping[str, str],
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Gemini provider.

        Args:
            model_name: Model variant, e.g. "gemini-2.5-flash".
            credentials: API keys keyed by credential reference label.
            base_url: API root. Defaults to settings.gemini_base_url.
            timeout: Request timeout in seconds. Defaults to settings.
            client: Pre-built httpx client (tests inject a MockTransport).
        """
        self._model_name = model_name
        self._credentials = dict(credentials)
        self._base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self._timeout = timeout or settings.provider_timeout
        self._client = client

    @classmethod
    def create(
        cls,
        model_name: str,
        credentials: Mapping[str, str] | None = None,
        base_url: str | None = None,
    ) -> "GeminiProvider":
        """Factory method to create GeminiProvider with defaults.

        Args:
            model_name: Model variant.
            credentials: Credential map. If None, uses settings.credentials.
            base_url: API root. If None, uses settings.

        Returns:
            Configured GeminiProvider
        """
        return cls(
            model_name=model_name,
            credentials=settings.credentials if credentials is None else credentials,
            base_url=base_url,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @property
    def model_name(self) -> str:
        return self._model_name

    async def call(self, credential_ref: str, full_prompt: str) -> str:
        """Generate text for a prompt.

        Args:
            credential_ref: Label of the API key to use
            full_prompt: Prompt text with any system instruction prefixed

        Returns:
            The generated text

        Raises:
            ProviderCallError: Tagged with the failure cause
        """
        api_key = self._credentials.get(credential_ref)
        if not api_key:
            raise ProviderCallError(
                f"credential {credential_ref} is not configured", ErrorCause.UNSUPPORTED
            )

        url = f"{self._base_url}/models/{self._model_name}:generateContent"
        payload = {"contents": [{"role": "user", "parts": [{"text": full_prompt}]}]}

        try:
            response = await self.client.post(url, json=payload, headers={"x-goog-api-key": api_key})
        except httpx.TransportError as e:
            raise ProviderCallError(
                f"{self._model_name} transport error: {type(e).__name__}: {e}", ErrorCause.NETWORK
            ) from e

        if response.status_code >= 400:
            cause = _STATUS_CAUSES.get(response.status_code, ErrorCause.UNKNOWN)
            if response.status_code >= 500 and cause is ErrorCause.UNKNOWN:
                cause = ErrorCause.UNAVAILABLE
            raise ProviderCallError(
                f"{self._model_name} returned {response.status_code}: {self._error_message(response)}",
                cause,
                status_code=response.status_code,
            )

        return self._extract_text(response.json())

    def _extract_text(self, data: dict) -> str:
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ProviderCallError(f"prompt blocked: {block_reason}", ErrorCause.REJECTED)

        candidates = data.get("candidates") or []
        if not candidates:
            raise ProviderCallError(f"{self._model_name} returned no candidates", ErrorCause.UNKNOWN)

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            finish_reason = candidate.get("finishReason", "")
            if finish_reason in _BLOCKED_FINISH_REASONS:
                raise ProviderCallError(f"response blocked: {finish_reason}", ErrorCause.REJECTED)
            raise ProviderCallError(
                f"{self._model_name} returned an empty response ({finish_reason or 'no reason'})",
                ErrorCause.UNKNOWN,
            )
        return text

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return response.text[:200]

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
