"""Provider pool with priority fallback and lazy cooldown recovery.

Each ProviderEntry moves through three states:

    available --retryable failure--> exhausted --cooldown elapsed--> available
    available --fatal failure------> error     --reset-------------> available

Cooldown is not a timer: an exhausted entry is re-checked only when a
selection needs it, so an idle pool costs nothing and there is nothing to
cancel on shutdown.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping

from completion_orchestrator.config import Settings, settings
from completion_orchestrator.entities import PoolResult, ProviderEntry, ProviderStatus
from completion_orchestrator.errors import (
    AllProvidersUnavailable,
    ErrorCause,
    PoolExhausted,
    ProviderFatalFailure,
    ProviderTransientFailure,
    classify_error,
    is_retryable,
)
from completion_orchestrator.protocols import CompletionProvider
from completion_orchestrator.repositories import GeminiProvider

logger = logging.getLogger(__name__)


def build_full_prompt(prompt: str, system_instruction: str | None = None) -> str:
    """Prefix the system instruction, if any, to the user prompt."""
    if system_instruction:
        return f"{system_instruction}\n\nUser: {prompt}"
    return prompt


class ProviderPool:
    """Ordered pool of provider entries.

    Selection and every status transition run without awaiting, so on a
    single event loop they are atomic with respect to other requests. Two
    tasks that both see a provider fail may both mark it; last writer wins
    and both are reporting a real failure.

    Example:
        ```python
        pool = ProviderPool.from_settings(settings)
        result = await pool.generate_content("Explain fermentation")
        print(result.provider_used, result.attempted_providers)
        ```
    """

    def __init__(
        self,
        entries: Iterable[ProviderEntry],
        cooldown_seconds: float | None = None,
        max_retries: int | None = None,
        timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the provider pool.

        Args:
            entries: Provider entries; insertion order breaks priority ties.
            cooldown_seconds: Exclusion after a retryable failure. Defaults to settings.
            max_retries: Attempts per request. Defaults to settings.
            timeout: Per-call timeout in seconds. Defaults to settings.
            clock: Returns the current Unix time in seconds.

        Raises:
            ValueError: If no entries are given or two entries share a name
        """
        self._entries: dict[str, ProviderEntry] = {}
        for entry in entries:
            if entry.name in self._entries:
                raise ValueError(f"Duplicate provider entry name: {entry.name}")
            self._entries[entry.name] = entry
            logger.info("Provider added: %s (%s) priority %d", entry.name, entry.credential_ref, entry.priority)

        if not self._entries:
            raise ValueError("No provider entries configured. Check the GEMINI_API_KEY variables.")

        # sorted() is stable, so equal priorities keep insertion order
        self._ordered = sorted(self._entries.values(), key=lambda e: e.priority)
        self._cooldown = settings.pool_cooldown_seconds if cooldown_seconds is None else cooldown_seconds
        self._max_retries = max_retries or settings.pool_max_retries
        self._timeout = timeout or settings.provider_timeout
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        provider_factory: Callable[[str, Mapping[str, str]], CompletionProvider] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> "ProviderPool":
        """Build one entry per (credential, model) pair, credential-major.

        Entries are named "{model}#k{n}" where n is the credential's position
        among the configured labels.

        Args:
            config: Settings to read credentials and models from.
            provider_factory: Builds a provider for (model, credentials).
                Defaults to GeminiProvider.
            clock: Returns the current Unix time in seconds.

        Returns:
            Configured ProviderPool
        """
        config = config or settings
        if provider_factory is None:

            def provider_factory(model: str, credentials: Mapping[str, str]) -> CompletionProvider:
                return GeminiProvider(
                    model_name=model,
                    credentials=credentials,
                    base_url=config.gemini_base_url,
                    timeout=config.provider_timeout,
                )

        credentials = config.credentials
        providers = {model: provider_factory(model, credentials) for model in config.model_names}

        entries = []
        priority = 1
        for index, credential_ref in enumerate(credentials, start=1):
            for model, provider in providers.items():
                entries.append(
                    ProviderEntry(
                        name=f"{model}#k{index}",
                        model=model,
                        credential_ref=credential_ref,
                        priority=priority,
                        provider=provider,
                    )
                )
                priority += 1

        return cls(
            entries,
            cooldown_seconds=config.pool_cooldown_seconds,
            max_retries=config.pool_max_retries,
            timeout=config.provider_timeout,
            clock=clock,
        )

    def get_next_available_provider(self) -> ProviderEntry | None:
        """Pick the highest-priority usable entry.

        Available entries win outright. Otherwise the first exhausted entry
        whose cooldown has elapsed is reactivated and returned.

        Returns:
            The selected entry, or None if the whole pool is unusable
        """
        for entry in self._ordered:
            if entry.status is ProviderStatus.AVAILABLE:
                return entry

        now = self._clock()
        for entry in self._ordered:
            if entry.cooldown_elapsed(now, self._cooldown):
                entry.reactivate()
                logger.info("Provider %s reactivated after cooldown", entry.name)
                return entry

        return None

    async def execute(self, entry: ProviderEntry, prompt: str, system_instruction: str | None = None) -> str:
        """Make one call through one entry, with accounting and classification.

        Args:
            entry: Entry selected by get_next_available_provider
            prompt: User prompt
            system_instruction: Optional instruction prefixed to the prompt

        Returns:
            Generated text

        Raises:
            ProviderTransientFailure: Entry is now exhausted (or in error for
                an unsupported model variant); try the next one
            ProviderFatalFailure: The request cannot be served
        """
        entry.request_count += 1
        started = time.perf_counter()
        try:
            text = await asyncio.wait_for(
                entry.provider.call(entry.credential_ref, build_full_prompt(prompt, system_instruction)),
                timeout=self._timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            cause = classify_error(e)
            now = self._clock()

            if is_retryable(cause):
                entry.mark_exhausted(message, now)
                logger.warning("Provider %s exhausted (%s): %s", entry.name, cause.value, message)
                raise ProviderTransientFailure(entry.name, cause, message) from e

            entry.mark_error(message, now)
            if cause is ErrorCause.UNSUPPORTED:
                logger.error("Provider %s unusable (%s): %s", entry.name, cause.value, message)
                raise ProviderTransientFailure(entry.name, cause, message) from e

            logger.error("Provider %s failed fatally (%s): %s", entry.name, cause.value, message)
            raise ProviderFatalFailure(entry.name, cause, message) from e

        entry.record_success((time.perf_counter() - started) * 1000)
        return text

    async def generate_content(self, prompt: str, system_instruction: str | None = None) -> PoolResult:
        """Generate text, falling back through the pool.

        Args:
            prompt: User prompt
            system_instruction: Optional instruction prefixed to the prompt

        Returns:
            PoolResult with the text, the winning entry and the attempt trail

        Raises:
            AllProvidersUnavailable: No entry could be selected
            ProviderFatalFailure: An entry rejected the request itself
            PoolExhausted: max_retries attempts failed
        """
        attempted: list[str] = []
        last_error: BaseException | None = None

        for attempt in range(self._max_retries):
            entry = self.get_next_available_provider()
            if entry is None:
                logger.error("No providers available; all are exhausted or in error")
                raise AllProvidersUnavailable(attempted, last_error)

            attempted.append(entry.name)
            logger.info(
                "Generating with %s (%s), attempt %d/%d",
                entry.name,
                entry.credential_ref,
                attempt + 1,
                self._max_retries,
            )

            try:
                text = await self.execute(entry, prompt, system_instruction)
            except ProviderTransientFailure as e:
                last_error = e
                continue
            except ProviderFatalFailure as e:
                e.attempted_providers = list(attempted)
                raise

            logger.info("Generation succeeded with %s", entry.name)
            return PoolResult(
                text=text,
                provider_used=entry.name,
                attempt_index=attempt,
                attempted_providers=attempted,
            )

        raise PoolExhausted(attempted, last_error)

    def get_system_status(self) -> dict:
        """Diagnostic snapshot of every entry plus pool-wide aggregates."""
        active = self.get_next_available_provider()
        return {
            "providers": [entry.to_status() for entry in self._ordered],
            "active_provider": active.name if active else None,
            "total_requests": sum(entry.request_count for entry in self._ordered),
            "total_errors": sum(entry.error_count for entry in self._ordered),
        }

    def reset_stats(self, name: str) -> bool:
        """Zero one entry's counters and force it available.

        Returns:
            False if no entry has that name
        """
        entry = self._entries.get(name)
        if entry is None:
            return False
        entry.reset()
        logger.info("Provider %s stats reset", name)
        return True

    def reset_model(self, model: str) -> int:
        """Reset every entry serving a model variant, across credentials.

        Returns:
            Number of entries reset
        """
        count = 0
        for entry in self._ordered:
            if entry.model == model:
                entry.reset()
                count += 1
        if count:
            logger.info("Stats reset for %s across %d entries", model, count)
        return count

    def reset_all(self) -> None:
        for entry in self._ordered:
            entry.reset()
        logger.info("All provider stats reset")

    def get(self, name: str) -> ProviderEntry | None:
        return self._entries.get(name)

    @property
    def entries(self) -> list[ProviderEntry]:
        """Entries in selection order."""
        return list(self._ordered)

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def close(self) -> None:
        """Close providers that hold network clients."""
        closed = set()
        for entry in self._ordered:
            provider = entry.provider
            if id(provider) in closed or not hasattr(provider, "close"):
                continue
            closed.add(id(provider))
            await provider.close()
