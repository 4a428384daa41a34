import logging
import os
from dataclasses import dataclass
from functools import lru_cache

import redis.asyncio as redis
from dotenv import load_dotenv

load_dotenv()

DEFAULT_GEMINI_MODELS = "gemini-2.5-flash,gemini-2.5-flash-lite,gemini-1.5-flash,gemini-1.5-pro"
CREDENTIAL_LABELS = ("GEMINI_API_KEY", "GEMINI_API_KEY_2", "GEMINI_API_KEY_3")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis (durable tier)
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Response cache
    cache_key_prefix: str = os.getenv("CACHE_KEY_PREFIX", "ai_cache")
    cache_ttl: int = int(os.getenv("CACHE_TTL", "3600"))  # 1 hour default
    cache_max_memory_size: int = int(os.getenv("CACHE_MAX_MEMORY_SIZE", "100"))
    cache_min_query_length: int = int(os.getenv("CACHE_MIN_QUERY_LENGTH", "10"))
    cache_min_response_length: int = int(os.getenv("CACHE_MIN_RESPONSE_LENGTH", "10"))
    cache_warm_start_size: int = int(os.getenv("CACHE_WARM_START_SIZE", "50"))
    cache_cost_per_call: float = float(os.getenv("CACHE_COST_PER_CALL", "0.0002"))

    # Provider pool
    pool_cooldown_seconds: float = float(os.getenv("POOL_COOLDOWN_SECONDS", "900"))  # 15 minutes
    pool_max_retries: int = int(os.getenv("POOL_MAX_RETRIES", "3"))
    provider_timeout: float = float(os.getenv("PROVIDER_TIMEOUT", "30"))

    # Gemini
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_api_key_2: str | None = os.getenv("GEMINI_API_KEY_2")
    gemini_api_key_3: str | None = os.getenv("GEMINI_API_KEY_3")
    gemini_models: str = os.getenv("GEMINI_MODELS", DEFAULT_GEMINI_MODELS)
    gemini_base_url: str = os.getenv(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    )

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def model_names(self) -> list[str]:
        """Model variants in fallback order."""
        return [name.strip() for name in self.gemini_models.split(",") if name.strip()]

    @property
    def credentials(self) -> dict[str, str]:
        """Configured credentials keyed by their environment variable label.

        The label is what ProviderEntry.credential_ref holds; the value never
        leaves this mapping.
        """
        values = (self.gemini_api_key, self.gemini_api_key_2, self.gemini_api_key_3)
        return {label: value for label, value in zip(CREDENTIAL_LABELS, values) if value}

    def __repr__(self) -> str:
        return (
            f"Settings(redis_url={self.redis_url!r}, cache_ttl={self.cache_ttl}, "
            f"credentials={list(self.credentials)}, models={self.model_names})"
        )

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.cache_ttl <= 0:
            raise ValueError("CACHE_TTL must be a positive number of seconds")
        if self.cache_max_memory_size <= 0:
            raise ValueError("CACHE_MAX_MEMORY_SIZE must be positive")
        if self.pool_max_retries <= 0:
            raise ValueError("POOL_MAX_RETRIES must be positive")
        if self.pool_cooldown_seconds < 0:
            raise ValueError("POOL_COOLDOWN_SECONDS cannot be negative")
        if self.provider_timeout <= 0:
            raise ValueError("PROVIDER_TIMEOUT must be positive")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create an asyncio Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=True,
    )


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once at application start."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
