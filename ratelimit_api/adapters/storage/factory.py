"""Factory for the configured rate limit storage backend."""

from ratelimit_api.adapters.storage.base import RateLimitStorage
from ratelimit_api.adapters.storage.in_memory import InMemoryStorage
from ratelimit_api.adapters.storage.redis_store import RedisStorage
from ratelimit_api.core.config import Settings, settings as default_settings
from ratelimit_api.core.errors import ValidationAppError


def create_storage(config: Settings | None = None) -> RateLimitStorage:
    """Instantiate the storage backend selected by RATE_LIMIT_STORAGE.

    Args:
        config: Settings to read; defaults to the global settings.

    Returns:
        RateLimitStorage: In-memory or Redis backend. The Redis backend does
            not connect until first use.

    Raises:
        ValidationAppError: If the backend name is not supported.
    """
    cfg = config or default_settings
    backend = cfg.rate_limit.storage.lower()

    if backend == "memory":
        return InMemoryStorage(max_entries=cfg.rate_limit.max_entries)

    if backend == "redis":
        return RedisStorage(
            cfg.redis.url,
            timeout_seconds=cfg.redis.timeout_seconds,
        )

    raise ValidationAppError(
        code="unknown_storage_backend",
        message=f"Unknown rate limit storage backend: '{backend}'. Supported: memory, redis",
    )
