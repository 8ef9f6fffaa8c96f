"""Counter/cache store adapters.

Redis is the production backend; the in-memory store keeps the same contract
for single-process development and tests.
"""

from app.adapters.store.base import STORE_UNAVAILABLE, AbstractKeyValueStore
from app.adapters.store.in_memory import InMemoryKeyValueStore
from app.adapters.store.redis_store import RedisKeyValueStore
from app.core.config import StoreSettings
from app.core.errors import ValidationAppError


def create_store(store_settings: StoreSettings) -> AbstractKeyValueStore:
    """Build the configured store backend.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    backend = store_settings.backend.lower()
    if backend == "redis":
        return RedisKeyValueStore.from_settings(store_settings)
    if backend == "memory":
        return InMemoryKeyValueStore()

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: redis, memory",
    )


__all__ = [
    "STORE_UNAVAILABLE",
    "AbstractKeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "create_store",
]
