"""Key-value store interface shared by the cache and the rate limiter.

Callers depend on this abstraction so the backing store (Redis in production,
an in-process dictionary for single-worker development and tests) can be
swapped without touching the cache or limiter code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Final


class _StoreUnavailable:
    """Sentinel returned when the store could not serve an operation."""

    _instance: "_StoreUnavailable | None" = None

    def __new__(cls) -> "_StoreUnavailable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "STORE_UNAVAILABLE"


STORE_UNAVAILABLE: Final = _StoreUnavailable()

# TTL replies, mirroring Redis semantics
TTL_MISSING_KEY: Final = -2
TTL_NO_EXPIRY: Final = -1


class AbstractKeyValueStore(ABC):
    """Primitive commands the cache and rate limiter are built on.

    Implementations never raise on backend failures; they return
    ``STORE_UNAVAILABLE`` instead so every caller degrades the same way
    (cache miss for reads, no-op for writes, allow for rate checks).
    """

    @abstractmethod
    async def get(self, key: str) -> "str | None | _StoreUnavailable":
        """Return the stored string, or None when the key does not exist."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> "bool | _StoreUnavailable":
        """Store a string value that expires after ``ttl_seconds``.

        Raises:
            ValueError: If ttl_seconds is below 1 (an argument error, not a
                backend failure).
        """
        raise NotImplementedError

    @abstractmethod
    async def incr(self, key: str) -> "int | _StoreUnavailable":
        """Atomically increment a counter (created at 0) and return the new value."""
        raise NotImplementedError

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> "bool | _StoreUnavailable":
        """Set a key's time-to-live. Returns False when the key does not exist."""
        raise NotImplementedError

    @abstractmethod
    async def ttl(self, key: str) -> "int | _StoreUnavailable":
        """Remaining TTL in seconds, ``TTL_MISSING_KEY`` or ``TTL_NO_EXPIRY``."""
        raise NotImplementedError

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> "int | _StoreUnavailable":
        """Delete every key matching a glob-style pattern; return the count."""
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> "bool | _StoreUnavailable":
        """Check connectivity."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the store."""
