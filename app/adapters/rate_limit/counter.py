"""Counter-based rate limiter on top of a shared key-value store.

Each (endpoint, client) pair owns one counter. The first increment of a
window sets the key's expiry; later increments leave it alone, so the window
closes a fixed time after its first request and the next request opens a
new one. Correctness relies on the store's atomic INCR, never on local state.

If the store cannot be reached the limiter fails open.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.store.base import (
    STORE_UNAVAILABLE,
    TTL_NO_EXPIRY,
    AbstractKeyValueStore,
)

logger = logging.getLogger(__name__)


class CounterRateLimiter(AbstractRateLimiter):
    """INCR/EXPIRE/TTL rate limiter.

    Safe to share across workers and hosts as long as they share the store.
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Key-value store holding the counters.
            clock: Time source returning UNIX time in seconds.
        """
        self._store = store
        self._clock = clock

    async def _window_ttl(self, key: str, count: int, window_seconds: int) -> int:
        """Return remaining window seconds, starting the window on first hit."""
        if count == 1:
            await self._store.expire(key, window_seconds)

        ttl = await self._store.ttl(key)
        if ttl is STORE_UNAVAILABLE or ttl < 0:
            if ttl == TTL_NO_EXPIRY:
                # A counter left without expiry would never reset
                logger.warning("rate_limit.expiry_repaired", extra={"window_s": window_seconds})
                await self._store.expire(key, window_seconds)
            # Expired between INCR and TTL, or unknown: the estimate is enough
            return window_seconds
        return ttl

    async def consume(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        """Count one request and decide whether it may proceed.

        Args:
            key: Counter key (endpoint + client identity).
            limit: Maximum requests per window.
            window_seconds: Window length in seconds.

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or limit/window are invalid.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        now = self._clock()

        count = await self._store.incr(key)
        if count is STORE_UNAVAILABLE:
            return RateLimitResult.unmetered(limit=limit, window_seconds=window_seconds, now=now)

        ttl = await self._window_ttl(key, count, window_seconds)
        reset_at = int(now + ttl)

        if count > limit:
            return RateLimitResult.over_limit(limit=limit, reset_at=reset_at, now=now)
        return RateLimitResult.within_limit(count=count, limit=limit, reset_at=reset_at)
