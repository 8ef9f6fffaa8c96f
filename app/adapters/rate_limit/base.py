"""Rate limiter interface and decision type."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Decision for one counted request.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Requests left in the window (0 when blocked).
        reset_at: UNIX epoch seconds at which the window closes.
        retry_after_seconds: Seconds to wait, set only when blocked.
        degraded: The counter store was unreachable and the request was let
            through uncounted.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None = None
    degraded: bool = False

    @classmethod
    def within_limit(cls, *, count: int, limit: int, reset_at: int) -> "RateLimitResult":
        return cls(allowed=True, limit=limit, remaining=limit - count, reset_at=reset_at)

    @classmethod
    def over_limit(cls, *, limit: int, reset_at: int, now: float) -> "RateLimitResult":
        return cls(
            allowed=False,
            limit=limit,
            remaining=0,
            reset_at=reset_at,
            retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
        )

    @classmethod
    def unmetered(cls, *, limit: int, window_seconds: int, now: float) -> "RateLimitResult":
        """Fail-open decision used when nothing could be counted."""
        return cls(
            allowed=True,
            limit=limit,
            remaining=limit,
            reset_at=int(now + window_seconds),
            degraded=True,
        )


class AbstractRateLimiter(ABC):
    """Interface for rate limiters shared by all endpoints."""

    @abstractmethod
    async def consume(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        """Count one request against a key's window.

        Args:
            key: Counter key (endpoint + client identity).
            limit: Maximum requests allowed per window.
            window_seconds: Window length in seconds.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError
