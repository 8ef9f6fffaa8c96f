"""In-process key-value store with Redis-like TTL semantics.

Notes:
- Per-process only: running multiple workers gives each worker its own
  counters and cache, which multiplies the effective rate limits.
- Thread-safe: uses a lock around shared state.
- Expired keys are dropped lazily on access.
"""

from __future__ import annotations

import fnmatch
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.store.base import TTL_MISSING_KEY, TTL_NO_EXPIRY, AbstractKeyValueStore


@dataclass
class _Entry:
    value: str
    expires_at: float | None = None


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Dictionary-backed store for single-process deployments and tests."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize an empty store.

        Args:
            clock: Time source returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired_locked()
            return len(self._entries)

    def _live_entry_locked(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _purge_expired_locked(self) -> None:
        now = self._clock()
        expired = [
            k for k, e in self._entries.items() if e.expires_at is not None and e.expires_at <= now
        ]
        for key in expired:
            del self._entries[key]

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry_locked(key)
            return entry.value if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)
            return True

    async def incr(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                entry = _Entry(value="0")
                self._entries[key] = entry
            try:
                count = int(entry.value) + 1
            except ValueError as exc:
                raise ValueError(f"value at '{key}' is not an integer") from exc
            # INCR keeps any existing expiry
            entry.value = str(count)
            return count

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return False
            entry.expires_at = self._clock() + ttl_seconds
            return True

    async def ttl(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return TTL_MISSING_KEY
            if entry.expires_at is None:
                return TTL_NO_EXPIRY
            return max(0, int(math.ceil(entry.expires_at - self._clock())))

    async def delete_pattern(self, pattern: str) -> int:
        with self._lock:
            self._purge_expired_locked()
            matched = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
            for key in matched:
                del self._entries[key]
            return len(matched)

    async def ping(self) -> bool:
        return True
