"""Read-through (cache-aside) caching over the shared key-value store.

Values are stored as JSON with a TTL. The cache is strictly an optimisation:
store failures degrade to calling the producer directly and are never
surfaced to the caller. Invalidation is coarse, by key pattern.

Keys are derived from a resource name and a filter set so that distinct
filters never share a slot and any key can be turned back into its filters.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, TypeVar
from urllib.parse import quote, unquote

from app.adapters.store.base import STORE_UNAVAILABLE, AbstractKeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNFILTERED_SUFFIX = "all"


def _check_resource(resource: str) -> None:
    if not resource or not resource.replace("_", "").replace("-", "").isalnum():
        raise ValueError(f"invalid cache resource name: {resource!r}")


def build_cache_key(resource: str, **filters: str | int | None) -> str:
    """Build the cache key for a resource view.

    ``None`` and empty-string filter values are ignored. With no remaining
    filters the key is ``"<resource>:all"``; otherwise each filter becomes
    ``name=<value>`` in sorted name order, with the value percent-encoded.
    Encoding every reserved character keeps ``:``, ``=`` and glob
    metacharacters out of the values, so keys are unambiguous and each key is
    also an exact-match invalidation pattern.

    Args:
        resource: Logical resource name (e.g. "questions").
        **filters: Filter descriptor for the cached view.

    Returns:
        The cache key string.

    Examples:
        >>> build_cache_key("questions")
        'questions:all'
        >>> build_cache_key("questions", topic="Unit 1: Cells")
        'questions:topic=Unit%201%3A%20Cells'
    """
    _check_resource(resource)
    active = {k: v for k, v in filters.items() if v is not None and v != ""}
    if not active:
        return f"{resource}:{UNFILTERED_SUFFIX}"

    parts = [f"{name}={quote(str(active[name]), safe='')}" for name in sorted(active)]
    return f"{resource}:" + ":".join(parts)


def resource_pattern(resource: str) -> str:
    """Pattern matching every cached view of a resource."""
    _check_resource(resource)
    return f"{resource}:*"


def parse_cache_key(key: str) -> tuple[str, dict[str, str]]:
    """Inverse of ``build_cache_key``.

    Raises:
        ValueError: If the key was not produced by ``build_cache_key``.
    """
    resource, sep, rest = key.partition(":")
    if not sep or not rest:
        raise ValueError(f"not a cache key: {key!r}")
    _check_resource(resource)
    if rest == UNFILTERED_SUFFIX:
        return resource, {}

    filters: dict[str, str] = {}
    for part in rest.split(":"):
        name, eq, value = part.partition("=")
        if not eq or not name:
            raise ValueError(f"malformed filter segment in cache key: {part!r}")
        filters[name] = unquote(value)
    return resource, filters


class CacheAside:
    """Cache-aside accessor: read, else produce and populate.

    Attributes:
        default_ttl_seconds: TTL used when a call does not pass its own.
    """

    def __init__(self, store: AbstractKeyValueStore, *, default_ttl_seconds: int = 86400) -> None:
        if default_ttl_seconds < 1:
            raise ValueError("default_ttl_seconds must be >= 1")
        self._store = store
        self.default_ttl_seconds = default_ttl_seconds

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"CacheAside(store={type(self._store).__name__}, default_ttl_seconds={self.default_ttl_seconds})"

    async def _read(self, key: str) -> tuple[bool, Any]:
        raw = await self._store.get(key)
        if raw is STORE_UNAVAILABLE:
            logger.debug("cache.miss", extra={"cache_key": key, "reason": "store_unavailable"})
            return False, None
        if raw is None:
            logger.debug("cache.miss", extra={"cache_key": key, "reason": "not_found"})
            return False, None
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("cache.miss", extra={"cache_key": key, "reason": "corrupt_payload"})
            return False, None

        logger.debug("cache.hit", extra={"cache_key": key})
        return True, value

    async def get_or_set(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        *,
        ttl_seconds: int | None = None,
    ) -> T:
        """Return the cached value for ``key`` or produce, store and return it.

        The producer is never called on a hit. On a miss its result is
        returned even if writing it back fails. Concurrent misses may each run
        the producer; the last write wins.

        Args:
            key: Cache key, usually from ``build_cache_key``.
            producer: Coroutine function computing the authoritative value.
                Must return a JSON-serializable value.
            ttl_seconds: Entry TTL; defaults to ``default_ttl_seconds``.

        Returns:
            The cached or freshly produced value.

        Raises:
            ValueError: If ttl_seconds is given and below 1.
            Exception: Whatever the producer raises.
        """
        if ttl_seconds is not None and ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        hit, value = await self._read(key)
        if hit:
            return value

        produced = await producer()

        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        written = await self._store.set(key, json.dumps(produced, separators=(",", ":")), ttl)
        if written is not STORE_UNAVAILABLE:
            logger.debug("cache.set", extra={"cache_key": key, "ttl_s": ttl})
        return produced

    async def invalidate(self, pattern: str) -> int:
        """Delete every entry matching ``pattern`` (exact key or glob).

        Returns:
            Number of entries removed; 0 when nothing matched or the store is
            unavailable.
        """
        deleted = await self._store.delete_pattern(pattern)
        if deleted is STORE_UNAVAILABLE:
            return 0
        if deleted:
            logger.info("cache.invalidated", extra={"pattern": pattern, "deleted": deleted})
        return deleted
