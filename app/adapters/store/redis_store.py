"""Redis-backed key-value store.

Every command goes through ``fail_soft`` so a slow or unreachable Redis never
fails a request: the error is logged once and ``STORE_UNAVAILABLE`` is
returned for the caller to interpret. Connection-level retries with
exponential backoff are delegated to the redis client itself.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.adapters.store.base import STORE_UNAVAILABLE, AbstractKeyValueStore
from app.core.config import StoreSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Backoff between retries: 50ms doubling, capped at 2s
_BACKOFF_BASE_SECONDS = 0.05
_BACKOFF_CAP_SECONDS = 2.0

_DELETE_BATCH_SIZE = 500


def fail_soft(operation: str) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[Any]]]:
    """Turn store errors into ``STORE_UNAVAILABLE`` for one named operation."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(self: "RedisKeyValueStore", *args: Any, **kwargs: Any) -> Any:
            try:
                return await func(self, *args, **kwargs)
            except (RedisError, OSError, asyncio.TimeoutError) as exc:
                logger.warning(
                    "store.unavailable",
                    extra={
                        "operation": operation,
                        "error_type": type(exc).__name__,
                        "error_msg": str(exc),
                    },
                )
                return STORE_UNAVAILABLE

        return wrapper

    return decorator


def build_redis_client(store_settings: StoreSettings) -> Redis:
    """Create an asyncio Redis client with bounded retries and timeouts.

    The connection is established lazily on the first command.
    """
    return Redis.from_url(
        store_settings.redis_url,
        decode_responses=True,
        socket_timeout=store_settings.socket_timeout_seconds,
        socket_connect_timeout=store_settings.socket_timeout_seconds,
        retry=Retry(
            ExponentialBackoff(cap=_BACKOFF_CAP_SECONDS, base=_BACKOFF_BASE_SECONDS),
            store_settings.max_retries,
        ),
        retry_on_error=[RedisConnectionError, RedisTimeoutError],
    )


class RedisKeyValueStore(AbstractKeyValueStore):
    """Key-value store backed by a shared Redis instance.

    Atomicity of INCR/EXPIRE comes from Redis itself, so no locking is done
    here and any number of workers can share one instance.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, store_settings: StoreSettings) -> "RedisKeyValueStore":
        return cls(build_redis_client(store_settings))

    @fail_soft("get")
    async def get(self, key: str) -> Any:
        return await self._client.get(key)

    @fail_soft("set")
    async def set(self, key: str, value: str, ttl_seconds: int) -> Any:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        return bool(await self._client.set(key, value, ex=ttl_seconds))

    @fail_soft("incr")
    async def incr(self, key: str) -> Any:
        return int(await self._client.incr(key))

    @fail_soft("expire")
    async def expire(self, key: str, ttl_seconds: int) -> Any:
        return bool(await self._client.expire(key, ttl_seconds))

    @fail_soft("ttl")
    async def ttl(self, key: str) -> Any:
        return int(await self._client.ttl(key))

    @fail_soft("delete_pattern")
    async def delete_pattern(self, pattern: str) -> Any:
        # SCAN instead of KEYS so large keyspaces never block the server
        deleted = 0
        batch: list[str] = []
        async for key in self._client.scan_iter(match=pattern, count=_DELETE_BATCH_SIZE):
            batch.append(key)
            if len(batch) >= _DELETE_BATCH_SIZE:
                deleted += int(await self._client.delete(*batch))
                batch = []
        if batch:
            deleted += int(await self._client.delete(*batch))
        return deleted

    @fail_soft("ping")
    async def ping(self) -> Any:
        return bool(await self._client.ping())

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except (RedisError, OSError) as exc:
            logger.warning(
                "store.close_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
