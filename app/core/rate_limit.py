"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on ``enforce_rate_limit("<endpoint>")`` only.
- Per-endpoint budgets: each endpoint has its own (requests, window) rule in
  settings, since a cached listing is far cheaper than a paid LLM call.
- Client identity falls back through proxy headers to a shared "unknown"
  bucket, favouring availability over strictness.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import HTTPException, Request, Response, status

from app.adapters.rate_limit.base import RateLimitResult
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def resolve_client_identity(request: Request) -> str:
    """Best-effort client IP for rate limiting and visitor logging.

    Order: Cloudflare's ``cf-connecting-ip``, the first ``x-forwarded-for``
    hop, ``x-real-ip``, the socket peer, then the literal ``"unknown"``.
    """
    headers = request.headers

    cf_ip = headers.get("cf-connecting-ip", "").strip()
    if cf_ip:
        return cf_ip

    forwarded = headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop

    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


def build_rate_limit_key(endpoint: str, client: str) -> str:
    """Counter key for one endpoint and client."""
    return f"ratelimit:{endpoint}:{client}"


def describe_window(window_seconds: int) -> str:
    """Human-readable window length for 429 messages."""
    if window_seconds >= 86400:
        return f"{window_seconds // 86400} day(s)"
    if window_seconds >= 60:
        return f"{window_seconds // 60} minute(s)"
    return f"{window_seconds} second(s)"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Quota metadata headers attached to every rate-limited response."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if not result.allowed and result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


def enforce_rate_limit(endpoint: str) -> Callable[[Request, Response], Awaitable[RateLimitResult | None]]:
    """Build a FastAPI dependency enforcing the rule configured for ``endpoint``.

    The rule is resolved per request from ``app.state.settings`` so one
    application instance can be reconfigured (tests) without re-importing
    the routes. The result is also stored on ``request.state.rate_limit`` for
    routes that build their own Response objects (streaming).

    Raises:
        HTTPException: 429 Too Many Requests when the quota is exhausted.
    """

    async def dependency(request: Request, response: Response) -> RateLimitResult | None:
        app_settings = request.app.state.settings
        if not app_settings.rate_limit.enabled:
            return None

        rule = app_settings.rate_limit.rule_for(endpoint)
        client = resolve_client_identity(request)
        key = build_rate_limit_key(endpoint, client)

        limiter = request.app.state.rate_limiter
        result = await limiter.consume(
            key,
            limit=rule.requests,
            window_seconds=rule.window_seconds,
        )
        request.state.rate_limit = result

        headers = rate_limit_headers(result) if app_settings.rate_limit.include_headers else {}
        log_extra = {
            "endpoint": endpoint,
            "client_hash": hash_identifier(client),
            "limit": result.limit,
            "remaining": result.remaining,
            "window_s": rule.window_seconds,
            "degraded": result.degraded,
        }

        if result.allowed:
            logger.info("rate_limit.allowed", extra=log_extra)
            response.headers.update(headers)
            return result

        logger.warning(
            "rate_limit.exceeded",
            extra={**log_extra, "retry_after_s": result.retry_after_seconds},
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=(
                "Rate limit exceeded. Limit: "
                f"{rule.requests} requests per {describe_window(rule.window_seconds)}."
            ),
            headers=headers or None,
        )

    return dependency
