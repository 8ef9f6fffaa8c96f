"""Request correlation middleware.

Every request gets a correlation id: the caller's, when it sends a usable
one in the configured header, otherwise a fresh UUID. The id is bound to
the logging context for the duration of the request, echoed back on the
response, and attached to one ``http.request`` access line per request.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from fastapi import Request, Response

from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_ID_HEADER = "X-Request-ID"
DURATION_HEADER = "X-Request-Duration-ms"

# Ids end up in logs and headers; accept only short opaque tokens
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _header_name(request: Request) -> str:
    app_settings = getattr(request.app.state, "settings", None)
    if app_settings is None:
        return DEFAULT_REQUEST_ID_HEADER
    return app_settings.log.request_id_header


def resolve_request_id(incoming: str | None) -> str:
    """Return the caller's id if usable, else a new UUID4 string."""
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a correlation id to the request and time it.

    For streaming responses (``/api/chat``) the measured duration ends when
    headers are sent, not when the stream finishes.
    """
    header_name = _header_name(request)
    request_id = resolve_request_id(request.headers.get(header_name))
    set_request_id(request_id)
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(DURATION_HEADER, f"{duration_ms:.2f}")
    return response
