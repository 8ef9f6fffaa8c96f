"""Global exception handlers producing the API's error envelope.

Every domain error becomes ``{"error": {"code", "message", "request_id",
["details"]}}`` with the status its class declares. Errors that are not
public (persistence failures) keep their code but swap message and details
for a generic text; the real cause is only in the logs. Anything unexpected
is a bare 500 with no exception text.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import AppError
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "The operation could not be completed. Please try again later."
UNEXPECTED_FAILURE_MESSAGE = "An unexpected error occurred. Please try again later."


def status_code_for(exc: AppError) -> int:
    return exc.http_status


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    body: dict = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        body["details"] = details
    return {"error": body}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a domain error.

    Client errors are logged as warnings, server-side failures as errors.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the error's status code and envelope.
    """
    status_code = status_code_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "details": exc.details,
            "request_path": request.url.path,
        },
    )

    if exc.public:
        content = _error_body(exc.code, exc.message, exc.details)
    else:
        content = _error_body(exc.code, GENERIC_FAILURE_MESSAGE)
    return JSONResponse(status_code=status_code, content=content)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for exceptions no other handler claimed.

    Logs the exception with its traceback and returns a generic 500.
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content=_error_body("internal_server_error", UNEXPECTED_FAILURE_MESSAGE),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the domain and fallback handlers on an app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
