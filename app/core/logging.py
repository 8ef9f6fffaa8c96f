"""Structured logging for the quiz API.

Log lines are single JSON objects: timestamp, level, logger, message, the
current request id, and whatever the caller passed in ``extra``. Extras
whose key names something sensitive (provider keys, prompts, explanation
context, fingerprints, client addresses, connection URLs) are replaced by
``[REDACTED]`` at any nesting depth. Identities that must stay correlatable
are logged through ``hash_identifier`` instead.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        # credentials
        "api_key",
        "llm_api_key",
        "authorization",
        "token",
        "secret",
        "password",
        "cookie",
        "set-cookie",
        # model input and output
        "prompt",
        "system_prompt",
        "completion",
        "explanation_context",
        "messages",
        # visitor identity
        "fingerprint",
        "ip",
        "client_ip",
        "x-forwarded-for",
        "cf-connecting-ip",
        "x-real-ip",
        # connection strings
        "redis_url",
        "database_url",
        "base_url",
    }
)

# Attributes every LogRecord has; anything else came in through ``extra``
_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "request_id"}

_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "sqlalchemy.engine.Engine")

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_identifier(value: str) -> str:
    """Short stable digest so a client can be followed across log lines."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


def _normalize_keys(keys: Iterable[str] | None) -> frozenset[str]:
    return frozenset(k.lower() for k in (keys or SENSITIVE_KEYS_DEFAULT))


def redact(value: Any, sensitive_keys: frozenset[str]) -> Any:
    """Return ``value`` with sensitive mapping entries replaced, recursively."""
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in sensitive_keys else redact(item, sensitive_keys)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(item, sensitive_keys) for item in value)
    return value


def record_extras(record: LogRecord, sensitive_keys: frozenset[str]) -> dict[str, Any]:
    """Collect the caller-supplied fields of a record, already redacted."""
    extras = {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }
    return redact(extras, sensitive_keys)


class RequestIdFilter(logging.Filter):
    """Stamp records with the request id bound to the current context."""

    def filter(self, record: LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact extras in place, so non-JSON formatters never see raw values."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = _normalize_keys(sensitive_keys)

    def filter(self, record: LogRecord) -> bool:
        for key, value in record_extras(record, self.sensitive_keys).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self, *, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = _normalize_keys(sensitive_keys)

    def format(self, record: LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(record_extras(record, self.sensitive_keys))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _make_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    path = Path(log_settings.file_path or "logs/quiz-api.log")
    path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(path, encoding="utf-8")
    return RotatingFileHandler(
        path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings) -> None:
    """Install a single redacting handler on the root logger.

    Safe to call more than once; previous root handlers are replaced.

    Args:
        log_settings: Resolved ``LOG_*`` settings.
    """
    level = logging.getLevelName(log_settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = _make_handler(log_settings)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if log_settings.format.lower() == "plain":
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    # uvicorn installs its own handlers; the middleware writes the access line
    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False
