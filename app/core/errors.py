"""Domain error types for the quiz API.

Services, repositories and adapters raise these instead of HTTP exceptions;
the handlers in ``app.core.exception_handlers`` turn them into JSON error
responses. Each class carries the HTTP status it maps to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured context attached to an error.

    Only the keys a caller actually knows are set. Persistence errors keep
    theirs server-side (logged, never returned).
    """

    operation: str
    question_id: int
    topic: str
    model: str
    storage_key: str
    context: dict[str, Any]


@dataclass
class AppError(Exception):
    """Base error for quiz API failures.

    Attributes:
        code: Stable, machine-readable error code (e.g. "question_not_found").
        message: Human-readable error message.
        details: Optional structured context.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    http_status: ClassVar[int] = 400
    # Whether message/details may be shown to API clients
    public: ClassVar[bool] = True

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Input or configuration rejected (e.g. an empty bulk insert)."""


class NotFoundAppError(AppError):
    """A referenced question or record does not exist."""

    http_status: ClassVar[int] = 404


class PersistenceAppError(AppError):
    """The relational store failed a read or write."""

    http_status: ClassVar[int] = 500
    public: ClassVar[bool] = False


class LLMAppError(AppError):
    """The text-generation provider failed or returned nothing usable."""

    http_status: ClassVar[int] = 500
