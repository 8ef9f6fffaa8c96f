"""Relational store repositories (SQLAlchemy Core, synchronous)."""

from app.repositories.questions_repository import (
    QuestionDraftRow,
    QuestionRepository,
    StoredExplanation,
)
from app.repositories.visitors_repository import VisitorData, VisitorRepository

__all__ = [
    "QuestionDraftRow",
    "QuestionRepository",
    "StoredExplanation",
    "VisitorData",
    "VisitorRepository",
]
