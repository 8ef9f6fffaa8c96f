"""Question table reads/writes.

Keeps SQL out of services and routes. Every failure is logged with the
operation context and re-raised as ``PersistenceAppError`` so the HTTP layer
answers with a generic 500 and no partial state is exposed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import PersistenceAppError
from app.db.schema import questions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuestionDraftRow:
    """A new question ready to be inserted."""

    question: str
    options: list[str]
    answer: str
    parent_set: str | None = None


@dataclass(frozen=True)
class StoredExplanation:
    """Explanation columns of one question row (either may be empty)."""

    explanation: str | None
    sources: Any


def _failure(operation: str, **context: Any) -> PersistenceAppError:
    logger.error(
        "db.operation_failed",
        exc_info=True,
        extra={"operation": operation, **context},
    )
    return PersistenceAppError(
        code="persistence_error",
        message=f"Database operation '{operation}' failed",
        details={"operation": operation},
    )


class QuestionRepository:
    """Synchronous repository over the ``questions`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def list_questions(self, topic: str | None = None) -> list[dict[str, Any]]:
        """Return question rows, optionally for one topic, ordered by id.

        JSON columns are returned exactly as the driver delivers them.
        """
        stmt = select(
            questions.c.id,
            questions.c.question,
            questions.c.options,
            questions.c.answer,
            questions.c.topic,
            questions.c.parent_set,
            questions.c.explanation,
            questions.c.explanation_sources,
        ).order_by(questions.c.id.asc())
        if topic:
            stmt = stmt.where(questions.c.topic == topic)

        try:
            with self._engine.connect() as conn:
                return [dict(row) for row in conn.execute(stmt).mappings()]
        except SQLAlchemyError as exc:
            raise _failure("list_questions", topic=topic) from exc

    def insert_many(self, topic: str, drafts: Sequence[QuestionDraftRow]) -> int:
        """Insert all drafts for a topic in a single transaction.

        Returns:
            Number of inserted rows.
        """
        rows = [
            {
                "question": d.question,
                "options": json.dumps(d.options),
                "answer": d.answer,
                "topic": topic,
                "parent_set": d.parent_set,
            }
            for d in drafts
        ]
        if not rows:
            return 0

        try:
            with self._engine.begin() as conn:
                conn.execute(insert(questions), rows)
        except SQLAlchemyError as exc:
            raise _failure("insert_questions", topic=topic, count=len(rows)) from exc

        logger.info("db.questions_inserted", extra={"topic": topic, "count": len(rows)})
        return len(rows)

    def get_explanation(self, question_id: int) -> StoredExplanation | None:
        """Return the stored explanation columns, or None for an unknown id."""
        stmt = select(questions.c.explanation, questions.c.explanation_sources).where(
            questions.c.id == question_id
        )
        try:
            with self._engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as exc:
            raise _failure("get_explanation", question_id=question_id) from exc

        if row is None:
            return None
        return StoredExplanation(explanation=row["explanation"], sources=row["explanation_sources"])

    def save_explanation(self, question_id: int, explanation: str, sources: list[str]) -> bool:
        """Persist explanation text and source URLs onto a question.

        Returns:
            True if a row was updated.
        """
        stmt = (
            update(questions)
            .where(questions.c.id == question_id)
            .values(explanation=explanation, explanation_sources=json.dumps(sources))
        )
        try:
            with self._engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise _failure("save_explanation", question_id=question_id) from exc
        return result.rowcount > 0
