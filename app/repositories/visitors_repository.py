"""Visitor analytics table: one row per browser fingerprint."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import PersistenceAppError
from app.db.schema import visitors

logger = logging.getLogger(__name__)

# Dialects with native INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class VisitorData:
    """Everything known about a visit at request time."""

    fingerprint: str
    ip: str | None
    user_agent: str | None
    device: str | None
    browser: str | None
    os: str | None
    country: str | None
    city: str | None


class VisitorRepository:
    """Synchronous repository over the ``visitors`` table."""

    def __init__(self, engine: Engine) -> None:
        dialect = engine.dialect.name
        if dialect not in _UPSERT_INSERTS:
            raise ValueError(f"visitor upsert is not supported on dialect '{dialect}'")
        self._engine = engine
        self._insert = _UPSERT_INSERTS[dialect]

    def record_visit(self, visit: VisitorData) -> int:
        """Insert a first visit or bump an existing visitor's count.

        On conflict the visit count is incremented and last-seen, IP, user
        agent and derived fields are refreshed; first-seen is preserved.

        Returns:
            The visitor's visit count after this visit.
        """
        now = datetime.now(timezone.utc)
        values = {**asdict(visit), "visit_count": 1, "first_seen": now, "last_seen": now}
        refreshed = ("ip", "user_agent", "device", "browser", "os", "country", "city")

        stmt = self._insert(visitors).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[visitors.c.fingerprint],
            set_={
                "visit_count": visitors.c.visit_count + 1,
                "last_seen": now,
                **{col: stmt.excluded[col] for col in refreshed},
            },
        )
        count_stmt = select(visitors.c.visit_count).where(
            visitors.c.fingerprint == visit.fingerprint
        )

        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
                visit_count = conn.execute(count_stmt).scalar_one()
        except SQLAlchemyError as exc:
            logger.error("db.operation_failed", exc_info=True, extra={"operation": "record_visit"})
            raise PersistenceAppError(
                code="persistence_error",
                message="Database operation 'record_visit' failed",
                details={"operation": "record_visit"},
            ) from exc

        return int(visit_count)
