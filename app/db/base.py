"""SQLAlchemy engine construction.

The service targets PostgreSQL in production but supports SQLite for local
development and CI. The engine is built explicitly by the application factory
and passed to repositories; nothing here holds process-wide state.
"""

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from app.core.config import DatabaseSettings
from app.db.schema import metadata

logger = logging.getLogger(__name__)


def create_db_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an Engine for ``url``.

    In-memory SQLite URLs get a StaticPool so every session, thread and
    executor worker shares the single connection holding the database.
    """
    kwargs: dict = {"future": True, "pool_pre_ping": True, "echo": echo}
    if url.startswith("sqlite") and ":memory:" in url:
        kwargs.update({
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        })
    return create_engine(url, **kwargs)


def engine_from_settings(db_settings: DatabaseSettings) -> Engine:
    engine = create_db_engine(db_settings.url, echo=db_settings.echo)
    if db_settings.create_schema:
        init_schema(engine)
    return engine


def init_schema(engine: Engine) -> None:
    """Create missing tables. Existing tables are left untouched."""
    metadata.create_all(engine)
    logger.info("db.schema_ready", extra={"dialect": engine.dialect.name})
