"""Database bootstrap utilities.

Exposes engine construction and the table definitions. Repositories use
SQLAlchemy Core only; no ORM models leak into services or routes.
"""

from app.db.base import create_db_engine, engine_from_settings, init_schema
from app.db.schema import metadata, questions, visitors

__all__ = [
    "create_db_engine",
    "engine_from_settings",
    "init_schema",
    "metadata",
    "questions",
    "visitors",
]
