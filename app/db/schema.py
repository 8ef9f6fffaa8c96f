"""Table definitions (SQLAlchemy Core).

JSON list columns (options, explanation_sources) are stored as text so the
layout is identical on PostgreSQL and SQLite; readers normalize both raw text
and driver-decoded lists.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text, func

metadata = MetaData()

questions = Table(
    "questions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("question", Text, nullable=False),
    Column("options", Text, nullable=False),
    Column("answer", Text, nullable=False),
    Column("topic", String(255), nullable=False, index=True),
    Column("parent_set", String(255), nullable=True),
    Column("explanation", Text, nullable=True),
    Column("explanation_sources", Text, nullable=True),
)

visitors = Table(
    "visitors",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("fingerprint", String(255), nullable=False, unique=True),
    Column("ip", String(64), nullable=True),
    Column("user_agent", Text, nullable=True),
    Column("device", String(32), nullable=True),
    Column("browser", String(64), nullable=True),
    Column("os", String(64), nullable=True),
    Column("country", String(64), nullable=True),
    Column("city", String(128), nullable=True),
    Column("visit_count", Integer, nullable=False, server_default="1"),
    Column("first_seen", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("last_seen", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
