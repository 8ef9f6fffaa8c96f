"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any import that might load settings so
that tests never pick up a developer's .env file or a real Redis.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

# Set default env vars that all tests might need
os.environ.setdefault("LLM_PROVIDER", "perplexity")
os.environ.setdefault("LLM_API_KEY", "test-key-123")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from typing import AsyncIterator
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from fastapi.testclient import TestClient

from app.adapters.llm.base import AbstractLLMClient, ChatEvent
from app.adapters.store import InMemoryKeyValueStore
from app.core.app_factory import create_app
from app.core.config import Settings
from app.db import create_db_engine, init_schema


def chat_events(*events: ChatEvent):
    """Build a ``stream_chat`` side effect yielding the given events."""

    def _stream(*args, **kwargs) -> AsyncIterator[ChatEvent]:
        async def _gen() -> AsyncIterator[ChatEvent]:
            for event in events:
                yield event

        return _gen()

    return _stream


@pytest.fixture
def stream_of():
    """Factory for ``stream_chat`` side effects, for use inside tests."""
    return chat_events


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=1_000_000.0)


@pytest.fixture
def store(clock: Mock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite+pysqlite:///:memory:")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def mock_llm() -> MagicMock:
    llm = MagicMock(spec=AbstractLLMClient)
    llm.generate_text = AsyncMock()
    llm.stream_chat = MagicMock(side_effect=chat_events())
    return llm


@pytest.fixture
def test_settings() -> Settings:
    return Settings()


@pytest.fixture
def app(test_settings: Settings, store: InMemoryKeyValueStore, engine, mock_llm: MagicMock):
    return create_app(test_settings, store=store, engine=engine, llm=mock_llm)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
