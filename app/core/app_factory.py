"""Application factory for FastAPI app.

Centralizes app construction (settings, store, database, LLM client,
services, middleware, handlers, routers). Collaborators can be injected so
tests build an app with an in-memory store, an in-memory SQLite engine and a
mocked LLM client.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from app.adapters.llm import AbstractLLMClient, create_llm_client
from app.adapters.rate_limit import CounterRateLimiter
from app.adapters.store import AbstractKeyValueStore, create_store
from app.api.routes import (
    explanations_router,
    health_router,
    questions_router,
    visitors_router,
)
from app.core.config import Settings, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.db import engine_from_settings
from app.repositories import QuestionRepository, VisitorRepository
from app.services.explanation_service import ExplanationService
from app.services.question_service import QuestionService
from app.services.visitor_service import VisitorService
from app.utils.cache import CacheAside

logger = logging.getLogger(__name__)


def _cors_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app(
    app_settings: Settings | None = None,
    *,
    store: AbstractKeyValueStore | None = None,
    engine: Engine | None = None,
    llm: AbstractLLMClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; the process settings otherwise.
        store: Counter/cache store; built from ``STORE_*`` settings otherwise.
        engine: SQLAlchemy engine; built from ``DATABASE_*`` settings otherwise.
        llm: Text generation client; built from ``LLM_*`` settings otherwise.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    if store is None:
        store = create_store(cfg.store)
    if engine is None:
        engine = engine_from_settings(cfg.database)
    if llm is None:
        llm = create_llm_client(cfg.llm)

    cache = CacheAside(store, default_ttl_seconds=cfg.cache.ttl_seconds)
    question_repository = QuestionRepository(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "app.startup",
            extra={
                "store_backend": type(store).__name__,
                "db_dialect": engine.dialect.name,
                "llm_provider": cfg.llm.provider,
            },
        )
        try:
            yield
        finally:
            await store.close()
            logger.info("app.shutdown")

    app = FastAPI(
        title="MCQ Quiz API",
        description=(
            "Multiple-choice question sets with cached listings, AI generated "
            "explanations with web sources, streamed follow-up chat and "
            "per-endpoint rate limits."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.store = store
    app.state.engine = engine
    app.state.llm = llm
    app.state.cache = cache
    app.state.rate_limiter = CounterRateLimiter(store)
    app.state.question_service = QuestionService(
        question_repository,
        cache,
        ttl_seconds=cfg.cache.ttl_seconds,
    )
    app.state.explanation_service = ExplanationService(
        question_repository,
        llm,
        cache,
        explain_model=cfg.llm.reasoning_model,
        chat_model=cfg.llm.model,
        chat_reasoning_model=cfg.llm.reasoning_model,
    )
    app.state.visitor_service = VisitorService(VisitorRepository(engine))

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(cfg.app.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
            cfg.log.request_id_header,
        ],
    )
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(questions_router)
    app.include_router(explanations_router)
    app.include_router(visitors_router)
    app.include_router(health_router)

    # OpenAPI customizations (tags metadata)
    apply_openapi_customizations(app)

    return app
