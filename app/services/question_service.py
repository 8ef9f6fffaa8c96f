"""Question listing and bulk creation.

Listings are served through the cache-aside accessor, one cache slot per
topic filter plus one for the unfiltered view. Writes invalidate the cached
views they make stale.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from app.core.errors import ValidationAppError
from app.repositories.questions_repository import QuestionDraftRow, QuestionRepository
from app.utils.blocking import run_blocking
from app.utils.cache import CacheAside, build_cache_key
from app.utils.json_columns import normalize_json_list

logger = logging.getLogger(__name__)

QUESTIONS_RESOURCE = "questions"
ALL_SET_NAME = "all"


def project_question(row: dict[str, Any], *, include_topic: bool) -> dict[str, Any]:
    """Shape a question row into its wire projection.

    JSON columns are normalized whether the driver returned them decoded or
    as text. ``topic`` is only included for unfiltered listings.
    """
    projection: dict[str, Any] = {
        "id": row["id"],
        "question": row["question"],
        "options": normalize_json_list(row["options"]),
        "answer": row["answer"],
    }
    if include_topic:
        projection["topic"] = row["topic"]
    projection["parentSet"] = row.get("parent_set")
    projection["explanation"] = row.get("explanation") or None
    projection["explanationSources"] = normalize_json_list(row.get("explanation_sources"))
    return projection


class QuestionService:
    """Cached question reads and cache-invalidating writes.

    Attributes:
        repository: Question table repository.
        cache: Cache-aside accessor over the shared store.
        ttl_seconds: TTL of cached listings.
    """

    def __init__(
        self,
        repository: QuestionRepository,
        cache: CacheAside,
        *,
        ttl_seconds: int = 86400,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def list_questions(self, topic: str | None = None) -> dict[str, Any]:
        """Return ``{"set": ..., "questions": [...]}`` for a topic or for all.

        Args:
            topic: Optional topic filter; empty means unfiltered.

        Returns:
            JSON-compatible payload, possibly served from cache.

        Raises:
            PersistenceAppError: If the cache misses and the database fails.
        """
        topic = topic or None
        cache_key = build_cache_key(QUESTIONS_RESOURCE, topic=topic)

        async def produce() -> dict[str, Any]:
            rows = await run_blocking(self.repository.list_questions, topic)
            logger.info(
                "questions.loaded",
                extra={"topic": topic, "count": len(rows)},
            )
            return {
                "set": topic or ALL_SET_NAME,
                "questions": [project_question(r, include_topic=topic is None) for r in rows],
            }

        return await self.cache.get_or_set(cache_key, produce, ttl_seconds=self.ttl_seconds)

    async def bulk_create(
        self,
        topic: str,
        drafts: Sequence[QuestionDraftRow],
    ) -> int:
        """Insert drafts under a topic and invalidate the affected listings.

        Both the topic's listing and the unfiltered listing embed the new
        questions, so both cache entries are dropped.

        Args:
            topic: Target topic (question set) name.
            drafts: Questions to insert.

        Returns:
            Number of inserted questions.

        Raises:
            ValidationAppError: If no questions are provided.
            PersistenceAppError: If the insert fails.
        """
        if not drafts:
            raise ValidationAppError(
                code="no_questions_provided",
                message="No questions provided",
                details={"topic": topic},
            )

        count = await run_blocking(self.repository.insert_many, topic, list(drafts))

        await self.cache.invalidate(build_cache_key(QUESTIONS_RESOURCE, topic=topic))
        await self.cache.invalidate(build_cache_key(QUESTIONS_RESOURCE))

        logger.info("questions.created", extra={"topic": topic, "count": count})
        return count
