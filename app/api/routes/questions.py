from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_question_service
from app.core.rate_limit import enforce_rate_limit
from app.repositories.questions_repository import QuestionDraftRow
from app.schemas.questions import (
    BulkCreateRequest,
    BulkCreateResponse,
    QuestionSetResponse,
)
from app.services.question_service import QuestionService

router = APIRouter(prefix="/api", tags=["Questions"])


@router.get(
    "/questions",
    response_model=QuestionSetResponse,
    response_model_by_alias=True,
    response_model_exclude_unset=True,
    dependencies=[Depends(enforce_rate_limit("questions"))],
)
async def list_questions(
    topic: str | None = Query(None, description="Only return questions of this topic (set)."),
    service: QuestionService = Depends(get_question_service),
) -> QuestionSetResponse:
    """List questions, optionally filtered by topic.

    Served from the cache when possible. The ``topic`` field is omitted from
    each question when a filter is given.

    Returns:
        QuestionSetResponse: ``{"set": <topic or "all">, "questions": [...]}``.
    """
    payload = await service.list_questions(topic)
    return QuestionSetResponse.model_validate(payload)


@router.post(
    "/questions/bulk",
    response_model=BulkCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def bulk_create_questions(
    body: BulkCreateRequest,
    service: QuestionService = Depends(get_question_service),
) -> BulkCreateResponse:
    """Create many questions under one topic.

    Raises:
        ValidationAppError: 400 when ``questions`` is empty.
    """
    drafts = [
        QuestionDraftRow(
            question=q.question,
            options=list(q.options),
            answer=q.answer,
            parent_set=body.parent_set,
        )
        for q in body.questions
    ]
    count = await service.bulk_create(body.name, drafts)
    return BulkCreateResponse(
        message="Successfully created questions",
        count=count,
        topic=body.name,
    )
