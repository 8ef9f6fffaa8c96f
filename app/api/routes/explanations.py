import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from app.adapters.llm.base import ChatEvent
from app.api.dependencies import get_explanation_service
from app.core.errors import LLMAppError
from app.core.rate_limit import enforce_rate_limit, rate_limit_headers
from app.schemas.explanations import ChatRequest, ExplainRequest, ExplanationResponse
from app.services.explanation_service import ExplanationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Explanations"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_frame(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _event_payload(event: ChatEvent) -> dict:
    if event.type == "text-delta":
        return {"type": "text-delta", "delta": event.delta}
    return {"type": "source-url", "url": event.url}


async def _sse_stream(events: AsyncIterator[ChatEvent]) -> AsyncIterator[str]:
    try:
        async for event in events:
            yield sse_frame(_event_payload(event))
    except LLMAppError as exc:
        logger.error("chat.stream_failed", extra={"error_code": exc.code})
        yield sse_frame({"type": "error", "errorText": "The answer stream was interrupted."})
        return
    yield sse_frame({"type": "finish"})


@router.post(
    "/explain",
    response_model=ExplanationResponse,
    dependencies=[Depends(enforce_rate_limit("explain"))],
)
async def explain(
    body: ExplainRequest,
    service: ExplanationService = Depends(get_explanation_service),
) -> ExplanationResponse:
    """Return the explanation for a question's correct answer.

    Generated with web search on first request and persisted; later requests
    are served from the stored copy.

    Raises:
        NotFoundAppError: 404 for an unknown question id.
        LLMAppError: 500 when generation fails.
    """
    result = await service.get_explanation(body.question_id, body.question, body.answer)
    return ExplanationResponse(explanation=result.explanation, sources=result.sources)


@router.post(
    "/chat",
    dependencies=[Depends(enforce_rate_limit("chat"))],
)
async def chat(
    request: Request,
    body: ChatRequest,
    service: ExplanationService = Depends(get_explanation_service),
) -> StreamingResponse:
    """Stream a follow-up answer about an explanation as server-sent events.

    Each frame is ``data: <json>``: ``text-delta`` and ``source-url`` events,
    then ``finish``. A mid-stream upstream failure sends ``error`` instead.
    """
    events = await service.open_chat_stream(
        body.messages,
        reasoning=body.reasoning,
        explanation_context=body.explanation_context,
    )

    headers = dict(SSE_HEADERS)
    rate_limit = getattr(request.state, "rate_limit", None)
    if rate_limit is not None and request.app.state.settings.rate_limit.include_headers:
        headers.update(rate_limit_headers(rate_limit))

    return StreamingResponse(
        _sse_stream(events),
        media_type="text/event-stream",
        headers=headers,
    )
