"""Explanation orchestration and follow-up chat.

Explanations are generated once per question, then served from the question
row. Generation goes through the LLM client with web search, strips the
model's reasoning blocks and keeps only URL citations. Follow-up chat is a
pass-through stream; nothing from it is persisted.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import AsyncIterator, Sequence

from app.adapters.llm.base import AbstractLLMClient, ChatEvent, SourceCitation
from app.core.errors import NotFoundAppError
from app.repositories.questions_repository import QuestionRepository
from app.schemas.explanations import ChatMessage
from app.utils.blocking import run_blocking
from app.utils.cache import CacheAside, resource_pattern
from app.utils.json_columns import normalize_json_list

logger = logging.getLogger(__name__)

EXPLAIN_SEARCH_CONTEXT_SIZE = "high"

_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>\s*")


@dataclass(frozen=True)
class ExplanationResult:
    explanation: str
    sources: list[str] = field(default_factory=list)


def build_explanation_prompt(question: str, answer: str) -> str:
    """Build the plain-text explanation prompt for a question and its answer."""
    return (
        f'In simple terms, please explain why "{answer}" is the correct answer to '
        f'this question: "{question}". Do NOT use any sort of markdown formatting. '
        "Cite multiple sources. Do not start the explanation with anything like "
        '"Explanation: ", just start the explanation.'
    )


def build_chat_system_prompt(explanation_context: str) -> str:
    return (
        "You are a helpful assistant helping the user understand an explanation "
        "to a quiz question. Here is the explanation they are asking about:\n\n"
        f"{explanation_context}\n\n"
        "Answer their follow-up questions about this explanation. "
        "Be concise and helpful."
    )


def strip_thinking(text: str) -> str:
    """Remove ``<think>...</think>`` blocks emitted by reasoning models.

    Whitespace following a block goes with it and the result is trimmed.
    Text without a block is returned unchanged.
    """
    stripped, removed = _THINK_BLOCK.subn("", text)
    if not removed:
        return text
    return stripped.strip()


def url_sources(sources: Sequence[SourceCitation]) -> list[str]:
    """Keep the URLs of ``url`` typed citations, in order."""
    return [s.url for s in sources if s.source_type == "url" and s.url]


class ExplanationService:
    """Generate-once explanations plus streamed follow-up chat.

    Attributes:
        repository: Question table repository (explanation columns).
        llm: Text generation client.
        cache: Cache-aside accessor; question listings embed explanations.
        explain_model: Model used for explanations.
        chat_model: Default follow-up chat model.
        chat_reasoning_model: Chat model used when the user asks to think harder.
    """

    def __init__(
        self,
        repository: QuestionRepository,
        llm: AbstractLLMClient,
        cache: CacheAside,
        *,
        explain_model: str,
        chat_model: str,
        chat_reasoning_model: str,
    ) -> None:
        self.repository = repository
        self.llm = llm
        self.cache = cache
        self.explain_model = explain_model
        self.chat_model = chat_model
        self.chat_reasoning_model = chat_reasoning_model

    async def get_explanation(
        self,
        question_id: int,
        question: str,
        answer: str,
    ) -> ExplanationResult:
        """Return the stored explanation or generate, persist and return one.

        Args:
            question_id: Id of the question row.
            question: Question text sent to the model.
            answer: Correct answer text sent to the model.

        Returns:
            ExplanationResult with the text and its source URLs.

        Raises:
            NotFoundAppError: If no question has this id.
            LLMAppError: If generation fails.
            PersistenceAppError: If reading or saving the explanation fails.
        """
        stored = await run_blocking(self.repository.get_explanation, question_id)
        if stored is None:
            raise NotFoundAppError(
                code="question_not_found",
                message=f"Question {question_id} not found",
                details={"question_id": question_id},
            )

        if stored.explanation:
            logger.info("explanation.served_stored", extra={"question_id": question_id})
            return ExplanationResult(
                explanation=stored.explanation,
                sources=normalize_json_list(stored.sources),
            )

        generated = await self.llm.generate_text(
            build_explanation_prompt(question, answer),
            model=self.explain_model,
            search_context_size=EXPLAIN_SEARCH_CONTEXT_SIZE,
        )
        result = ExplanationResult(
            explanation=strip_thinking(generated.text),
            sources=url_sources(generated.sources),
        )

        await run_blocking(
            self.repository.save_explanation,
            question_id,
            result.explanation,
            result.sources,
        )
        deleted = await self.cache.invalidate(resource_pattern("questions"))

        logger.info(
            "explanation.generated",
            extra={
                "question_id": question_id,
                "model": self.explain_model,
                "source_count": len(result.sources),
                "invalidated_keys": deleted,
            },
        )
        return result

    async def open_chat_stream(
        self,
        messages: Sequence[ChatMessage],
        *,
        reasoning: bool = False,
        explanation_context: str | None = None,
    ) -> AsyncIterator[ChatEvent]:
        """Open an upstream chat stream and return its events.

        The first event is awaited here so that connection and auth failures
        raise ``LLMAppError`` before any response bytes are sent.

        Args:
            messages: Conversation so far.
            reasoning: Use the reasoning model.
            explanation_context: Explanation the user is asking about.

        Returns:
            Async iterator over the remaining events, first event included.

        Raises:
            LLMAppError: If the stream cannot be opened.
        """
        model = self.chat_reasoning_model if reasoning else self.chat_model
        system_prompt = (
            build_chat_system_prompt(explanation_context) if explanation_context else None
        )
        history = [{"role": m.role, "content": m.text()} for m in messages]

        upstream = self.llm.stream_chat(history, model=model, system_prompt=system_prompt)
        try:
            first = await upstream.__anext__()
        except StopAsyncIteration:
            first = None
        except BaseException:
            await upstream.aclose()
            raise

        logger.info(
            "chat.stream_opened",
            extra={"model": model, "message_count": len(history)},
        )
        return _forward(first, upstream)


async def _forward(
    first: ChatEvent | None,
    upstream: AsyncIterator[ChatEvent],
) -> AsyncIterator[ChatEvent]:
    try:
        if first is not None:
            yield first
        async for event in upstream:
            yield event
    finally:
        await upstream.aclose()
