"""Tests for the explanation orchestrator and chat stream setup."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import insert

from app.adapters.llm.base import AbstractLLMClient, ChatEvent, GeneratedText, SourceCitation
from app.adapters.store import InMemoryKeyValueStore
from app.core.errors import LLMAppError, NotFoundAppError
from app.db.schema import questions
from app.repositories.questions_repository import QuestionRepository
from app.schemas.explanations import ChatMessage, ChatMessagePart
from app.services.explanation_service import (
    ExplanationService,
    build_chat_system_prompt,
    build_explanation_prompt,
    strip_thinking,
    url_sources,
)
from app.utils.cache import CacheAside


def _insert_question(engine, **overrides) -> int:
    values = {
        "question": "What is 2 + 2?",
        "options": '["3", "4"]',
        "answer": "4",
        "topic": "Math",
        **overrides,
    }
    with engine.begin() as conn:
        return conn.execute(insert(questions).values(**values)).inserted_primary_key[0]


@pytest.fixture
def llm(stream_of) -> MagicMock:
    llm = MagicMock(spec=AbstractLLMClient)
    llm.stream_chat = MagicMock(side_effect=stream_of())
    llm.generate_text = AsyncMock(
        return_value=GeneratedText(
            text="<think>reasoning here</think>\n\nFour is two plus two.",
            sources=[
                SourceCitation(source_type="url", url="https://math.example/add"),
                SourceCitation(source_type="document", url=None, title="Textbook"),
                SourceCitation(source_type="url", url="https://wiki.example/4"),
            ],
        )
    )
    return llm


@pytest.fixture
def service(engine, store: InMemoryKeyValueStore, llm: MagicMock) -> ExplanationService:
    return ExplanationService(
        QuestionRepository(engine),
        llm,
        CacheAside(store),
        explain_model="sonar-reasoning-pro",
        chat_model="sonar",
        chat_reasoning_model="sonar-reasoning-pro",
    )


class TestStripThinking:
    def test_removes_block_and_following_whitespace(self) -> None:
        assert strip_thinking("<think>x</think>\n\nAnswer") == "Answer"

    def test_removes_multiple_multiline_blocks(self) -> None:
        text = "<think>line1\nline2</think> Part one. <think>more</think>  Part two. "
        assert strip_thinking(text) == "Part one. Part two."

    def test_text_without_block_is_unchanged(self) -> None:
        assert strip_thinking("  plain text  ") == "  plain text  "

    def test_only_thinking_yields_empty(self) -> None:
        assert strip_thinking("<think>all reasoning</think>") == ""


def test_url_sources_keeps_only_typed_urls() -> None:
    sources = [
        SourceCitation(source_type="url", url="https://a.example"),
        SourceCitation(source_type="url", url=None),
        SourceCitation(source_type="document", url="https://doc.example"),
    ]
    assert url_sources(sources) == ["https://a.example"]


def test_prompts_embed_inputs() -> None:
    prompt = build_explanation_prompt("Why is the sky blue?", "Rayleigh scattering")
    assert '"Rayleigh scattering" is the correct answer' in prompt
    assert '"Why is the sky blue?"' in prompt
    assert "Do NOT use any sort of markdown formatting" in prompt

    system = build_chat_system_prompt("Because of scattering.")
    assert "Because of scattering." in system
    assert system.startswith("You are a helpful assistant")


class TestGetExplanation:
    @pytest.mark.asyncio
    async def test_stored_explanation_skips_llm(self, service, engine, llm) -> None:
        qid = _insert_question(
            engine,
            explanation="Stored text.",
            explanation_sources='["https://stored.example"]',
        )

        result = await service.get_explanation(qid, "What is 2 + 2?", "4")

        assert result.explanation == "Stored text."
        assert result.sources == ["https://stored.example"]
        llm.generate_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_explanation_generated_once_and_persisted(
        self, service, engine, llm
    ) -> None:
        qid = _insert_question(engine)

        first = await service.get_explanation(qid, "What is 2 + 2?", "4")
        second = await service.get_explanation(qid, "What is 2 + 2?", "4")

        assert first.explanation == "Four is two plus two."
        assert first.sources == ["https://math.example/add", "https://wiki.example/4"]
        assert second == first
        llm.generate_text.assert_awaited_once()
        _, kwargs = llm.generate_text.call_args
        assert kwargs == {"model": "sonar-reasoning-pro", "search_context_size": "high"}

        stored = QuestionRepository(engine).get_explanation(qid)
        assert stored.explanation == "Four is two plus two."

    @pytest.mark.asyncio
    async def test_generation_invalidates_question_listings(
        self, service, engine, store: InMemoryKeyValueStore
    ) -> None:
        qid = _insert_question(engine)
        await store.set("questions:all", "{}", 60)
        await store.set("questions:topic=Math", "{}", 60)
        await store.set("ratelimit:explain:1.2.3.4", "1", 60)

        await service.get_explanation(qid, "What is 2 + 2?", "4")

        assert await store.get("questions:all") is None
        assert await store.get("questions:topic=Math") is None
        assert await store.get("ratelimit:explain:1.2.3.4") == "1"

    @pytest.mark.asyncio
    async def test_unknown_question_is_not_found(self, service, llm) -> None:
        with pytest.raises(NotFoundAppError) as exc_info:
            await service.get_explanation(9999, "Q", "A")

        assert exc_info.value.code == "question_not_found"
        llm.generate_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_llm_failure_persists_nothing(self, service, engine, llm) -> None:
        qid = _insert_question(engine)
        llm.generate_text.side_effect = LLMAppError(code="llm_request_failed", message="boom")

        with pytest.raises(LLMAppError):
            await service.get_explanation(qid, "Q", "A")

        assert QuestionRepository(engine).get_explanation(qid).explanation is None


class TestOpenChatStream:
    @pytest.mark.asyncio
    async def test_forwards_events_in_order(self, service, llm, stream_of) -> None:
        llm.stream_chat = MagicMock(
            side_effect=stream_of(
                ChatEvent(type="text-delta", delta="Hel"),
                ChatEvent(type="text-delta", delta="lo"),
                ChatEvent(type="source-url", url="https://a.example"),
            )
        )

        events = await service.open_chat_stream(
            [ChatMessage(role="user", content="Why?")],
        )

        assert [e.delta or e.url async for e in events] == ["Hel", "lo", "https://a.example"]

    @pytest.mark.asyncio
    async def test_model_and_system_prompt_selection(self, service, llm) -> None:
        await service.open_chat_stream(
            [ChatMessage(role="user", parts=[ChatMessagePart(type="text", text="More?")])],
            reasoning=True,
            explanation_context="Because.",
        )

        args, kwargs = llm.stream_chat.call_args
        assert args[0] == [{"role": "user", "content": "More?"}]
        assert kwargs["model"] == "sonar-reasoning-pro"
        assert "Because." in kwargs["system_prompt"]

    @pytest.mark.asyncio
    async def test_default_chat_model_without_context(self, service, llm) -> None:
        await service.open_chat_stream([ChatMessage(role="user", content="Hi")])

        _, kwargs = llm.stream_chat.call_args
        assert kwargs["model"] == "sonar"
        assert kwargs["system_prompt"] is None

    @pytest.mark.asyncio
    async def test_connection_failure_raises_before_streaming(self, service, llm) -> None:
        async def failing(*args, **kwargs):
            raise LLMAppError(code="llm_request_failed", message="unauthorized")
            yield  # pragma: no cover

        llm.stream_chat = MagicMock(side_effect=failing)

        with pytest.raises(LLMAppError):
            await service.open_chat_stream([ChatMessage(role="user", content="Hi")])
