"""HTTP tests for explanations and the streamed follow-up chat."""

import json
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from app.adapters.llm.base import ChatEvent, GeneratedText, SourceCitation
from app.core.errors import LLMAppError


def _create_question(client: TestClient) -> int:
    client.post(
        "/api/questions/bulk",
        json={
            "name": "Math",
            "questions": [{"question": "What is 2 + 2?", "options": ["3", "4"], "answer": "4"}],
        },
    )
    return client.get("/api/questions").json()["questions"][0]["id"]


def _sse_payloads(body: str) -> list[dict]:
    frames = [frame for frame in body.split("\n\n") if frame]
    assert all(frame.startswith("data: ") for frame in frames)
    return [json.loads(frame[len("data: "):]) for frame in frames]


class TestExplain:
    def test_generates_and_persists(self, client: TestClient, mock_llm: MagicMock) -> None:
        qid = _create_question(client)
        mock_llm.generate_text.return_value = GeneratedText(
            text="<think>hmm</think>Two plus two is four.",
            sources=[
                SourceCitation(source_type="url", url="https://a.example"),
                SourceCitation(source_type="document", title="Book"),
            ],
        )
        body = {"questionId": qid, "question": "What is 2 + 2?", "answer": "4"}

        first = client.post("/api/explain", json=body)
        second = client.post("/api/explain", json=body)

        assert first.status_code == 200
        assert first.json() == {
            "explanation": "Two plus two is four.",
            "sources": ["https://a.example"],
        }
        assert second.json() == first.json()
        mock_llm.generate_text.assert_awaited_once()

        listed = client.get("/api/questions").json()["questions"][0]
        assert listed["explanation"] == "Two plus two is four."
        assert listed["explanationSources"] == ["https://a.example"]

    def test_unknown_question_is_404(self, client: TestClient) -> None:
        resp = client.post("/api/explain", json={"questionId": 404, "question": "Q", "answer": "A"})

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "question_not_found"

    def test_llm_failure_is_500(self, client: TestClient, mock_llm: MagicMock) -> None:
        qid = _create_question(client)
        mock_llm.generate_text.side_effect = LLMAppError(
            code="llm_request_failed", message="LLM provider error"
        )

        resp = client.post("/api/explain", json={"questionId": qid, "question": "Q", "answer": "A"})

        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "llm_request_failed"

    def test_rate_limit_headers(self, client: TestClient, mock_llm: MagicMock) -> None:
        qid = _create_question(client)
        mock_llm.generate_text.return_value = GeneratedText(text="Because.")

        resp = client.post("/api/explain", json={"questionId": qid, "question": "Q", "answer": "A"})

        assert resp.status_code == 200
        assert resp.headers["X-RateLimit-Limit"] == "15"
        assert resp.headers["X-RateLimit-Remaining"] == "14"

    def test_missing_fields_is_422(self, client: TestClient) -> None:
        assert client.post("/api/explain", json={"questionId": 1}).status_code == 422


class TestChat:
    def test_streams_events_then_finish(self, client: TestClient, mock_llm: MagicMock, stream_of) -> None:
        mock_llm.stream_chat.side_effect = stream_of(
            ChatEvent(type="text-delta", delta="Four "),
            ChatEvent(type="source-url", url="https://a.example"),
            ChatEvent(type="text-delta", delta="it is."),
        )

        resp = client.post(
            "/api/chat",
            json={
                "messages": [{"role": "user", "parts": [{"type": "text", "text": "Why 4?"}]}],
                "explanationContext": "Two plus two is four.",
            },
        )

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["X-RateLimit-Limit"] == "35"
        assert _sse_payloads(resp.text) == [
            {"type": "text-delta", "delta": "Four "},
            {"type": "source-url", "url": "https://a.example"},
            {"type": "text-delta", "delta": "it is."},
            {"type": "finish"},
        ]
        _, kwargs = mock_llm.stream_chat.call_args
        assert kwargs["model"] == "sonar"
        assert "Two plus two is four." in kwargs["system_prompt"]

    def test_reasoning_selects_reasoning_model(self, client: TestClient, mock_llm: MagicMock) -> None:
        client.post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "Why?"}], "reasoning": True},
        )

        _, kwargs = mock_llm.stream_chat.call_args
        assert kwargs["model"] == "sonar-reasoning-pro"

    def test_upstream_failure_before_first_event_is_500(
        self, client: TestClient, mock_llm: MagicMock
    ) -> None:
        async def failing(*args, **kwargs):
            raise LLMAppError(code="llm_request_failed", message="unauthorized")
            yield  # pragma: no cover

        mock_llm.stream_chat.side_effect = failing

        resp = client.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})

        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "llm_request_failed"

    def test_mid_stream_failure_emits_error_frame(
        self, client: TestClient, mock_llm: MagicMock
    ) -> None:
        async def interrupted(*args, **kwargs):
            yield ChatEvent(type="text-delta", delta="Par")
            raise LLMAppError(code="llm_stream_failed", message="reset")

        mock_llm.stream_chat.side_effect = interrupted

        resp = client.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})

        payloads = _sse_payloads(resp.text)
        assert payloads[0] == {"type": "text-delta", "delta": "Par"}
        assert payloads[-1]["type"] == "error"
        assert {"type": "finish"} not in payloads

    def test_empty_messages_is_422(self, client: TestClient) -> None:
        assert client.post("/api/chat", json={"messages": []}).status_code == 422
