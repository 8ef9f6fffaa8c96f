from __future__ import annotations

from fastapi.testclient import TestClient


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)
    assert len(generated) > 0

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None


def test_error_body_carries_request_id(client: TestClient):
    resp = client.post(
        "/api/questions/bulk",
        json={"name": "SPID", "questions": []},
        headers={"X-Request-ID": "req-err-1"},
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["request_id"] == "req-err-1"
    assert resp.headers["X-Request-ID"] == "req-err-1"


def test_health_reports_store(client: TestClient):
    assert client.get("/health").json() == {"status": "ok", "store": "ok"}


def test_cors_exposes_rate_limit_headers(client: TestClient):
    resp = client.get("/api/questions", headers={"Origin": "https://quiz.example"})

    assert resp.headers["access-control-allow-origin"] == "*"
    assert "X-RateLimit-Remaining" in resp.headers["access-control-expose-headers"]


def test_rejects_unusable_incoming_request_id(client: TestClient):
    resp = client.get("/health", headers={"X-Request-ID": "bad id with spaces"})

    assert resp.headers["X-Request-ID"] != "bad id with spaces"


def test_resolve_request_id():
    from app.core.middleware import resolve_request_id

    assert resolve_request_id("abc-123") == "abc-123"
    assert resolve_request_id("x" * 129) != "x" * 129
    assert len(resolve_request_id(None)) == 36
