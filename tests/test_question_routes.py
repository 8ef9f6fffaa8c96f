"""HTTP tests for question listing and bulk creation."""

from fastapi.testclient import TestClient

BULK_BODY = {
    "name": "SPID",
    "parentSet": "Security",
    "questions": [
        {"question": "What does S stand for?", "options": ["Spoofing", "Sniffing"], "answer": "Spoofing"},
        {"question": "What does T stand for?", "options": ["Tampering", "Tracing"], "answer": "Tampering"},
    ],
}


def test_bulk_create_returns_201(client: TestClient) -> None:
    resp = client.post("/api/questions/bulk", json=BULK_BODY)

    assert resp.status_code == 201
    assert resp.json() == {"message": "Successfully created questions", "count": 2, "topic": "SPID"}


def test_bulk_create_empty_list_is_400(client: TestClient) -> None:
    resp = client.post("/api/questions/bulk", json={"name": "SPID", "questions": []})

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "no_questions_provided"
    assert error["message"] == "No questions provided"


def test_bulk_create_answer_must_be_an_option(client: TestClient) -> None:
    body = {
        "name": "SPID",
        "questions": [{"question": "Q", "options": ["A", "B"], "answer": "C"}],
    }
    assert client.post("/api/questions/bulk", json=body).status_code == 422


def test_bulk_create_is_not_rate_limited(client: TestClient) -> None:
    resp = client.post("/api/questions/bulk", json=BULK_BODY)
    assert "X-RateLimit-Limit" not in resp.headers


def test_list_all_questions(client: TestClient) -> None:
    client.post("/api/questions/bulk", json=BULK_BODY)

    resp = client.get("/api/questions")

    assert resp.status_code == 200
    data = resp.json()
    assert data["set"] == "all"
    first = data["questions"][0]
    assert first == {
        "id": first["id"],
        "question": "What does S stand for?",
        "options": ["Spoofing", "Sniffing"],
        "answer": "Spoofing",
        "topic": "SPID",
        "parentSet": "Security",
        "explanation": None,
        "explanationSources": [],
    }


def test_filtered_listing_omits_topic(client: TestClient) -> None:
    client.post("/api/questions/bulk", json=BULK_BODY)
    client.post(
        "/api/questions/bulk",
        json={"name": "Other", "questions": [{"question": "Q", "options": ["A"], "answer": "A"}]},
    )

    resp = client.get("/api/questions", params={"topic": "SPID"})

    data = resp.json()
    assert data["set"] == "SPID"
    assert len(data["questions"]) == 2
    assert all("topic" not in q for q in data["questions"])


def test_listing_reflects_bulk_insert_after_cache_fill(client: TestClient) -> None:
    client.post("/api/questions/bulk", json=BULK_BODY)
    assert len(client.get("/api/questions").json()["questions"]) == 2

    client.post(
        "/api/questions/bulk",
        json={"name": "SPID", "questions": [{"question": "Q3", "options": ["A"], "answer": "A"}]},
    )

    assert len(client.get("/api/questions").json()["questions"]) == 3
    assert len(client.get("/api/questions", params={"topic": "SPID"}).json()["questions"]) == 3


def test_listing_carries_rate_limit_headers(client: TestClient) -> None:
    resp = client.get("/api/questions")

    assert resp.headers["X-RateLimit-Limit"] == "30"
    assert resp.headers["X-RateLimit-Remaining"] == "29"
    assert int(resp.headers["X-RateLimit-Reset"]) > 0
