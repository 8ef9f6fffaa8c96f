"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with tag descriptions and documents the
rate-limit headers on every rate-limited operation. Keeps documentation
concerns out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Questions",
        "description": "Cached question listings and bulk creation.",
    },
    {
        "name": "Explanations",
        "description": "AI generated explanations and streamed follow-up chat.",
    },
    {
        "name": "Visitors",
        "description": "Anonymous visit counting by browser fingerprint.",
    },
    {
        "name": "Health",
        "description": "Liveness check.",
    },
]

RATE_LIMITED_PATHS = {"/api/questions", "/api/explain", "/api/chat", "/api/visitors"}

_RATE_LIMIT_HEADERS = {
    "X-RateLimit-Limit": "Requests allowed in the current window.",
    "X-RateLimit-Remaining": "Requests left in the current window.",
    "X-RateLimit-Reset": "Epoch seconds at which the window resets.",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and quota headers.

    - Adds tags metadata if not present
    - Documents ``X-RateLimit-*`` headers on successful responses and a 429
      response on every rate-limited path
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        # Tags metadata
        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        headers = {
            name: {"description": text, "schema": {"type": "integer"}}
            for name, text in _RATE_LIMIT_HEADERS.items()
        }
        for path, methods in schema.get("paths", {}).items():
            if path not in RATE_LIMITED_PATHS:
                continue
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                responses = method_obj.setdefault("responses", {})
                for code, response in responses.items():
                    if code.startswith("2"):
                        response.setdefault("headers", {}).update(headers)
                responses.setdefault(
                    "429",
                    {
                        "description": "Rate limit exceeded",
                        "headers": {
                            **headers,
                            "Retry-After": {
                                "description": "Seconds until the window resets.",
                                "schema": {"type": "integer"},
                            },
                        },
                    },
                )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
