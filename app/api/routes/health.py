from __future__ import annotations

from fastapi import APIRouter, Request

from app.adapters.store import STORE_UNAVAILABLE

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Liveness check with the counter/cache store's reachability.

    The API keeps serving when the store is down (cache misses, rate limits
    fail open), so an unreachable store is reported but still answers 200.

    Returns:
        dict: ``{"status": "ok", "store": "ok" | "unavailable"}``.
    """
    reachable = await request.app.state.store.ping()
    store_status = "unavailable" if reachable is STORE_UNAVAILABLE or not reachable else "ok"
    return {"status": "ok", "store": store_status}
