from __future__ import annotations

from app.api.routes.explanations import router as explanations_router
from app.api.routes.health import router as health_router
from app.api.routes.questions import router as questions_router
from app.api.routes.visitors import router as visitors_router

__all__ = ["explanations_router", "health_router", "questions_router", "visitors_router"]
