"""FastAPI dependencies resolving services built by the application factory."""

from __future__ import annotations

from fastapi import Request

from app.services.explanation_service import ExplanationService
from app.services.question_service import QuestionService
from app.services.visitor_service import VisitorService


def get_question_service(request: Request) -> QuestionService:
    return request.app.state.question_service


def get_explanation_service(request: Request) -> ExplanationService:
    return request.app.state.explanation_service


def get_visitor_service(request: Request) -> VisitorService:
    return request.app.state.visitor_service
