"""Pydantic schemas for explanations and follow-up chat."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ExplainRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: int = Field(..., alias="questionId")
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class ExplanationResponse(BaseModel):
    explanation: str
    sources: list[str] = Field(default_factory=list)


class ChatMessagePart(BaseModel):
    type: str
    text: str | None = None


class ChatMessage(BaseModel):
    """One turn of the conversation.

    Accepts plain ``content`` or UI-style ``parts``; only text parts are kept.
    """

    role: Literal["system", "user", "assistant"]
    content: str | None = None
    parts: list[ChatMessagePart] | None = None

    def text(self) -> str:
        if self.content is not None:
            return self.content
        return "".join(p.text or "" for p in self.parts or [] if p.type == "text")


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[ChatMessage] = Field(..., min_length=1)
    reasoning: bool = Field(
        False,
        description="Use the reasoning model ('think harder').",
    )
    explanation_context: str | None = Field(
        None,
        alias="explanationContext",
        description="Explanation the user is asking follow-up questions about.",
    )
