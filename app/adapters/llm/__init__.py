"""LLM adapter layer - abstracts over OpenAI-compatible providers."""

from app.adapters.llm.base import (
    AbstractLLMClient,
    ChatEvent,
    GeneratedText,
    SourceCitation,
)
from app.adapters.llm.factory import create_llm_client
from app.adapters.llm.openai_client import OpenAIClient

__all__ = [
    "AbstractLLMClient",
    "ChatEvent",
    "GeneratedText",
    "OpenAIClient",
    "SourceCitation",
    "create_llm_client",
]
