from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Literal


@dataclass(frozen=True)
class SourceCitation:
    """A source the model cited. Only ``url`` typed sources carry a link."""

    source_type: str
    url: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class GeneratedText:
    """Single-shot generation result."""

    text: str
    sources: list[SourceCitation] = field(default_factory=list)


@dataclass(frozen=True)
class ChatEvent:
    """One incremental piece of a streamed chat answer."""

    type: Literal["text-delta", "source-url"]
    delta: str | None = None
    url: str | None = None


class AbstractLLMClient(ABC):
    """Interface for text-generation clients with web citations."""

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        *,
        model: str | None = None,
        search_context_size: str | None = None,
    ) -> GeneratedText:
        """Generate a complete answer for a prompt.

        Args:
            prompt: User prompt to send to the model.
            model: Model override; the client's default model otherwise.
            search_context_size: Web search depth hint ("low", "medium", "high").

        Returns:
            GeneratedText with the raw text and typed source citations.

        Raises:
            LLMAppError: If the provider call fails or returns no text.
        """
        ...

    @abstractmethod
    def stream_chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        system_prompt: str | None = None,
    ) -> AsyncIterator[ChatEvent]:
        """Stream a chat answer as text deltas interleaved with source URLs.

        Closing the iterator early closes the upstream connection.

        Args:
            messages: Ordered ``{"role", "content"}`` history.
            model: Model override; the client's default model otherwise.
            system_prompt: Optional system message prepended to the history.

        Raises:
            LLMAppError: If the provider call fails.
        """
        ...
