"""Client for OpenAI-compatible chat completions (OpenAI, Perplexity)."""

from typing import Any, AsyncIterator

from openai import AsyncOpenAI, OpenAIError

from app.adapters.llm.base import (
    AbstractLLMClient,
    ChatEvent,
    GeneratedText,
    SourceCitation,
)
from app.core.errors import LLMAppError


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def extract_sources(payload: Any) -> list[SourceCitation]:
    """Read citations from a completion or stream chunk.

    Perplexity attaches ``search_results`` (title + url objects) and the older
    flat ``citations`` URL list as extra fields; ``search_results`` wins when
    both are present.
    """
    sources: list[SourceCitation] = []

    for item in _field(payload, "search_results") or []:
        url = _field(item, "url")
        sources.append(
            SourceCitation(
                source_type="url" if url else "document",
                url=url or None,
                title=_field(item, "title"),
            )
        )

    if not sources:
        for url in _field(payload, "citations") or []:
            if isinstance(url, str) and url:
                sources.append(SourceCitation(source_type="url", url=url))

    return sources


class OpenAIClient(AbstractLLMClient):
    """Async client over the official OpenAI SDK.

    Works against any endpoint speaking the chat completions protocol via
    ``base_url``.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        """Initialize the async SDK client.

        Args:
            api_key: Provider API key.
            model: Default model name (e.g. "sonar", "gpt-4o").
            base_url: Optional custom base URL for the API.
            timeout_seconds: Timeout for requests in seconds.
        """
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
        )
        self.model = model

    async def generate_text(
        self,
        prompt: str,
        *,
        model: str | None = None,
        search_context_size: str | None = None,
    ) -> GeneratedText:
        request_params: dict[str, Any] = {
            "model": model or self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if search_context_size:
            request_params["extra_body"] = {
                "web_search_options": {"search_context_size": search_context_size},
            }

        try:
            response = await self.client.chat.completions.create(**request_params)
        except OpenAIError as exc:
            raise LLMAppError(
                code="llm_request_failed",
                message=f"LLM provider error: {exc}",
                details={"model": request_params["model"]},
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMAppError(
                code="llm_empty_response",
                message="LLM returned an empty response",
                details={"model": request_params["model"]},
            )

        return GeneratedText(text=content, sources=extract_sources(response))

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        system_prompt: str | None = None,
    ) -> AsyncIterator[ChatEvent]:
        history = list(messages)
        if system_prompt:
            history.insert(0, {"role": "system", "content": system_prompt})
        model_name = model or self.model

        try:
            stream = await self.client.chat.completions.create(
                model=model_name,
                messages=history,
                stream=True,
            )
        except OpenAIError as exc:
            raise LLMAppError(
                code="llm_request_failed",
                message=f"LLM provider error: {exc}",
                details={"model": model_name},
            ) from exc

        seen_urls: set[str] = set()
        try:
            async for chunk in stream:
                for choice in chunk.choices or []:
                    delta = choice.delta.content if choice.delta else None
                    if delta:
                        yield ChatEvent(type="text-delta", delta=delta)

                # Providers repeat the full citation list on every chunk
                for source in extract_sources(chunk):
                    if source.source_type == "url" and source.url not in seen_urls:
                        seen_urls.add(source.url)
                        yield ChatEvent(type="source-url", url=source.url)
        except OpenAIError as exc:
            raise LLMAppError(
                code="llm_stream_failed",
                message=f"LLM stream interrupted: {exc}",
                details={"model": model_name},
            ) from exc
        finally:
            await stream.close()
