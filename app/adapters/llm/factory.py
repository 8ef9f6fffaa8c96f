"""Factory pattern for creating LLM client instances."""

from app.adapters.llm.base import AbstractLLMClient
from app.adapters.llm.openai_client import OpenAIClient
from app.core.config import LLMSettings
from app.core.errors import ValidationAppError

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"

# Providers speaking the OpenAI chat completions protocol, with default endpoints
_OPENAI_COMPATIBLE_PROVIDERS: dict[str, str | None] = {
    "perplexity": PERPLEXITY_BASE_URL,
    "openai": None,
}


def create_llm_client(llm_settings: LLMSettings) -> AbstractLLMClient:
    """Instantiate the LLM client for the configured provider.

    Args:
        llm_settings: Provider, model, credentials and timeout.

    Returns:
        AbstractLLMClient: Configured LLM client instance.

    Raises:
        ValidationAppError: If provider-specific requirements are not met.
    """
    provider = llm_settings.provider.lower()

    if provider not in _OPENAI_COMPATIBLE_PROVIDERS:
        supported = ", ".join(sorted(_OPENAI_COMPATIBLE_PROVIDERS))
        raise ValidationAppError(
            code="llm_unknown_provider",
            message=f"Unknown LLM provider: '{provider}'. Supported providers: {supported}",
        )

    if not llm_settings.api_key:
        raise ValidationAppError(
            code="llm_missing_api_key",
            message=f"{provider} provider requires LLM_API_KEY environment variable",
        )

    return OpenAIClient(
        api_key=llm_settings.api_key,
        model=llm_settings.model,
        base_url=llm_settings.base_url or _OPENAI_COMPATIBLE_PROVIDERS[provider],
        timeout_seconds=llm_settings.timeout_seconds,
    )
