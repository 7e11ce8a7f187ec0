"""Factory pattern for creating LLM client instances."""

from flowchart_server.adapters.llm.base import AbstractLLMClient
from flowchart_server.adapters.llm.openai_client import OpenAIClient
from flowchart_server.core.config import settings
from flowchart_server.core.errors import ValidationAppError

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

SUPPORTED_PROVIDERS = ("openai", "gemini")


def create_llm_client() -> AbstractLLMClient:
    """Instantiate the generation client configured in ``settings.llm``.

    Returns:
        AbstractLLMClient: Configured LLM client instance.

    Raises:
        ValidationAppError: If the provider is unknown or has no API key.
    """
    provider = settings.llm.provider.lower()

    if provider not in SUPPORTED_PROVIDERS:
        raise ValidationAppError(
            code="llm_unknown_provider",
            message=(
                f"Unknown LLM provider: '{provider}'. "
                f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
            ),
        )

    if not settings.llm.api_key:
        raise ValidationAppError(
            code="llm_missing_api_key",
            message=f"{provider} provider requires LLM_API_KEY environment variable",
        )

    base_url = settings.llm.base_url
    if provider == "gemini" and base_url is None:
        base_url = GEMINI_OPENAI_BASE_URL

    return OpenAIClient(
        api_key=settings.llm.api_key,
        model=settings.llm.model,
        base_url=base_url,
        timeout_seconds=settings.llm.timeout_seconds,
    )
