"""OpenAI-compatible LLM client adapter.

Serves both OpenAI and Gemini; the latter through Google's OpenAI-compatible
endpoint.
"""

from typing import Any

from openai import AsyncOpenAI

from flowchart_server.adapters.llm.base import AbstractLLMClient


class OpenAIClient(AbstractLLMClient):
    """Client for chat completions returning the assistant text.

    Uses the official OpenAI Python SDK with async support.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 45.0,
    ) -> None:
        """Initialize OpenAI async client.

        Args:
            api_key: Provider API key.
            model: Model name (e.g., "gemini-2.0-flash", "gpt-4o-mini").
            base_url: Optional custom base URL for the API.
            timeout_seconds: Timeout for requests in seconds.
        """
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self.model = model

    async def generate_text(self, prompt: str, **kwargs: Any) -> str:
        """Generate text using chat completions.

        Args:
            prompt: User prompt to send to the model.
            **kwargs: temperature, max_tokens, top_p, and top_k. top_k is not
                part of the OpenAI schema and travels in the request body extras.

        Returns:
            str: Assistant message content.

        Raises:
            RuntimeError: If the API call fails or returns no content.
        """
        request_params: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }

        for param in ("temperature", "max_tokens", "top_p"):
            if kwargs.get(param) is not None:
                request_params[param] = kwargs[param]

        if kwargs.get("top_k") is not None:
            request_params["extra_body"] = {"top_k": kwargs["top_k"]}

        try:
            response = await self.client.chat.completions.create(**request_params)
            content = response.choices[0].message.content
        except Exception as exc:
            raise RuntimeError(f"LLM provider error: {str(exc)}") from exc

        if content is None:
            raise RuntimeError("LLM returned empty response")

        return content
