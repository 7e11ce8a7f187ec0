"""LLM adapter layer - abstracts over text-completion providers."""

from flowchart_server.adapters.llm.base import AbstractLLMClient
from flowchart_server.adapters.llm.factory import create_llm_client
from flowchart_server.adapters.llm.openai_client import OpenAIClient

__all__ = [
    "AbstractLLMClient",
    "OpenAIClient",
    "create_llm_client",
]
