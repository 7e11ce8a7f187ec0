from abc import ABC, abstractmethod
from typing import Any


class AbstractLLMClient(ABC):
	"""Interface for LLM clients that complete a prompt into plain text."""

	@abstractmethod
	async def generate_text(
		self,
		prompt: str,
		**kwargs: Any,
	) -> str:
		"""Complete the prompt and return the raw response text.

		Args:
			prompt: Full prompt to send to the model.
			**kwargs: Sampling options (temperature, max_tokens, top_p, top_k).

		Returns:
			str: Response text exactly as produced by the model.

		Raises:
			RuntimeError: If the provider call fails or returns no text.
		"""
		...
