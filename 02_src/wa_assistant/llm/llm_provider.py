"""LLM Provider implementation using Anthropic Claude API."""

import os
from typing import Protocol

import anthropic

from ..errors import GenerationError

DEFAULT_SYSTEM_PROMPT = (
    "Eres un asistente conversacional de WhatsApp. Responde en español, "
    "de forma breve, amable y útil."
)


class ILLMProvider(Protocol):
    """Abstraction for LLM access."""

    async def complete(
        self,
        messages: list[dict],  # [{"role": "user", "content": "..."}]
        system: str | None = None,
        max_tokens: int = 1024,
    ) -> str:
        """Generate completion."""
        ...

    async def generate(self, prompt: str, system: str | None = None) -> str:
        """Generate a reply for a single user prompt."""
        ...


class LLMProvider:
    """Anthropic Claude API provider."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-sonnet-20241022",
        timeout: float = 30.0,
    ):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")

        self._model = model
        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key,
            timeout=timeout,
            max_retries=1,
        )

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[dict],  # [{"role": "user", "content": "..."}]
        system: str | None = None,
        max_tokens: int = 1024,
    ) -> str:
        """Generate completion using Claude API."""
        try:
            response = await self._client.messages.create(
                model=self._model,
                system=system or DEFAULT_SYSTEM_PROMPT,
                messages=messages,
                max_tokens=max_tokens,
            )
        except anthropic.APIError as e:
            raise GenerationError(f"LLM API error: {e}") from e

        texts = [
            block.text
            for block in response.content
            if isinstance(getattr(block, "text", None), str)
        ]
        if not texts:
            raise GenerationError("LLM returned no text content")
        return "".join(texts)

    async def generate(self, prompt: str, system: str | None = None) -> str:
        """Generate a reply for a single user prompt."""
        return await self.complete([{"role": "user", "content": prompt}], system=system)
