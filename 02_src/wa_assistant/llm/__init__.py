"""LLM module."""

from .llm_provider import DEFAULT_SYSTEM_PROMPT, ILLMProvider, LLMProvider

__all__ = ["DEFAULT_SYSTEM_PROMPT", "ILLMProvider", "LLMProvider"]
