"""LLM service - multi-provider abstraction using LiteLLM."""

from zapdesk.services.llm.provider import LLMProvider, LLMResponse

__all__ = ["LLMProvider", "LLMResponse"]
