"""Service layer utilities."""

from .llm_client import AnthropicClient, LLMClientError, LLMResponse  # noqa: F401

__all__ = [
    "AnthropicClient",
    "LLMClientError",
    "LLMResponse",
]
