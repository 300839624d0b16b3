"""LLM adapter layer: OpenAI-compatible providers and Anthropic behind a common protocol."""

from ifrit.llm.anthropic_provider import AnthropicProvider
from ifrit.llm.base import ContentGenerator, GenerationRequest, GenerationResult, LLMProvider
from ifrit.llm.generator import LLMContentGenerator, get_provider
from ifrit.llm.openai_provider import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "ContentGenerator",
    "GenerationRequest",
    "GenerationResult",
    "LLMContentGenerator",
    "LLMProvider",
    "OpenAIProvider",
    "get_provider",
]
