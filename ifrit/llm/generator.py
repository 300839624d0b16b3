"""Content generation through the job's configured providers.

Expected remote failures (HTTP status, timeouts, connection errors, empty
output) are returned as ``GenerationResult(success=False, error=...)`` so the
runner can classify them; the error text keeps the status code and message so
rate-limit rejections can be recognised.
"""

from __future__ import annotations

import itertools
import logging
from typing import Callable

import anthropic
import openai

from ifrit.config import Settings, get_settings
from ifrit.llm.anthropic_provider import AnthropicProvider
from ifrit.llm.base import GenerationRequest, GenerationResult, LLMProvider
from ifrit.llm.openai_provider import OPENAI_COMPATIBLE_BASE_URLS, OpenAIProvider
from ifrit.llm.prompts import build_content_prompt, max_tokens_for

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[str, str], LLMProvider]


def get_provider(provider_name: str, api_key: str, settings: Settings | None = None) -> LLMProvider:
    """Return the completion client for a provider id."""
    settings = settings or get_settings()
    name = provider_name.lower()
    model = settings.model_for(name)
    timeout = settings.ifrit_generation_timeout
    if name == "anthropic":
        return AnthropicProvider(api_key=api_key, model=model or "claude-3-5-sonnet-20241022", timeout=timeout)
    base_url = OPENAI_COMPATIBLE_BASE_URLS.get(name)
    if base_url is None:
        raise ValueError(f"Unknown provider: {provider_name}")
    return OpenAIProvider(api_key=api_key, model=model or "gpt-4o-mini", base_url=base_url, timeout=timeout)


def _describe_error(e: Exception) -> str:
    if isinstance(e, (openai.RateLimitError, anthropic.RateLimitError)):
        return f"Rate limit exceeded (429): {e}"
    if isinstance(e, (openai.APIStatusError, anthropic.APIStatusError)):
        return f"HTTP {e.status_code}: {e.message}"
    if isinstance(e, (openai.APITimeoutError, anthropic.APITimeoutError)):
        return "Generation request timed out"
    if isinstance(e, (openai.APIConnectionError, anthropic.APIConnectionError)):
        return f"Connection error: {e}"
    return str(e) or e.__class__.__name__


class LLMContentGenerator:
    """Generates articles, rotating across the API keys supplied for each provider."""

    def __init__(
        self,
        settings: Settings | None = None,
        provider_factory: ProviderFactory | None = None,
    ):
        self._settings = settings
        self._factory = provider_factory or (lambda name, key: get_provider(name, key, self._settings))
        self._key_cursors: dict[tuple[str, tuple[str, ...]], itertools.cycle] = {}

    def _next_key(self, provider: str, api_keys: list[str]) -> str | None:
        keys = tuple(k.strip() for k in api_keys if k and k.strip())
        if not keys:
            return None
        cursor = self._key_cursors.setdefault((provider, keys), itertools.cycle(keys))
        return next(cursor)

    def generate(
        self,
        provider: str,
        api_keys: list[str],
        request: GenerationRequest,
    ) -> GenerationResult:
        key = self._next_key(provider, api_keys)
        if key is None:
            return GenerationResult(success=False, error=f"No API key configured for {provider}")

        prompt = build_content_prompt(request)
        try:
            client = self._factory(provider, key)
            text = client.complete(prompt, max_tokens=max_tokens_for(request.content_type))
        except (openai.APIError, anthropic.APIError, ValueError) as e:
            error = _describe_error(e)
            logger.warning("Generation via %s failed for '%s': %s", provider, request.topic, error)
            return GenerationResult(success=False, error=error)

        text = (text or "").strip()
        if not text:
            return GenerationResult(success=False, error=f"{provider} returned empty content")
        return GenerationResult(success=True, content=text)
