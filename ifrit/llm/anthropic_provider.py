"""Anthropic messages API implementation."""

from typing import Any

from anthropic import Anthropic


class AnthropicProvider:
    """Anthropic chat completion returning the concatenated text blocks."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-sonnet-20241022",
        timeout: float = 180.0,
    ):
        self._client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self._model = model

    def complete(self, prompt: str, **kwargs: Any) -> str:
        response = self._client.messages.create(
            model=kwargs.get("model") or self._model,
            max_tokens=kwargs.get("max_tokens", 4096),
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(getattr(block, "text", "") for block in response.content)
