"""OpenAI-compatible chat completion, used for every provider that speaks the OpenAI API."""

from typing import Any

from openai import OpenAI

# Providers reachable through the OpenAI SDK by swapping base_url.
OPENAI_COMPATIBLE_BASE_URLS: dict[str, str] = {
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai/",
    "deepseek": "https://api.deepseek.com/v1",
    "openrouter": "https://openrouter.ai/api/v1",
    "perplexity": "https://api.perplexity.ai",
    "vercel": "https://ai-gateway.vercel.sh/v1",
}


class OpenAIProvider:
    """Chat completion against an OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        timeout: float = 180.0,
    ):
        # max_retries=0: retries and backoff belong to the job runner
        self._client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
        self._model = model

    def complete(self, prompt: str, **kwargs: Any) -> str:
        response = self._client.chat.completions.create(
            model=kwargs.get("model") or self._model,
            messages=[{"role": "user", "content": prompt}],
            **{k: v for k, v in kwargs.items() if k not in ("model",)},
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
