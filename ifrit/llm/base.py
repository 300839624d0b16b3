"""Generation call contract shared by the runner and the provider adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


class LLMProvider(Protocol):
    """Protocol for text completion backends (OpenAI-compatible, Anthropic)."""

    def complete(self, prompt: str, **kwargs: Any) -> str:
        """Return raw text completion."""
        ...


@dataclass
class GenerationRequest:
    content_type: str
    topic: str
    keywords: list[str] = field(default_factory=list)
    parent_pillar: str | None = None
    site_context: dict[str, Any] = field(default_factory=dict)


@dataclass
class GenerationResult:
    success: bool
    content: str | None = None
    error: str | None = None


class ContentGenerator(Protocol):
    """Produces one article/page through a named provider.

    Expected remote failures come back as ``GenerationResult(success=False)``.
    """

    def generate(
        self,
        provider: str,
        api_keys: list[str],
        request: GenerationRequest,
    ) -> GenerationResult: ...
