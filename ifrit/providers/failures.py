"""Detect rate-limit rejections in generation error text."""

from __future__ import annotations

_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "rate limit",
    "rate-limit",
    "rate_limit",
    "ratelimit",
    "too many requests",
    "429",
    "resource_exhausted",
    "quota exceeded",
    "exceeded your current quota",
    "try again later",
)


def is_rate_limit_error(error: str | None) -> bool:
    """True when a provider error should put that provider into cooldown."""
    if not error:
        return False
    haystack = " ".join(error.lower().split())
    return any(pattern in haystack for pattern in _RATE_LIMIT_PATTERNS)
