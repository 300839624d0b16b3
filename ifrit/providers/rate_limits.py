"""Static per-provider rate limits and the provider priority order."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimit:
    rpm: int
    cooldown_ms: int  # minimum gap between two requests
    daily_limit: int | None = None  # None = unlimited


RATE_LIMITS: dict[str, RateLimit] = {
    "gemini": RateLimit(rpm=15, cooldown_ms=4000, daily_limit=1500),
    "deepseek": RateLimit(rpm=60, cooldown_ms=1000),
    "openrouter": RateLimit(rpm=20, cooldown_ms=3000, daily_limit=50),
    "perplexity": RateLimit(rpm=3, cooldown_ms=350, daily_limit=5000),
    "vercel": RateLimit(rpm=60, cooldown_ms=1000, daily_limit=1000),
    "anthropic": RateLimit(rpm=50, cooldown_ms=1200),
}

PROVIDER_PRIORITY: tuple[str, ...] = (
    "gemini",
    "deepseek",
    "openrouter",
    "perplexity",
    "vercel",
    "anthropic",
)

WINDOW_MS = 60_000
RATE_LIMIT_PENALTY_MS = 60_000
NO_PROVIDER_DELAY_MS = 5_000
