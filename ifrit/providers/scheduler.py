"""Rate-limit aware provider selection for a job.

The scheduler reads the job's credential map and mutates only
``job.provider_usage``; queue items are never touched here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, Sequence

from ifrit.jobs.models import Job, ProviderUsage, now_ms
from ifrit.providers.rate_limits import (
    NO_PROVIDER_DELAY_MS,
    PROVIDER_PRIORITY,
    RATE_LIMIT_PENALTY_MS,
    RATE_LIMITS,
    WINDOW_MS,
    RateLimit,
)

logger = logging.getLogger(__name__)


def utc_day(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).date().isoformat()


def ms_until_next_utc_day(ts_ms: int) -> int:
    now = datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)
    midnight = datetime.combine(now.date() + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc)
    return max(0, int(midnight.timestamp() * 1000) - ts_ms)


class ProviderScheduler:
    """Picks the next usable provider, or says how long until one frees up."""

    def __init__(
        self,
        job: Job,
        rate_limits: Mapping[str, RateLimit] | None = None,
        priority: Sequence[str] | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.job = job
        self.rate_limits = rate_limits if rate_limits is not None else RATE_LIMITS
        self.priority = tuple(priority) if priority is not None else PROVIDER_PRIORITY
        self._clock = clock

    def has_credentials(self, provider: str) -> bool:
        return any(k and k.strip() for k in self.job.provider_keys.get(provider, []))

    def configured_providers(self) -> list[str]:
        """Providers with credentials and a rate table entry, in priority order."""
        return [p for p in self.priority if p in self.rate_limits and self.has_credentials(p)]

    def _daily_count(self, usage: ProviderUsage, now: int) -> int:
        if usage.usage_day is not None and usage.usage_day != utc_day(now):
            return 0
        return usage.daily_requests

    def is_available(self, provider: str) -> bool:
        limits = self.rate_limits.get(provider)
        if limits is None or not self.has_credentials(provider):
            return False

        usage = self.job.provider_usage.get(provider)
        if usage is None:
            return True

        now = self._clock()
        if usage.cooldown_until and usage.cooldown_until > now:
            return False
        if now - usage.last_request_at < WINDOW_MS and usage.requests_this_minute >= limits.rpm:
            return False
        if limits.daily_limit is not None and self._daily_count(usage, now) >= limits.daily_limit:
            return False
        return True

    def next_provider(self) -> str | None:
        for provider in self.priority:
            if self.is_available(provider):
                return provider
        return None

    def delay_until_available(self) -> int:
        """Milliseconds until the soonest configured provider is usable."""
        configured = self.configured_providers()
        if not configured:
            return NO_PROVIDER_DELAY_MS

        now = self._clock()
        return min(self._provider_delay(p, now) for p in configured)

    def _provider_delay(self, provider: str, now: int) -> int:
        usage = self.job.provider_usage.get(provider)
        if usage is None:
            return 0
        limits = self.rate_limits[provider]

        waits = [0]
        if usage.cooldown_until and usage.cooldown_until > now:
            waits.append(usage.cooldown_until - now)
        since_last = now - usage.last_request_at
        if since_last < limits.cooldown_ms:
            waits.append(limits.cooldown_ms - since_last)
        if since_last < WINDOW_MS and usage.requests_this_minute >= limits.rpm:
            waits.append(WINDOW_MS - since_last)
        if limits.daily_limit is not None and self._daily_count(usage, now) >= limits.daily_limit:
            waits.append(ms_until_next_utc_day(now))
        return max(waits)

    def record_usage(self, provider: str, was_rate_limited: bool = False) -> ProviderUsage:
        now = self._clock()
        usage = self.job.provider_usage.setdefault(provider, ProviderUsage())

        if now - usage.last_request_at >= WINDOW_MS:
            usage.requests_this_minute = 0
        today = utc_day(now)
        if usage.usage_day != today:
            usage.daily_requests = 0
            usage.usage_day = today

        usage.requests_this_minute += 1
        usage.last_request_at = now
        usage.daily_requests += 1

        if was_rate_limited:
            usage.cooldown_until = now + RATE_LIMIT_PENALTY_MS
            logger.warning(
                "Provider %s rate limited; cooling down for %ds",
                provider,
                RATE_LIMIT_PENALTY_MS // 1000,
            )
        return usage
