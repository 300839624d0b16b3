"""Provider rate limits and scheduling."""

from ifrit.providers.failures import is_rate_limit_error
from ifrit.providers.rate_limits import PROVIDER_PRIORITY, RATE_LIMITS, RateLimit
from ifrit.providers.scheduler import ProviderScheduler

__all__ = [
    "PROVIDER_PRIORITY",
    "RATE_LIMITS",
    "ProviderScheduler",
    "RateLimit",
    "is_rate_limit_error",
]
