"""Rate limiting adapters.

``SlidingWindowRateLimiter`` keeps one sorted set per identifier in the
shared store, so every server process enforces the same budget.
"""

from artistly.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RateLimitRule,
    RateLimitStats,
)
from artistly.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter, build_rules

__all__ = [
    "AbstractRateLimiter",
    "RateLimitResult",
    "RateLimitRule",
    "RateLimitStats",
    "SlidingWindowRateLimiter",
    "build_rules",
]
