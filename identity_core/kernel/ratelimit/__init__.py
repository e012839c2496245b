"""
Rate limiting - fixed-window counters per (client, route class).
"""

from identity_core.kernel.ratelimit.limiter import (
    RateLimiter,
    RateLimitConfig,
    RateLimitDecision,
    RouteClass,
    rate_limit_configs,
)

__all__ = [
    "RateLimiter",
    "RateLimitConfig",
    "RateLimitDecision",
    "RouteClass",
    "rate_limit_configs",
]
