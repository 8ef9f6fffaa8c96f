"""Rate limiting adapters.

The limiter counts requests in a shared key-value store so every worker and
host enforces one common budget per (endpoint, client).
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.counter import CounterRateLimiter

__all__ = ["AbstractRateLimiter", "CounterRateLimiter", "RateLimitResult"]
