"""Rate limiting adapters.

This package provides a small abstraction layer so the service can run with
an in-process limiter today and migrate to Redis or another shared store
without changing the API layer.
"""

from virelle.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitEntry,
    RateLimitStatus,
)
from virelle.adapters.rate_limit.in_memory import InMemoryRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryRateLimiter",
    "RateLimitEntry",
    "RateLimitStatus",
]
