"""Window counter adapters.

Redis is the shared store used in production; the in-memory counter keeps
the same interface for single-process development and tests.
"""

from window_limiter.adapters.rate_limit.base import AbstractWindowCounter
from window_limiter.adapters.rate_limit.in_memory import InMemoryWindowCounter
from window_limiter.adapters.rate_limit.redis_counter import RedisWindowCounter

__all__ = ["AbstractWindowCounter", "InMemoryWindowCounter", "RedisWindowCounter"]
