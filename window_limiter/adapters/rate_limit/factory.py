"""Factory for the configured window counter."""

from __future__ import annotations

import logging

import redis.asyncio as redis

from window_limiter.adapters.rate_limit.base import AbstractWindowCounter
from window_limiter.adapters.rate_limit.in_memory import InMemoryWindowCounter
from window_limiter.adapters.rate_limit.redis_counter import RedisWindowCounter
from window_limiter.core.config import RedisSettings, settings

logger = logging.getLogger(__name__)


def create_window_counter(
    redis_settings: RedisSettings | None = None,
) -> tuple[AbstractWindowCounter, redis.Redis | None]:
    """Build the counter selected by configuration.

    With REDIS_URL set, counts go to Redis and are shared by every worker.
    Without it, an in-memory counter is used and each process counts alone.

    Returns:
        The counter and the Redis client backing it (None for in-memory), so
        the caller can close the connection on shutdown.
    """
    cfg = redis_settings or settings.redis

    if not cfg.url:
        logger.warning(
            "rate_limit.store_in_memory",
            extra={"reason": "redis_url_not_configured"},
        )
        return InMemoryWindowCounter(), None

    client = redis.from_url(
        cfg.url,
        socket_timeout=cfg.socket_timeout_seconds,
        socket_connect_timeout=cfg.socket_timeout_seconds,
    )
    return RedisWindowCounter(client), client
