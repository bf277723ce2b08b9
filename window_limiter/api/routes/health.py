from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from window_limiter.adapters.rate_limit.redis_counter import STORE_ERRORS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    The service stays healthy when the counter store is down (limiters fail
    open), so store reachability is reported separately as ``store``:
    ``memory`` when no shared store is configured, else ``ok`` or
    ``unavailable``.
    """

    redis_client = getattr(request.app.state, "redis_client", None)
    if redis_client is None:
        return {"status": "ok", "store": "memory"}

    try:
        await redis_client.ping()
    except STORE_ERRORS as exc:
        logger.warning("health.store_unavailable", extra={"error_msg": str(exc)})
        return {"status": "ok", "store": "unavailable"}
    return {"status": "ok", "store": "ok"}
