from fastapi import APIRouter, Depends, HTTPException, Request

from window_limiter.core.logging import hash_partition_key
from window_limiter.core.rate_limit import ErrorRateLimiter, RequestRateLimiter
from window_limiter.schemas.limits import RateLimitStatus


def build_limits_router(
    request_limiter: RequestRateLimiter,
    error_limiter: ErrorRateLimiter,
    *,
    enforce_request_limit: bool = True,
) -> APIRouter:
    """Build the rate-limited API routes.

    Limiters are created per app by the factory, so routes are declared here
    rather than at import time.

    Args:
        request_limiter: Counts every request; also answers status lookups.
        error_limiter: Guards the status lookup against probing for unknown
            partitions (each 404 counts against the caller).
        enforce_request_limit: Attach ``request_limiter`` to every route.

    Returns:
        Router to mount under the API prefix.
    """
    dependencies = [Depends(request_limiter)] if enforce_request_limit else []
    router = APIRouter(tags=["Rate limits"], dependencies=dependencies)

    @router.get("/ping")
    async def ping() -> dict:
        """Cheap endpoint for exercising the request limiter."""
        return {"status": "ok"}

    @router.get("/limits/{partition_key}", response_model=RateLimitStatus)
    @error_limiter.protect
    async def limit_status(partition_key: str, request: Request) -> RateLimitStatus:
        """Report a partition's usage of the request limit.

        Raises:
            HTTPException: 404 when the partition has no active window.
        """
        decision = await request_limiter.gate.should_block(partition_key)
        if decision.current_count == 0:
            raise HTTPException(
                status_code=404,
                detail="No active rate limit window for this partition.",
            )

        return RateLimitStatus(
            key_hash=hash_partition_key(partition_key),
            current_count=decision.current_count,
            limit=decision.limit,
            remaining=decision.remaining,
            window_seconds=request_limiter.options.rate.window_seconds,
            blocked=decision.blocked,
        )

    return router
