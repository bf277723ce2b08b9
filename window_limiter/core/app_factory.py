"""Application factory for the FastAPI app.

Builds the counter, both limiters, middleware, handlers and routers. The
counter is injectable so tests (or embedding applications) can supply their
own store instead of the configured one.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request

from window_limiter.adapters.rate_limit.base import AbstractWindowCounter
from window_limiter.adapters.rate_limit.factory import create_window_counter
from window_limiter.api.routes import build_limits_router, health_router
from window_limiter.core.config import settings
from window_limiter.core.exception_handlers import setup_exception_handlers
from window_limiter.core.logging import configure_logging
from window_limiter.core.middleware import request_id_middleware
from window_limiter.core.options import canonical_options
from window_limiter.core.rate_limit import ErrorRateLimiter, RequestRateLimiter


def is_not_found(error: BaseException) -> bool:
    return isinstance(error, HTTPException) and error.status_code == 404


def create_app(counter: AbstractWindowCounter | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        counter: Window counter to use; defaults to the one selected by
            REDIS_URL (Redis when set, in-memory otherwise).

    Returns:
        Configured app. Limiter misconfiguration raises ValidationAppError
        here, before any request is served.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    redis_client = None
    if counter is None:
        counter, redis_client = create_window_counter(settings.redis)

    cfg = settings.app
    request_limiter = RequestRateLimiter(
        canonical_options(
            counter=counter,
            key=cfg.rate_limit_key,
            rate=cfg.rate_limit_rate,
            error_message=cfg.rate_limit_error_message,
            should_rate_limit=cfg.rate_limit_blocking,
        )
    )

    # Error windows use their own partitions so they never share a counter
    # with the request limiter.
    request_key = request_limiter.options.key

    def error_key(request: Request) -> str:
        return f"errors:{request_key(request)}"

    error_limiter = ErrorRateLimiter(
        canonical_options(
            counter=counter,
            key=error_key,
            rate=cfg.rate_limit_error_rate,
            error_matcher=is_not_found,
            error_message=cfg.rate_limit_error_message,
            should_rate_limit=cfg.rate_limit_blocking,
        )
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title="Window Limiter",
        description=(
            "Fixed-window rate limiting backed by a shared Redis counter. "
            "Counts either every request or only matched errors per caller, "
            "and answers 429 once a caller exceeds its window."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.counter = counter
    app.state.redis_client = redis_client
    app.state.request_limiter = request_limiter
    app.state.error_limiter = error_limiter

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(
        build_limits_router(
            request_limiter,
            error_limiter,
            enforce_request_limit=cfg.rate_limit_enabled,
        ),
        prefix="/v1",
    )

    return app
