"""Rate limiting for FastAPI routes.

Two limiters share one gate check:

- RequestRateLimiter counts every request it lets through. Use it as a
  dependency: ``Depends(request_limiter)``.
- ErrorRateLimiter counts only failures its error matcher accepts. Use it as
  an endpoint decorator: ``@error_limiter.protect``.

Both read the partition's count before doing anything else. At or over the
limit the decision is logged, and in blocking mode a RateLimitAppError is
raised (rendered as 429 with the configured message).

Store failures fail open: they are logged as ``rate_limit.store_error`` and
the request proceeds as if the partition were under its limit.
"""

import functools
import inspect
import logging
from typing import Any, Callable

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from window_limiter.core.errors import RateLimitAppError, StoreAppError, ValidationAppError
from window_limiter.core.logging import hash_partition_key
from window_limiter.core.options import RateLimitOptions
from window_limiter.services.error_counting import ErrorCountingWrapper
from window_limiter.services.threshold_gate import ThresholdGate

logger = logging.getLogger(__name__)


def _log_store_error(operation: str, key_hash: str, exc: StoreAppError) -> None:
    logger.error(
        "rate_limit.store_error",
        extra={
            "operation": operation,
            "key_hash": key_hash,
            "error_code": exc.code,
            "error_msg": exc.message,
            "policy": "fail_open",
        },
    )


class _GatedLimiter:
    """Shared gate check for both limiter flavours."""

    def __init__(self, options: RateLimitOptions) -> None:
        self.options = options
        self.gate = ThresholdGate(options.counter, options.rate.limit)

    async def admit(self, request: Request) -> str:
        """Check the caller's partition and return its key if admitted.

        Raises:
            RateLimitAppError: Partition over its limit and blocking enabled.
        """
        partition_key = self.options.key(request)
        key_hash = hash_partition_key(partition_key)

        try:
            decision = await self.gate.should_block(partition_key)
        except StoreAppError as exc:
            _log_store_error("read", key_hash, exc)
            return partition_key

        if not decision.blocked:
            return partition_key

        mode = "blocked" if self.options.should_rate_limit else "log_only"
        self.options.log(
            f"Rate limit triggered: key_hash={key_hash} path={request.url.path} "
            f"count={decision.current_count} limit={decision.limit} "
            f"window_s={self.options.rate.window_seconds} mode={mode}"
        )

        if self.options.should_rate_limit:
            raise RateLimitAppError(
                code="rate_limited",
                message=self.options.error_message,
                details={
                    "key_hash": key_hash,
                    "current_count": decision.current_count,
                    "limit": decision.limit,
                    "window_s": self.options.rate.window_seconds,
                },
            )
        return partition_key


class RequestRateLimiter(_GatedLimiter):
    """FastAPI dependency limiting how many requests a partition makes.

    Usage:
        limiter = RequestRateLimiter(canonical_options(counter=c, key="ip", rate="10/second"))

        @router.get("/items", dependencies=[Depends(limiter)])
        async def list_items(): ...
    """

    async def __call__(self, request: Request) -> None:
        partition_key = await self.admit(request)
        try:
            await self.options.counter.increment(
                partition_key, self.options.rate.window_seconds
            )
        except StoreAppError as exc:
            _log_store_error("increment", hash_partition_key(partition_key), exc)


def _request_parameter(endpoint: Callable[..., Any]) -> str:
    for name, param in inspect.signature(endpoint).parameters.items():
        if param.annotation is Request or param.annotation == "Request":
            return name
    raise ValidationAppError(
        code="invalid_rate_limit_option",
        message=(
            f"Endpoint {endpoint.__qualname__} needs a 'Request' parameter "
            "to be error rate limited"
        ),
        details={"option": "endpoint", "value": endpoint.__qualname__},
    )


class ErrorRateLimiter(_GatedLimiter):
    """Endpoint decorator limiting how many matched errors a partition causes.

    The decorated endpoint must declare a ``request: Request`` parameter.
    When the partition is blocked the endpoint is not called at all.

    Usage:
        limiter = ErrorRateLimiter(canonical_options(
            counter=c, key="ip", rate="10/hour",
            error_matcher=lambda exc: isinstance(exc, LookupError),
        ))

        @router.get("/lookup/{name}")
        @limiter.protect
        async def lookup(name: str, request: Request): ...
    """

    def __init__(self, options: RateLimitOptions) -> None:
        super().__init__(options)
        self.wrapper = ErrorCountingWrapper(
            options.counter,
            options.rate.window_seconds,
            options.error_matcher,
        )

    async def call(self, request: Request, operation: Callable[[], Any]) -> Any:
        """Gate ``request``, then run ``operation`` counting matched failures."""
        partition_key = await self.admit(request)
        return await self.wrapper.guard(partition_key, operation)

    def protect(self, endpoint: Callable[..., Any]) -> Callable[..., Any]:
        request_param = _request_parameter(endpoint)
        signature = inspect.signature(endpoint)
        is_async = inspect.iscoroutinefunction(endpoint)

        @functools.wraps(endpoint)
        async def guarded(*args: Any, **kwargs: Any) -> Any:
            request = signature.bind(*args, **kwargs).arguments[request_param]
            if is_async:
                operation = functools.partial(endpoint, *args, **kwargs)
            else:
                operation = functools.partial(run_in_threadpool, endpoint, *args, **kwargs)
            return await self.call(request, operation)

        return guarded
