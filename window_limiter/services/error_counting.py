"""Counting of matched failures from a protected operation.

The wrapped operation's completion is classified into a tagged Outcome first;
only then is anything counted or re-raised. A matched failure is tallied in
the window counter *before* it propagates, so by the time the caller sees the
error the count already includes it.
"""

from __future__ import annotations

import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable

from window_limiter.adapters.rate_limit.base import AbstractWindowCounter
from window_limiter.core.errors import StoreAppError
from window_limiter.core.logging import hash_partition_key

logger = logging.getLogger(__name__)

Operation = Callable[[], Any]


class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    MATCHED_FAILURE = "matched_failure"
    UNMATCHED_FAILURE = "unmatched_failure"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    result: Any = None
    error: Exception | None = None


class ErrorCountingWrapper:
    """Runs operations and counts the failures ``error_matcher`` accepts."""

    def __init__(
        self,
        counter: AbstractWindowCounter,
        window_seconds: int,
        error_matcher: Callable[[BaseException], bool],
    ) -> None:
        self._counter = counter
        self._window_seconds = window_seconds
        self._error_matcher = error_matcher

    async def classify(self, operation: Operation) -> Outcome:
        """Run ``operation`` (sync or async) and tag how it finished."""
        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            if self._error_matcher(exc):
                return Outcome(OutcomeKind.MATCHED_FAILURE, error=exc)
            return Outcome(OutcomeKind.UNMATCHED_FAILURE, error=exc)
        return Outcome(OutcomeKind.SUCCESS, result=result)

    async def guard(self, partition_key: str, operation: Operation) -> Any:
        """Run ``operation``, counting a matched failure before re-raising it.

        Args:
            partition_key: Partition charged for a matched failure.
            operation: Zero-argument callable, returning a value or awaitable.

        Returns:
            Whatever ``operation`` returned.

        Raises:
            Exception: The operation's own error, unchanged, on any failure.
        """
        outcome = await self.classify(operation)
        if outcome.kind is OutcomeKind.SUCCESS:
            return outcome.result

        if outcome.kind is OutcomeKind.MATCHED_FAILURE:
            await self._tally(partition_key, outcome.error)
        raise outcome.error

    async def _tally(self, partition_key: str, error: Exception) -> None:
        key_hash = hash_partition_key(partition_key)
        try:
            count = await self._counter.increment(partition_key, self._window_seconds)
        except StoreAppError as exc:
            logger.error(
                "rate_limit.store_error",
                extra={
                    "operation": "increment",
                    "key_hash": key_hash,
                    "error_code": exc.code,
                    "error_msg": exc.message,
                },
            )
            return

        logger.info(
            "rate_limit.error_counted",
            extra={
                "key_hash": key_hash,
                "error_type": type(error).__name__,
                "current_count": count,
            },
        )
