"""Allow/deny decisions from a partition's current window count."""

from __future__ import annotations

from dataclasses import dataclass

from window_limiter.adapters.rate_limit.base import AbstractWindowCounter


@dataclass(frozen=True)
class GateDecision:
    """Outcome of a gate check.

    Attributes:
        blocked: Whether the partition is at or over its limit.
        current_count: Events recorded in the current window.
        limit: Events allowed per window.
    """

    blocked: bool
    current_count: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current_count)


class ThresholdGate:
    """Compares a partition's count against its limit.

    The gate only reads. Counting happens elsewhere: after a request is let
    through (request limiter) or after a matched failure (error limiter).
    A partition is blocked once its count reaches the limit, so with limit L
    the first L events pass and event L+1 is the first one refused.
    """

    def __init__(self, counter: AbstractWindowCounter, limit: int) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self._counter = counter
        self._limit = limit

    @property
    def limit(self) -> int:
        return self._limit

    async def should_block(self, partition_key: str) -> GateDecision:
        """Read the partition's count and decide.

        Raises:
            StoreAppError: If the count cannot be read.
        """
        current_count = await self._counter.current(partition_key)
        return GateDecision(
            blocked=current_count >= self._limit,
            current_count=current_count,
            limit=self._limit,
        )
