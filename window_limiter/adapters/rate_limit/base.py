"""Window counter interface.

The gate services depend on this abstraction, not on a concrete store, so a
per-process counter can stand in for Redis during local development.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractWindowCounter(ABC):
    """Fixed-window event counter keyed by partition."""

    @abstractmethod
    async def increment(self, partition_key: str, window_seconds: int) -> int:
        """Record one event for a partition.

        The first increment after a window boundary creates the counter and
        anchors its expiry ``window_seconds`` later.

        Args:
            partition_key: Identifier of the rate-limited entity.
            window_seconds: Window length used when the counter is created.

        Returns:
            The counter value after this increment.

        Raises:
            StoreAppError: If the backing store fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def current(self, partition_key: str) -> int:
        """Return the partition's count in the current window (0 if none).

        Raises:
            StoreAppError: If the backing store fails.
        """
        raise NotImplementedError
