"""In-memory fixed-window counter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Windows are anchored at the first increment, like the Redis counter.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from window_limiter.adapters.rate_limit.base import AbstractWindowCounter


@dataclass
class _WindowState:
    expires_at: float
    count: int


class InMemoryWindowCounter(AbstractWindowCounter):
    """Counter kept in a dict, for development without a shared store.

    Important:
        If the API runs with multiple workers (e.g., multiple Uvicorn/Gunicorn
        workers), each worker counts independently.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the counter.

        Args:
            clock: Time source returning seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}

    def _live_state(self, partition_key: str, now: float) -> _WindowState | None:
        state = self._state_by_key.get(partition_key)
        if state is not None and state.expires_at <= now:
            del self._state_by_key[partition_key]
            return None
        return state

    async def increment(self, partition_key: str, window_seconds: int) -> int:
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        now = self._clock()
        with self._lock:
            state = self._live_state(partition_key, now)
            if state is None:
                state = _WindowState(expires_at=now + window_seconds, count=0)
                self._state_by_key[partition_key] = state
            state.count += 1
            return state.count

    async def current(self, partition_key: str) -> int:
        with self._lock:
            state = self._live_state(partition_key, self._clock())
            return state.count if state else 0
