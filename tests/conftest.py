"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any window_limiter import so the
settings object is built for tests (no .env file, no Redis URL).

FakeRedis implements the handful of redis.asyncio commands the counter uses,
with a controllable clock. Queued pipeline commands run without yielding to
the event loop, which gives them the same all-or-nothing visibility as a
real MULTI/EXEC.
"""

import asyncio
import math
import os

import pytest
from redis.exceptions import ResponseError

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.pop("REDIS_URL", None)
os.environ.setdefault("LOG_FORMAT", "plain")


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePipeline:
    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self._queued: list[tuple[str, tuple]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._queued.clear()

    def _queue(self, name: str, *args) -> "FakePipeline":
        self._queued.append((name, args))
        return self

    def setex(self, key, seconds, value):
        return self._queue("setex", key, seconds, value)

    def renamenx(self, src, dst):
        return self._queue("renamenx", src, dst)

    def incr(self, key):
        return self._queue("incr", key)

    def ttl(self, key):
        return self._queue("ttl", key)

    def delete(self, *keys):
        return self._queue("delete", *keys)

    async def execute(self) -> list:
        # Let other coroutines run first so concurrent callers really race.
        await asyncio.sleep(0)
        self._redis.raise_if_failing("execute")
        results = [getattr(self._redis, f"_{name}")(*args) for name, args in self._queued]
        self._redis.transactions.append([name for name, _ in self._queued])
        self._queued.clear()
        return results


class FakeRedis:
    """In-memory async stand-in for redis.asyncio.Redis."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._data: dict[str, list] = {}
        self.transactions: list[list[str]] = []
        self.failures: dict[str, Exception] = {}
        self.expire_calls: list[tuple[str, int]] = []
        self.closed = False

    def raise_if_failing(self, operation: str) -> None:
        if operation in self.failures:
            raise self.failures[operation]

    def keys(self) -> set[str]:
        for key in list(self._data):
            self._purge(key)
        return set(self._data)

    def count(self, key: str) -> int:
        self._purge(key)
        entry = self._data.get(key)
        return entry[0] if entry else 0

    def _purge(self, key: str) -> None:
        entry = self._data.get(key)
        if entry is not None and entry[1] is not None and entry[1] <= self._clock():
            del self._data[key]

    def _setex(self, key, seconds, value):
        self._data[key] = [int(value), self._clock() + seconds]
        return True

    def _renamenx(self, src, dst):
        self._purge(src)
        self._purge(dst)
        if src not in self._data:
            raise ResponseError("no such key")
        if dst in self._data:
            return False
        self._data[dst] = self._data.pop(src)
        return True

    def _incr(self, key):
        self._purge(key)
        entry = self._data.setdefault(key, [0, None])
        entry[0] += 1
        return entry[0]

    def _ttl(self, key):
        self._purge(key)
        if key not in self._data:
            return -2
        expires_at = self._data[key][1]
        if expires_at is None:
            return -1
        return math.ceil(expires_at - self._clock())

    def _delete(self, *keys):
        removed = 0
        for key in keys:
            self._purge(key)
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    def _expire(self, key, seconds):
        self._purge(key)
        if key not in self._data:
            return False
        self._data[key][1] = self._clock() + seconds
        return True

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        assert transaction, "counter must use MULTI/EXEC"
        return FakePipeline(self)

    async def get(self, key):
        self.raise_if_failing("get")
        self._purge(key)
        entry = self._data.get(key)
        return str(entry[0]).encode() if entry else None

    async def incr(self, key):
        return self._incr(key)

    async def ttl(self, key):
        return self._ttl(key)

    async def expire(self, key, seconds):
        self.raise_if_failing("expire")
        self.expire_calls.append((key, seconds))
        return self._expire(key, seconds)

    async def ping(self):
        self.raise_if_failing("ping")
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock: FakeClock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def redis_counter(fake_redis: FakeRedis):
    from window_limiter.adapters.rate_limit.redis_counter import RedisWindowCounter

    return RedisWindowCounter(fake_redis)
