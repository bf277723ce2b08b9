"""Redis-backed fixed-window counter.

Redis has no single "increment, and set the expiry only if this created the
key" command, so every increment runs one MULTI/EXEC transaction:

1. SETEX the scratch key to 0 with the window as TTL.
2. RENAMENX scratch -> counter. Only succeeds when the counter is absent, so
   a new window starts at 0 *with* its expiry already attached.
3. INCR the counter. Always lands, whether or not step 2 created the key.
4. TTL the counter.
5. DEL the scratch key, left behind when step 2 was a no-op.

EXEC is indivisible with respect to other clients, so concurrent first
increments for one partition cannot interleave: one transaction creates the
window and every transaction's INCR is recorded. No lock is taken.

If step 4 reports no expiry (the counter was created by a bare INCR outside
this protocol, or lost its TTL), a follow-up EXPIRE restores it. That repair
is best effort and runs outside the transaction. When the caller is
cancelled mid-batch the batch still completes; its failure is logged and the
repair, if needed, is scheduled on its own.
"""

from __future__ import annotations

import asyncio
import functools
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from window_limiter.adapters.rate_limit.base import AbstractWindowCounter
from window_limiter.core.errors import StoreAppError
from window_limiter.core.keys import primary_key, temp_key
from window_limiter.core.logging import hash_partition_key

logger = logging.getLogger(__name__)

# TTL reply for a key that exists but has no expiry
NO_EXPIRY = -1

STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class RedisWindowCounter(AbstractWindowCounter):
    """Distributed window counter over a shared Redis connection."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        # Expiry repairs for cancelled callers, referenced until they finish
        self._pending: set[asyncio.Future] = set()

    async def _run_increment_batch(self, partition_key: str, window_seconds: int) -> list:
        counter_key = primary_key(partition_key)
        scratch_key = temp_key(partition_key)

        async with self._client.pipeline(transaction=True) as pipe:
            pipe.setex(scratch_key, window_seconds, 0)
            pipe.renamenx(scratch_key, counter_key)
            pipe.incr(counter_key)
            pipe.ttl(counter_key)
            pipe.delete(scratch_key)
            return await pipe.execute()

    async def increment(self, partition_key: str, window_seconds: int) -> int:
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        # Shielded: an abandoned request still gets its event recorded.
        batch = asyncio.ensure_future(
            self._run_increment_batch(partition_key, window_seconds)
        )
        try:
            results = await asyncio.shield(batch)
        except asyncio.CancelledError:
            batch.add_done_callback(
                functools.partial(self._finish_abandoned, partition_key, window_seconds)
            )
            raise
        except STORE_ERRORS as exc:
            raise StoreAppError(
                code="store_unavailable",
                message=f"Counter increment failed: {exc}",
                details={"key_hash": hash_partition_key(partition_key)},
            ) from exc

        count = int(results[2])
        if results[3] == NO_EXPIRY:
            await self._restore_expiry(partition_key, window_seconds)
        return count

    def _finish_abandoned(
        self, partition_key: str, window_seconds: int, batch: asyncio.Future
    ) -> None:
        """Settle a batch whose caller was cancelled while it ran."""
        if batch.cancelled():
            return
        exc = batch.exception()
        if exc is not None:
            logger.error(
                "rate_limit.store_error",
                extra={
                    "operation": "increment",
                    "key_hash": hash_partition_key(partition_key),
                    "error_msg": str(exc),
                    "caller": "cancelled",
                    "policy": "fail_open",
                },
            )
            return
        if batch.result()[3] == NO_EXPIRY:
            repair = asyncio.ensure_future(self._restore_expiry(partition_key, window_seconds))
            self._pending.add(repair)
            repair.add_done_callback(self._pending.discard)

    async def _restore_expiry(self, partition_key: str, window_seconds: int) -> None:
        key_hash = hash_partition_key(partition_key)
        logger.info(
            "rate_limit.expiry_restored",
            extra={"key_hash": key_hash, "window_s": window_seconds},
        )
        try:
            await self._client.expire(primary_key(partition_key), window_seconds)
        except STORE_ERRORS as exc:
            logger.warning(
                "rate_limit.expiry_restore_failed",
                extra={"key_hash": key_hash, "error_msg": str(exc)},
            )

    async def current(self, partition_key: str) -> int:
        try:
            value = await self._client.get(primary_key(partition_key))
        except STORE_ERRORS as exc:
            raise StoreAppError(
                code="store_unavailable",
                message=f"Counter read failed: {exc}",
                details={"key_hash": hash_partition_key(partition_key)},
            ) from exc
        return int(value) if value is not None else 0
