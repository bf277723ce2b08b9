"""Store key derivation and built-in partition key extractors.

Each partition owns two keys:

- ``ratelimit:{<partition>}``: the counter, expiring after one window.
- ``ratelimittemp:{<partition>}``: scratch key used only while a window is
  being created.

The fixed prefix and the closing brace make the mapping injective, so no
partition value can address another partition's counter. The braces are also
a Redis Cluster hash tag, which keeps both keys on the same slot for RENAMENX.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Request

PRIMARY_PREFIX = "ratelimit:"
TEMP_PREFIX = "ratelimittemp:"

KeyExtractor = Callable[[Request], str]


def primary_key(partition_key: str) -> str:
    return f"{PRIMARY_PREFIX}{{{partition_key}}}"


def temp_key(partition_key: str) -> str:
    return f"{TEMP_PREFIX}{{{partition_key}}}"


def client_ip(request: Request) -> str:
    """Best-effort caller address, honouring proxy headers.

    Args:
        request: Incoming request.

    Returns:
        First X-Forwarded-For hop, X-Real-IP, the socket peer, or "unknown".
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def api_key_or_ip(request: Request) -> str:
    """Partition by API key when one is sent, otherwise by caller address."""
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return f"api_key:{api_key}"
    return f"ip:{client_ip(request)}"


BUILTIN_EXTRACTORS: dict[str, KeyExtractor] = {
    "ip": client_ip,
    "api_key": api_key_or_ip,
}
