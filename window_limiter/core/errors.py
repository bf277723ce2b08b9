"""Application-level exception types.

This module defines the error taxonomy shared by the counter adapters, the
gate services and the HTTP layer:

- ValidationAppError: invalid configuration, raised at setup time.
- StoreAppError: the backing key-value store failed at the transport level.
- RateLimitAppError: a request was rejected by the gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for logs and clients.

    ``option``/``value`` name a rejected configuration input; the rest
    describe the partition a store or gate error concerns.
    """

    option: str
    value: str
    key_hash: str
    current_count: int
    limit: int
    window_s: int


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class StoreAppError(AppError):
    """Raised when the counter store is unreachable or rejects a command."""


class RateLimitAppError(AppError):
    """Raised when a partition is over its limit and blocking is enabled."""
