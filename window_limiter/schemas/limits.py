"""Pydantic schemas for rate limit status responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitStatus(BaseModel):
    """Current window usage of one partition."""

    key_hash: str = Field(
        ..., description="Short SHA-256 digest of the partition key."
    )
    current_count: int = Field(
        ..., description="Requests recorded in the current window."
    )
    limit: int = Field(
        ..., description="Requests allowed per window."
    )
    remaining: int = Field(
        ..., description="Requests left before the partition is blocked."
    )
    window_seconds: int = Field(
        ..., description="Window length in seconds."
    )
    blocked: bool = Field(
        ..., description="Whether the next request from this partition would be rejected."
    )
