"""Pydantic schemas for rate-limit administration."""

from __future__ import annotations

from pydantic import Field

from artistly.schemas.base import CamelModel


class RateLimitStatsResponse(CamelModel):
    enabled: bool
    total_keys: int = Field(..., description="Rate-limit windows present in the store.")
    active_windows: int = Field(..., description="Windows still holding at least one request.")


class RateLimitResetResponse(CamelModel):
    action: str
    reset: bool = Field(..., description="False when rate limiting is disabled or the store failed.")
