"""Pydantic schemas for health endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from artistly.schemas.base import CamelModel
from artistly.schemas.cache import CacheStatsBody
from artistly.schemas.rate_limit import RateLimitStatsResponse
from artistly.schemas.session import SessionStatsResponse


class StoreHealthResponse(CamelModel):
    """Liveness of the backing store."""

    status: Literal["healthy", "unhealthy"]
    latency: float | None = Field(default=None, description="PING round trip in milliseconds.")
    error: str | None = Field(default=None, description="Failure reason when unhealthy.")
    timestamp: str


class FeatureConfig(CamelModel):
    cache_enabled: bool
    sessions_enabled: bool
    rate_limit_enabled: bool
    analytics_enabled: bool
    redis_url: Literal["configured", "not configured"] = Field(
        ..., description="Whether a Redis URL is set; the URL itself is never exposed."
    )
    max_cache_size: str = Field(..., description="Configured cache memory budget (e.g. 100mb).")


class ComponentStats(CamelModel):
    cache: CacheStatsBody | None = Field(default=None, description="Absent when cache stats failed.")
    sessions: SessionStatsResponse
    rate_limit: RateLimitStatsResponse


class DetailedHealthResponse(CamelModel):
    """Store health plus statistics of every component and the feature flags."""

    status: Literal["healthy", "unhealthy", "disabled"]
    latency: float | None = None
    error: str | None = None
    stats: ComponentStats | None = None
    config: FeatureConfig
    timestamp: str
