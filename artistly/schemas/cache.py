"""Pydantic schemas for the cache administration endpoints."""

from __future__ import annotations

from pydantic import Field

from artistly.schemas.base import CamelModel


class CacheClearRequest(CamelModel):
    """Body of ``POST /cache/clear``; exactly one selector is used.

    Precedence when several are given: ``key``, ``pattern``, ``tag``, ``all``.
    """

    key: str | None = Field(default=None, min_length=1, description="Logical cache key to delete.")
    pattern: str | None = Field(
        default=None,
        min_length=1,
        description="Glob pattern. Accepted but not implemented.",
    )
    tag: str | None = Field(default=None, min_length=1, description="Invalidate every entry under this tag.")
    clear_all: bool = Field(
        default=False,
        alias="all",
        description="Delete every cache entry and tag index.",
    )

    @property
    def has_selector(self) -> bool:
        return bool(self.key or self.pattern or self.tag or self.clear_all)


class CacheClearResponse(CamelModel):
    success: bool
    message: str
    cleared_count: int = Field(default=0, description="Number of cache entries removed.")
    timestamp: str


class CacheStatsBody(CamelModel):
    total_keys: int = Field(..., description="Keys in the Redis keyspace (all namespaces).")
    memory_usage: str = Field(..., description="Human-readable server memory usage, e.g. '1.2M'.")
    hit_rate: float = Field(..., ge=0, le=100, description="Keyspace hit rate in percent.")


class CacheStatsResponse(CamelModel):
    cache: CacheStatsBody
    timestamp: str
    error: str | None = Field(default=None, description="Present only when the stats could not be read.")

