from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from artistly.core.auth import verify_api_key
from artistly.core.container import ServiceContainer, get_container
from artistly.core.errors import StoreAppError
from artistly.core.rate_limit import enforce_rate_limit
from artistly.schemas.cache import CacheStatsBody
from artistly.schemas.health import (
    ComponentStats,
    DetailedHealthResponse,
    FeatureConfig,
    StoreHealthResponse,
)
from artistly.schemas.rate_limit import RateLimitStatsResponse
from artistly.schemas.session import SessionStatsResponse
from artistly.utils.timestamps import utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=StoreHealthResponse,
    response_model_exclude_none=True,
    responses={500: {"model": StoreHealthResponse, "description": "Store unreachable"}},
)
async def health_check(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> StoreHealthResponse | JSONResponse:
    """Ping the backing store.

    Used by load balancers and monitoring. Answers 500 with the failure
    reason when the store does not respond.
    """

    health = await container.store.health_check()
    payload = StoreHealthResponse(
        status=health.status,
        latency=health.latency_ms,
        error=health.error,
        timestamp=utc_now_iso(),
    )
    if not health.healthy:
        return JSONResponse(status_code=500, content=payload.model_dump(by_alias=True, exclude_none=True))
    return payload


@router.get(
    "/health/store",
    response_model=DetailedHealthResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
    responses={503: {"model": DetailedHealthResponse, "description": "Store unreachable"}},
)
async def store_health(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> DetailedHealthResponse | JSONResponse:
    """Store health plus cache, session and rate-limit statistics."""

    cfg = container.settings
    config = FeatureConfig(
        cache_enabled=cfg.features.cache,
        sessions_enabled=cfg.features.sessions,
        rate_limit_enabled=cfg.features.rate_limiting,
        analytics_enabled=cfg.features.analytics,
        redis_url="configured" if cfg.redis.url else "not configured",
        max_cache_size=cfg.limits.max_cache_size,
    )
    if not (cfg.features.cache or cfg.features.sessions or cfg.features.rate_limiting):
        return DetailedHealthResponse(status="disabled", config=config, timestamp=utc_now_iso())

    health = await container.store.health_check()
    if not health.healthy:
        payload = DetailedHealthResponse(
            status="unhealthy",
            error=health.error,
            config=config,
            timestamp=utc_now_iso(),
        )
        return JSONResponse(status_code=503, content=payload.model_dump(by_alias=True, exclude_none=True))

    try:
        cache_stats = await container.cache.get_stats()
        cache_body: CacheStatsBody | None = CacheStatsBody(
            total_keys=cache_stats.total_keys,
            memory_usage=cache_stats.memory_usage,
            hit_rate=cache_stats.hit_rate,
        )
    except StoreAppError as exc:
        logger.warning("health.cache_stats_failed", extra={"error_msg": exc.message})
        cache_body = None

    session_stats = await container.sessions.get_session_stats()
    rate_stats = await container.rate_limiter.get_stats()

    return DetailedHealthResponse(
        status="healthy",
        latency=health.latency_ms,
        stats=ComponentStats(
            cache=cache_body,
            sessions=SessionStatsResponse(
                enabled=session_stats.enabled,
                total_sessions=session_stats.total_sessions,
                user_count=session_stats.user_count,
            ),
            rate_limit=RateLimitStatsResponse(
                enabled=rate_stats.enabled,
                total_keys=rate_stats.total_keys,
                active_windows=rate_stats.active_windows,
            ),
        ),
        config=config,
        timestamp=utc_now_iso(),
    )
