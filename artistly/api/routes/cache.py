from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from artistly.core.auth import verify_api_key
from artistly.core.container import ServiceContainer, get_container
from artistly.core.errors import StoreAppError, ValidationAppError
from artistly.core.rate_limit import enforce_rate_limit
from artistly.schemas.cache import (
    CacheClearRequest,
    CacheClearResponse,
    CacheStatsBody,
    CacheStatsResponse,
)
from artistly.utils.timestamps import utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/cache",
    tags=["Cache"],
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)


@router.post("/clear", response_model=CacheClearResponse)
async def clear_cache(
    container: Annotated[ServiceContainer, Depends(get_container)],
    body: Annotated[CacheClearRequest | None, Body()] = None,
) -> CacheClearResponse:
    """Delete one key, one tag group, or the whole cache.

    Pattern-based clearing is accepted but not implemented: the response
    reports ``success: false`` and nothing is deleted.

    Raises:
        ValidationAppError: 400 when no selector is supplied.
    """
    if body is None or not body.has_selector:
        raise ValidationAppError(
            code="missing_cache_selector",
            message="Provide one of key, pattern, tag or all",
        )

    cache = container.cache
    success = True
    if body.key:
        cleared = await cache.delete(body.key)
        selector = "key"
        message = f"Cache key '{body.key}' cleared" if cleared else f"Cache key '{body.key}' was not cached"
    elif body.pattern:
        cleared = 0
        selector = "pattern"
        success = False
        message = "Pattern-based cache clearing is not implemented"
    elif body.tag:
        cleared = await cache.delete_by_tag(body.tag)
        selector = "tag"
        message = f"Cleared {cleared} entries tagged '{body.tag}'"
    else:
        cleared = await cache.clear()
        selector = "all"
        message = f"Cleared {cleared} cache keys"

    logger.info(
        "cache.admin_clear",
        extra={"selector": selector, "cleared": cleared, "success": success},
    )
    return CacheClearResponse(
        success=success,
        message=message,
        cleared_count=cleared,
        timestamp=utc_now_iso(),
    )


@router.get(
    "/stats",
    response_model=CacheStatsResponse,
    response_model_exclude_none=True,
    responses={500: {"model": CacheStatsResponse, "description": "Store unavailable"}},
)
async def cache_stats(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> CacheStatsResponse | JSONResponse:
    """Key count, memory usage and hit rate as reported by Redis."""
    try:
        stats = await container.cache.get_stats()
    except StoreAppError as exc:
        logger.error("cache.stats_failed", extra={"error_msg": exc.message})
        degraded = CacheStatsResponse(
            cache=CacheStatsBody(total_keys=0, memory_usage="0B", hit_rate=0.0),
            timestamp=utc_now_iso(),
            error=exc.message,
        )
        return JSONResponse(status_code=500, content=degraded.model_dump(by_alias=True))

    return CacheStatsResponse(
        cache=CacheStatsBody(
            total_keys=stats.total_keys,
            memory_usage=stats.memory_usage,
            hit_rate=stats.hit_rate,
        ),
        timestamp=utc_now_iso(),
    )
