from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from artistly.core.auth import verify_api_key
from artistly.core.container import ServiceContainer, get_container
from artistly.core.errors import ValidationAppError
from artistly.core.rate_limit import enforce_rate_limit
from artistly.schemas.rate_limit import RateLimitResetResponse, RateLimitStatsResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/rate-limit",
    tags=["Rate Limit"],
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)


@router.get("/stats", response_model=RateLimitStatsResponse)
async def rate_limit_stats(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> RateLimitStatsResponse:
    stats = await container.rate_limiter.get_stats()
    return RateLimitStatsResponse(
        enabled=stats.enabled,
        total_keys=stats.total_keys,
        active_windows=stats.active_windows,
    )


@router.delete("/{action}/{identifier}", response_model=RateLimitResetResponse)
async def reset_rate_limit(
    action: str,
    identifier: str,
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> RateLimitResetResponse:
    """Clear the window of one identifier for one action class.

    Raises:
        ValidationAppError: 400 for an unknown action class.
    """
    limiter = container.rate_limiter
    if action not in limiter.rules:
        raise ValidationAppError(
            code="unknown_rate_limit_action",
            message=f"Unknown rate limit action '{action}'",
            details={"context": {"known_actions": sorted(limiter.rules)}},
        )

    reset = await limiter.reset_limit(identifier, action)
    return RateLimitResetResponse(action=action, reset=reset)
