from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from artistly.core.auth import verify_api_key
from artistly.core.container import ServiceContainer, get_container
from artistly.core.rate_limit import enforce_rate_limit
from artistly.schemas.session import (
    RevokeSessionsResponse,
    SessionStatsResponse,
    SessionView,
    UserSessionsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/sessions",
    tags=["Sessions"],
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)


@router.get("/stats", response_model=SessionStatsResponse)
async def session_stats(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> SessionStatsResponse:
    stats = await container.sessions.get_session_stats()
    return SessionStatsResponse(
        enabled=stats.enabled,
        total_sessions=stats.total_sessions,
        user_count=stats.user_count,
    )


@router.get("/users/{user_id}", response_model=UserSessionsResponse)
async def list_user_sessions(
    user_id: str,
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> UserSessionsResponse:
    """Live sessions of a user, most recently active first.

    The stored user payload is not returned.
    """
    records = await container.sessions.get_user_sessions(user_id)
    return UserSessionsResponse(
        user_id=user_id,
        sessions=[SessionView.from_record(record) for record in records],
    )


@router.delete("/users/{user_id}", response_model=RevokeSessionsResponse)
async def revoke_user_sessions(
    user_id: str,
    container: Annotated[ServiceContainer, Depends(get_container)],
    except_session_id: Annotated[
        str | None,
        Query(description="Session to keep signed in (usually the caller's own)."),
    ] = None,
) -> RevokeSessionsResponse:
    """Sign a user out everywhere, optionally keeping one session."""
    revoked = await container.sessions.delete_all_user_sessions(user_id, except_session_id)
    logger.info(
        "sessions.admin_revoke",
        extra={"user_id": user_id, "revoked": revoked},
    )
    return RevokeSessionsResponse(
        user_id=user_id,
        revoked=revoked,
        kept_session_id=except_session_id,
    )
