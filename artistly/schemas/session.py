"""Pydantic schemas for session records and the session admin endpoints."""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field

from artistly.schemas.base import CamelModel


class SessionRecord(BaseModel):
    """A signed-in device/browser session as stored in Redis."""

    session_id: str = Field(..., description="Opaque session identifier issued by the auth provider.")
    user_id: str = Field(..., description="Owner of the session.")
    user: Dict[str, Any] = Field(
        default_factory=dict,
        description="User payload captured at sign-in (profile fields, role, tokens).",
    )
    created_at: int = Field(..., description="Creation time, UNIX epoch milliseconds.")
    last_activity: int = Field(..., description="Last time the session was read or updated (epoch ms).")
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form client metadata (IP address, user agent, device).",
    )


class SessionView(CamelModel):
    """Session as exposed to operators; the user payload is omitted."""

    session_id: str
    user_id: str
    created_at: int
    last_activity: int
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: SessionRecord) -> "SessionView":
        return cls(
            session_id=record.session_id,
            user_id=record.user_id,
            created_at=record.created_at,
            last_activity=record.last_activity,
            metadata=record.metadata,
        )


class UserSessionsResponse(CamelModel):
    user_id: str
    sessions: List[SessionView] = Field(default_factory=list)


class RevokeSessionsResponse(CamelModel):
    user_id: str
    revoked: int = Field(..., description="Number of session records deleted.")
    kept_session_id: str | None = None


class SessionStatsResponse(CamelModel):
    enabled: bool
    total_sessions: int
    user_count: int
