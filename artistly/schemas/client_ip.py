"""Pydantic schema for the client IP echo endpoint."""

from __future__ import annotations

from typing import Dict

from pydantic import Field

from artistly.schemas.base import CamelModel


class ClientIpResponse(CamelModel):
    ip: str = Field(..., description="Resolved client IP, or 'unknown'.")
    headers: Dict[str, str | None] = Field(
        default_factory=dict,
        description="Raw proxy headers the IP was resolved from.",
    )
    timestamp: str
