from __future__ import annotations

from fastapi import APIRouter, Request

from artistly.core.rate_limit import resolve_client_ip
from artistly.schemas.client_ip import ClientIpResponse
from artistly.utils.timestamps import utc_now_iso

router = APIRouter(tags=["Health"])

_PROXY_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")


@router.get("/client-ip", response_model=ClientIpResponse)
async def client_ip(request: Request) -> ClientIpResponse:
    """Echo the caller's IP as resolved for rate limiting."""

    return ClientIpResponse(
        ip=resolve_client_ip(request),
        headers={name: request.headers.get(name) for name in _PROXY_HEADERS},
        timestamp=utc_now_iso(),
    )
