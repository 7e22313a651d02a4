"""Rate limiting dependency for FastAPI routes.

Wires the sliding-window limiter from the service container into the HTTP
layer. Administrative routes are throttled with the ``api`` rule, keyed by
the resolved client IP.

The limiter itself is fail-open, so a store outage never turns into a 429.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import HTTPException, Request, Response, status

from artistly.adapters.rate_limit import RateLimitResult

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def resolve_client_ip(request: Request) -> str:
    """Best guess at the caller's IP address behind proxies.

    Priority: ``CF-Connecting-IP``, ``X-Real-IP``, the first entry of
    ``X-Forwarded-For``, then the socket peer.
    """

    headers = request.headers
    forwarded = headers.get("x-forwarded-for")
    candidates = (
        headers.get("cf-connecting-ip"),
        headers.get("x-real-ip"),
        forwarded.split(",")[0] if forwarded else None,
        request.client.host if request.client else None,
    )
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return UNKNOWN_CLIENT


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client IPs."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds or 0)
    return headers


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """FastAPI dependency consuming one unit of the caller's ``api`` budget.

    Args:
        request: FastAPI request.
        response: Response whose headers receive the current budget.

    Raises:
        HTTPException: 429 Too Many Requests when the budget is exhausted.
    """

    container = request.app.state.container
    include_headers = container.settings.rate_limit.include_headers
    client_ip = resolve_client_ip(request)

    result = await container.rate_limiter.check_api_limit(client_ip)
    if result.allowed:
        if include_headers:
            response.headers.update(rate_limit_headers(result))
        return

    logger.warning(
        "rate_limit.rejected",
        extra={
            "route": request.url.path,
            "key_hash": _hash_limiter_key(client_ip),
            "limit": result.limit,
            "retry_after_s": result.retry_after_seconds,
        },
    )
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=rate_limit_headers(result) if include_headers else None,
    )
