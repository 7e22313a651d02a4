from __future__ import annotations

from artistly.api.routes.cache import router as cache_router
from artistly.api.routes.client_ip import router as client_ip_router
from artistly.api.routes.health import router as health_router
from artistly.api.routes.rate_limit import router as rate_limit_router
from artistly.api.routes.sessions import router as sessions_router

__all__ = [
    "cache_router",
    "client_ip_router",
    "health_router",
    "rate_limit_router",
    "sessions_router",
]
