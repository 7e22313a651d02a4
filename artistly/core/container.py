"""Service container wiring the store and the components built on it.

One container per application instance owns one store client. Routes reach
it through ``request.app.state.container``; tests build their own with an
injected store.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from fastapi import Request

from artistly.adapters.rate_limit import SlidingWindowRateLimiter
from artistly.adapters.store import AbstractKeyValueStore, RedisStore
from artistly.core.config import Settings
from artistly.core.config import settings as default_settings
from artistly.services.analytics import AnalyticsRecorder
from artistly.services.cache_manager import CacheManager
from artistly.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Long-lived components sharing one store connection."""

    settings: Settings
    store: AbstractKeyValueStore
    analytics: AnalyticsRecorder
    cache: CacheManager
    rate_limiter: SlidingWindowRateLimiter
    sessions: SessionRegistry
    started_at: float = field(default_factory=time.time)

    async def close(self) -> None:
        """Wait for background session refreshes, then release the store."""

        await self.sessions.drain()
        await self.store.disconnect()


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container of the running app."""

    return request.app.state.container


def build_container(
    settings: Settings | None = None,
    *,
    store: AbstractKeyValueStore | None = None,
    clock: Callable[[], float] = time.time,
) -> ServiceContainer:
    """Create the store and every component from settings.

    Args:
        settings: Resolved settings; defaults to the global instance.
        store: Pre-built store (e.g. backed by fakeredis in tests).
        clock: Time source shared by the rate limiter, sessions and analytics.

    Returns:
        ServiceContainer: Fully wired components. No connection is opened
            until the first command.
    """

    cfg = settings or default_settings
    store = store or RedisStore(cfg.redis)

    analytics = AnalyticsRecorder(
        store,
        ttl=cfg.ttl,
        prefixes=cfg.prefixes,
        features=cfg.features,
        clock=clock,
    )
    cache = CacheManager(
        store,
        ttl=cfg.ttl,
        prefixes=cfg.prefixes,
        features=cfg.features,
        limits=cfg.limits,
        analytics=analytics,
    )
    rate_limiter = SlidingWindowRateLimiter(
        store,
        config=cfg.rate_limit,
        prefixes=cfg.prefixes,
        features=cfg.features,
        analytics=analytics,
        clock=clock,
    )
    sessions = SessionRegistry(
        store,
        ttl=cfg.ttl,
        prefixes=cfg.prefixes,
        features=cfg.features,
        limits=cfg.limits,
        clock=clock,
    )

    logger.debug(
        "container.built",
        extra={
            "cache_enabled": cfg.features.cache,
            "sessions_enabled": cfg.features.sessions,
            "rate_limiting_enabled": cfg.features.rate_limiting,
            "analytics_enabled": cfg.features.analytics,
        },
    )
    return ServiceContainer(
        settings=cfg,
        store=store,
        analytics=analytics,
        cache=cache,
        rate_limiter=rate_limiter,
        sessions=sessions,
    )
