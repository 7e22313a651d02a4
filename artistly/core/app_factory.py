"""Application factory for the FastAPI app.

Centralizes app construction (container, middleware, handlers, routers,
background maintenance) so tests can build isolated instances with an
injected store.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from artistly.adapters.store.base import AbstractKeyValueStore
from artistly.api.routes import (
    cache_router,
    client_ip_router,
    health_router,
    rate_limit_router,
    sessions_router,
)
from artistly.core.config import Settings
from artistly.core.config import settings as default_settings
from artistly.core.container import ServiceContainer, build_container
from artistly.core.exception_handlers import setup_exception_handlers
from artistly.core.logging import configure_logging
from artistly.core.middleware import request_id_middleware
from artistly.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


async def run_session_cleanup(container: ServiceContainer) -> None:
    """Prune stale user-session ids every ``cleanup_interval_seconds``."""

    limits = container.settings.limits
    while True:
        await asyncio.sleep(limits.cleanup_interval_seconds)
        removed = await container.sessions.cleanup_stale_sessions(limits.cleanup_batch_size)
        logger.debug("maintenance.session_cleanup", extra={"removed": removed})


def create_app(
    settings: Settings | None = None,
    store: AbstractKeyValueStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Settings to use instead of the global instance.
        store: Pre-built store, e.g. backed by fakeredis in tests.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    container = build_container(cfg, store=store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        cleanup_task: asyncio.Task[None] | None = None
        if cfg.features.sessions:
            cleanup_task = asyncio.create_task(run_session_cleanup(container))
        logger.info("app.started", extra={"app_env": cfg.app_env})
        try:
            yield
        finally:
            if cleanup_task is not None:
                cleanup_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await cleanup_task
            await container.close()
            logger.info("app.stopped")

    app = FastAPI(
        title="Artistly Cache Service",
        description=(
            "Redis-backed acceleration layer for the Artistly marketplace: "
            "tagged cache, sliding-window rate limiting and session registry, "
            "with operator endpoints for stats, invalidation and health. "
            "Administrative routes require X-API-Key."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )
    app.state.container = container

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)
    app.include_router(client_ip_router)
    app.include_router(cache_router)
    app.include_router(rate_limit_router)
    app.include_router(sessions_router)

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
