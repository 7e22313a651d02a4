"""Tests for app wiring, lifespan and background maintenance."""

from __future__ import annotations

import asyncio
import contextlib

import pytest
from fastapi.testclient import TestClient

from artistly.adapters.store import RedisStore
from artistly.core.app_factory import create_app, run_session_cleanup
from artistly.core.config import LimitSettings
from artistly.core.container import build_container


def test_container_shares_one_store(store: RedisStore, make_settings) -> None:
    container = build_container(make_settings(), store=store)

    assert container.store is store
    assert container.cache.enabled is True
    assert container.sessions.enabled is True
    assert container.rate_limiter.enabled is True
    assert container.analytics.enabled is False


def test_feature_flags_flow_into_components(store: RedisStore, make_settings) -> None:
    container = build_container(make_settings(cache=False, rate_limiting=False), store=store)

    assert container.cache.enabled is False
    assert container.rate_limiter.enabled is False
    assert container.sessions.enabled is True


def test_shutdown_releases_store(store: RedisStore, make_settings) -> None:
    app = create_app(settings=make_settings(), store=store)

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        assert store._client is not None

    assert store._client is None


def test_disabled_features_still_serve_health(store: RedisStore, make_settings, auth_headers: dict) -> None:
    app = create_app(
        settings=make_settings(cache=False, sessions=False, rate_limiting=False),
        store=store,
    )

    with TestClient(app) as client:
        detailed = client.get("/health/store", headers=auth_headers)

    assert detailed.status_code == 200
    assert detailed.json()["status"] == "disabled"


@pytest.mark.asyncio
async def test_cleanup_loop_prunes_stale_session_ids(store: RedisStore, make_settings) -> None:
    settings = make_settings().model_copy(
        update={"limits": LimitSettings(cleanup_interval_seconds=1)}
    )
    container = build_container(settings, store=store)
    await container.sessions.create_session("s1", "u1", {"id": "u1"})
    await store.sadd("session:user:u1", "expired-id")

    task = asyncio.create_task(run_session_cleanup(container))
    await asyncio.sleep(1.3)
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task

    assert await store.smembers("session:user:u1") == {"s1"}
