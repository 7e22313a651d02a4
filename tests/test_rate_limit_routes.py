"""Tests for rate-limit administration and the admin route throttle."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from artistly.adapters.store import RedisStore
from artistly.core.app_factory import create_app
from artistly.core.config import RateLimitSettings
from artistly.core.errors import StoreAppError


@pytest.fixture
def tight_client(store: RedisStore, make_settings) -> Iterator[TestClient]:
    settings = make_settings().model_copy(
        update={"rate_limit": RateLimitSettings(api_max_requests=2)}
    )
    with TestClient(create_app(settings=settings, store=store)) as test_client:
        yield test_client


def test_admin_routes_are_throttled_per_client_ip(tight_client: TestClient, auth_headers: dict) -> None:
    assert tight_client.get("/rate-limit/stats", headers=auth_headers).status_code == 200
    assert tight_client.get("/rate-limit/stats", headers=auth_headers).status_code == 200

    response = tight_client.get("/rate-limit/stats", headers=auth_headers)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "0"

    other_ip = {**auth_headers, "CF-Connecting-IP": "203.0.113.9"}
    assert tight_client.get("/rate-limit/stats", headers=other_ip).status_code == 200


def test_public_routes_are_not_throttled(tight_client: TestClient) -> None:
    for _ in range(5):
        assert tight_client.get("/health").status_code == 200


def test_throttle_fails_open_when_store_is_down(
    client: TestClient, app: FastAPI, auth_headers: dict
) -> None:
    app.state.container.store.zremrangebyscore = AsyncMock(
        side_effect=StoreAppError(code="store_command_failed", message="down")
    )

    for _ in range(3):
        assert client.get("/sessions/stats", headers=auth_headers).status_code == 200


def test_stats_counts_windows(client: TestClient, auth_headers: dict) -> None:
    response = client.get("/rate-limit/stats", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["enabled"] is True
    # The request itself opened the caller's api window
    assert body["totalKeys"] == 1
    assert body["activeWindows"] == 1


def test_reset_window(client: TestClient, app: FastAPI, auth_headers: dict) -> None:
    limiter = app.state.container.rate_limiter
    for _ in range(5):
        client.portal.call(limiter.check_login_limit, "198.51.100.7")
    assert client.portal.call(limiter.check_login_limit, "198.51.100.7").allowed is False

    response = client.delete("/rate-limit/login/198.51.100.7", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"action": "login", "reset": True}
    assert client.portal.call(limiter.check_login_limit, "198.51.100.7").allowed is True


def test_reset_unknown_action_is_400(client: TestClient, auth_headers: dict) -> None:
    response = client.delete("/rate-limit/teleport/1.2.3.4", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "unknown_rate_limit_action"
