"""Tests for the cache administration endpoints."""

from __future__ import annotations

from functools import partial
from unittest.mock import AsyncMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from artistly.core.errors import StoreAppError


def _cache(app: FastAPI):
    return app.state.container.cache


def test_clear_requires_api_key(client: TestClient) -> None:
    response = client.post("/cache/clear", json={"key": "k"})

    assert response.status_code == 403
    assert "Missing API key" in response.json()["detail"]


def test_clear_rejects_invalid_api_key(client: TestClient) -> None:
    response = client.post("/cache/clear", json={"key": "k"}, headers={"X-API-Key": "nope"})

    assert response.status_code == 403


def test_clear_single_key(client: TestClient, app: FastAPI, auth_headers: dict) -> None:
    cache = _cache(app)
    client.portal.call(cache.set, "artist:1", {"name": "Ana"})
    client.portal.call(cache.set, "artist:2", {"name": "Bo"})

    response = client.post("/cache/clear", json={"key": "artist:1"}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["clearedCount"] == 1
    assert "artist:1" in body["message"]
    assert client.portal.call(cache.get, "artist:1") is None
    assert client.portal.call(cache.get, "artist:2") == {"name": "Bo"}


def test_clear_by_pattern_is_not_implemented(client: TestClient, app: FastAPI, auth_headers: dict) -> None:
    client.portal.call(_cache(app).set, "artist:1", 1)

    response = client.post("/cache/clear", json={"pattern": "artist:*"}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert "not implemented" in body["message"]
    assert client.portal.call(_cache(app).get, "artist:1") == 1


def test_clear_by_tag(client: TestClient, app: FastAPI, auth_headers: dict) -> None:
    cache = _cache(app)
    client.portal.call(partial(cache.set, "a", 1, tags=["featured"]))
    client.portal.call(partial(cache.set, "b", 2, tags=["featured"]))

    response = client.post("/cache/clear", json={"tag": "featured"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["clearedCount"] == 2


def test_clear_all(client: TestClient, app: FastAPI, auth_headers: dict) -> None:
    cache = _cache(app)
    client.portal.call(partial(cache.set, "a", 1, tags=["t"]))
    client.portal.call(cache.set, "b", 2)

    response = client.post("/cache/clear", json={"all": True}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["clearedCount"] == 3
    assert client.portal.call(cache.get, "b") is None


def test_clear_without_selector_is_400(client: TestClient, auth_headers: dict) -> None:
    for kwargs in ({"json": {}}, {}):
        response = client.post("/cache/clear", headers=auth_headers, **kwargs)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "missing_cache_selector"
        assert error["request_id"]


def test_stats_shape(client: TestClient, app: FastAPI, auth_headers: dict) -> None:
    sections = {
        "memory": {"used_memory_human": "2.00M"},
        "keyspace": {"db0": {"keys": 12, "expires": 4}},
        "stats": {"keyspace_hits": 9, "keyspace_misses": 3},
    }
    app.state.container.store.info = AsyncMock(side_effect=lambda section=None: sections[section])

    response = client.get("/cache/stats", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["cache"] == {"totalKeys": 12, "memoryUsage": "2.00M", "hitRate": 75.0}
    assert body["timestamp"].endswith("Z")
    assert "error" not in body


def test_stats_failure_is_500_with_error(client: TestClient, app: FastAPI, auth_headers: dict) -> None:
    app.state.container.store.info = AsyncMock(
        side_effect=StoreAppError(code="store_command_failed", message="Store command 'info' failed")
    )

    response = client.get("/cache/stats", headers=auth_headers)

    assert response.status_code == 500
    body = response.json()
    assert body["cache"]["totalKeys"] == 0
    assert "info" in body["error"]
    assert "timestamp" in body


def test_admin_responses_carry_rate_limit_headers(client: TestClient, auth_headers: dict) -> None:
    response = client.post("/cache/clear", json={"key": "k"}, headers=auth_headers)

    assert response.headers["X-RateLimit-Limit"] == "60"
    assert response.headers["X-RateLimit-Remaining"] == "59"
    assert "X-RateLimit-Reset" in response.headers
