"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any ``artistly`` import so the global
settings never pick up a developer's ``.env`` file. Every test gets its own
in-process fake Redis server.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import Iterator

import fakeredis
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from artistly.adapters.store import RedisStore
from artistly.core.app_factory import create_app
from artistly.core.config import FeatureSettings, RedisSettings, Settings

API_KEY = "test-api-key-123"


@pytest.fixture
def fake_redis() -> fakeredis.FakeAsyncRedis:
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def store(fake_redis: fakeredis.FakeAsyncRedis) -> RedisStore:
    return RedisStore(RedisSettings(), client=fake_redis)


def _settings_with(**features: bool) -> Settings:
    base = Settings()
    if features:
        base = base.model_copy(
            update={"features": FeatureSettings(**{**base.features.model_dump(), **features})}
        )
    return base


@pytest.fixture
def app(store: RedisStore) -> FastAPI:
    return create_app(settings=_settings_with(), store=store)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    # One portal (event loop) for the whole test so the redis client stays bound to it
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_settings():
    """Factory for settings from the test environment with feature flags overridden."""
    return _settings_with


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-API-Key": API_KEY}
