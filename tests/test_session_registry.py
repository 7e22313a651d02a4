"""Tests for the per-user session registry."""

from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import pytest

from artistly.adapters.store import RedisStore
from artistly.core.config import FeatureSettings, LimitSettings
from artistly.core.errors import StoreAppError, ValidationAppError
from artistly.services.session_registry import SessionRegistry

USER = {"id": "u1", "email": "ana@example.com", "role": "artist"}


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=1_000.0)


@pytest.fixture
def registry(store: RedisStore, clock: Mock) -> SessionRegistry:
    return SessionRegistry(store, clock=clock)


@pytest.mark.asyncio
async def test_create_stores_record_and_user_set(
    registry: SessionRegistry, store: RedisStore
) -> None:
    record = await registry.create_session("s1", "u1", USER, {"device": "web"})

    assert record is not None
    assert record.created_at == record.last_activity == 1_000_000
    assert await store.smembers("session:user:u1") == {"s1"}
    assert (await store.get("session:s1"))["metadata"] == {"device": "web"}
    assert 0 < await store.ttl("session:s1") <= 86_400
    assert 0 < await store.ttl("session:user:u1") <= 86_400


@pytest.mark.asyncio
async def test_get_refreshes_activity_in_background(
    registry: SessionRegistry, clock: Mock
) -> None:
    await registry.create_session("s1", "u1", USER)
    clock.return_value = 1_060.0

    record = await registry.get_session("s1")
    await registry.drain()

    assert record is not None
    assert record.last_activity == 1_000_000
    refreshed = await registry.get_user_sessions("u1")
    assert refreshed[0].last_activity == 1_060_000


@pytest.mark.asyncio
async def test_background_refresh_never_resurrects_deleted_session(
    registry: SessionRegistry, store: RedisStore
) -> None:
    await registry.create_session("s1", "u1", USER)

    assert await registry.get_session("s1") is not None
    await registry.delete_session("s1")
    await registry.drain()

    assert await store.exists("session:s1") is False


@pytest.mark.asyncio
async def test_get_missing_session_returns_none(registry: SessionRegistry) -> None:
    assert await registry.get_session("nope") is None


@pytest.mark.asyncio
async def test_update_merges_fields(registry: SessionRegistry, clock: Mock) -> None:
    await registry.create_session("s1", "u1", USER, {"device": "web"})
    clock.return_value = 1_030.0

    updated = await registry.update_session(
        "s1", {"metadata": {"device": "ios"}, "user_id": "someone-else"}
    )

    assert updated is True
    [record] = await registry.get_user_sessions("u1")
    assert record.metadata == {"device": "ios"}
    assert record.user_id == "u1"
    assert record.last_activity == 1_030_000
    assert record.user == USER


@pytest.mark.asyncio
async def test_update_missing_session_returns_false(registry: SessionRegistry) -> None:
    assert await registry.update_session("nope", {"metadata": {}}) is False


@pytest.mark.asyncio
async def test_update_with_invalid_fields_raises(registry: SessionRegistry) -> None:
    await registry.create_session("s1", "u1", USER)

    with pytest.raises(ValidationAppError) as exc_info:
        await registry.update_session("s1", {"metadata": "not-a-mapping"})

    assert exc_info.value.code == "invalid_session_update"


@pytest.mark.asyncio
async def test_delete_removes_record_and_membership(
    registry: SessionRegistry, store: RedisStore
) -> None:
    await registry.create_session("s1", "u1", USER)

    assert await registry.delete_session("s1") is True
    assert await registry.delete_session("s1") is False
    assert await store.smembers("session:user:u1") == set()


@pytest.mark.asyncio
async def test_user_sessions_sorted_and_stale_ids_skipped(
    registry: SessionRegistry, store: RedisStore, clock: Mock
) -> None:
    await registry.create_session("s1", "u1", USER)
    clock.return_value = 1_010.0
    await registry.create_session("s2", "u1", USER)
    await store.sadd("session:user:u1", "expired-id")

    sessions = await registry.get_user_sessions("u1")

    assert [s.session_id for s in sessions] == ["s2", "s1"]


@pytest.mark.asyncio
async def test_delete_all_user_sessions_keeps_exception(
    registry: SessionRegistry, store: RedisStore
) -> None:
    for session_id in ("s1", "s2", "s3"):
        await registry.create_session(session_id, "u1", USER)

    assert await registry.delete_all_user_sessions("u1", except_session_id="s2") == 2

    assert [s.session_id for s in await registry.get_user_sessions("u1")] == ["s2"]
    assert await store.smembers("session:user:u1") == {"s2"}
    assert await registry.delete_all_user_sessions("nobody") == 0


@pytest.mark.asyncio
async def test_session_cap_evicts_least_recently_active(
    store: RedisStore, clock: Mock
) -> None:
    registry = SessionRegistry(store, limits=LimitSettings(max_sessions_per_user=2), clock=clock)
    await registry.create_session("s1", "u1", USER)
    clock.return_value = 1_010.0
    await registry.create_session("s2", "u1", USER)
    clock.return_value = 1_020.0
    await registry.create_session("s3", "u1", USER)

    remaining = [s.session_id for s in await registry.get_user_sessions("u1")]

    assert remaining == ["s3", "s2"]
    assert await store.exists("session:s1") is False


@pytest.mark.asyncio
async def test_stats_separate_records_from_user_sets(registry: SessionRegistry) -> None:
    await registry.create_session("s1", "u1", USER)
    await registry.create_session("s2", "u1", USER)
    await registry.create_session("s3", "u2", {"id": "u2"})

    stats = await registry.get_session_stats()

    assert stats.enabled is True
    assert stats.total_sessions == 3
    assert stats.user_count == 2


@pytest.mark.asyncio
async def test_cleanup_prunes_expired_ids(
    registry: SessionRegistry, store: RedisStore
) -> None:
    await registry.create_session("s1", "u1", USER)
    await registry.create_session("s2", "u1", USER)
    await store.delete("session:s1")

    assert await registry.cleanup_stale_sessions(batch_size=1) == 1

    assert await store.smembers("session:user:u1") == {"s2"}
    assert await registry.cleanup_stale_sessions() == 0


@pytest.mark.asyncio
async def test_disabled_registry_is_noop(store: RedisStore, clock: Mock) -> None:
    registry = SessionRegistry(store, features=FeatureSettings(sessions=False), clock=clock)

    assert await registry.create_session("s1", "u1", USER) is None
    assert await registry.get_session("s1") is None
    assert await registry.update_session("s1", {}) is False
    assert await registry.delete_session("s1") is False
    assert await registry.get_user_sessions("u1") == []
    assert await registry.delete_all_user_sessions("u1") == 0
    assert (await registry.get_session_stats()).enabled is False
    assert await store.keys("*") == []


@pytest.mark.asyncio
async def test_store_failures_degrade(registry: SessionRegistry, store: RedisStore) -> None:
    down = AsyncMock(side_effect=StoreAppError(code="store_command_failed", message="down"))
    store.set = down
    store.smembers = down
    store.keys = down

    assert await registry.create_session("s1", "u1", USER) is None
    assert await registry.get_user_sessions("u1") == []
    assert await registry.delete_all_user_sessions("u1") == 0
    assert (await registry.get_session_stats()).total_sessions == 0
