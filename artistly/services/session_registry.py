"""Per-user registry of active sessions.

Layout:
- ``session:<sessionId>``: JSON session record, TTL refreshed on write.
- ``session:user:<userId>``: set of that user's session ids.

The user set is best-effort. Ids are removed when a session is deleted
explicitly or by ``cleanup_stale_sessions``; a record that simply expires
leaves a stale id behind, and readers skip ids that resolve to nothing.

Reads refresh ``last_activity`` in a background task that is not
awaited. The refresh uses a conditional write, so it never brings back a
session deleted in the meantime.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from artistly.adapters.store.base import AbstractKeyValueStore
from artistly.core.config import (
    CacheTTLSettings,
    FeatureSettings,
    KeyPrefixSettings,
    LimitSettings,
)
from artistly.core.errors import StoreAppError, ValidationAppError
from artistly.core.logging import log_degraded
from artistly.schemas.session import SessionRecord

logger = logging.getLogger(__name__)

_PROTECTED_FIELDS = ("session_id", "user_id", "created_at")


@dataclass(frozen=True)
class SessionStats:
    enabled: bool
    total_sessions: int = 0
    user_count: int = 0


class SessionRegistry:
    """Track, list and revoke sessions per user."""

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        ttl: CacheTTLSettings | None = None,
        prefixes: KeyPrefixSettings | None = None,
        features: FeatureSettings | None = None,
        limits: LimitSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl or CacheTTLSettings()
        self._prefixes = prefixes or KeyPrefixSettings()
        self._features = features or FeatureSettings()
        self._limits = limits or LimitSettings()
        self._clock = clock
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def enabled(self) -> bool:
        return self._features.sessions

    def session_key(self, session_id: str) -> str:
        return f"{self._prefixes.session}{session_id}"

    def user_sessions_key(self, user_id: str) -> str:
        return f"{self._prefixes.session}{self._prefixes.user}{user_id}"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _degraded(self, event: str, exc: BaseException, **fields: Any) -> None:
        log_degraded(logger, event, exc, error_logging=self._features.error_logging, **fields)

    async def _read(self, session_id: str) -> SessionRecord | None:
        data = await self._store.get(self.session_key(session_id))
        if not isinstance(data, dict):
            return None
        try:
            return SessionRecord.model_validate(data)
        except ValidationError as exc:
            self._degraded("session.decode_failed", exc, session_ref=session_id[:8])
            return None

    async def _write(self, record: SessionRecord, *, only_if_exists: bool = False) -> bool:
        return await self._store.set(
            self.session_key(record.session_id),
            record.model_dump(mode="json"),
            self._ttl.session,
            only_if_exists=only_if_exists,
        )

    # ------------------------------------------------------------------
    # Single sessions
    # ------------------------------------------------------------------

    async def create_session(
        self,
        session_id: str,
        user_id: str,
        user: Mapping[str, Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> SessionRecord | None:
        """Store a new session and register it under its user.

        When the user already holds the maximum number of sessions, the
        least recently active ones are revoked.

        Returns:
            The stored record, or None when sessions are disabled or the
            store failed.
        """

        if not self.enabled:
            return None

        now = self._now_ms()
        record = SessionRecord(
            session_id=session_id,
            user_id=user_id,
            user=dict(user),
            created_at=now,
            last_activity=now,
            metadata=dict(metadata or {}),
        )
        set_key = self.user_sessions_key(user_id)
        try:
            await self._write(record)
            await self._store.sadd(set_key, session_id)
            await self._store.expire(set_key, self._ttl.session)
            await self._enforce_session_cap(user_id, keep=session_id)
        except StoreAppError as exc:
            self._degraded("session.create_failed", exc, user_id=user_id)
            return None

        logger.info("session.created", extra={"user_id": user_id, "session_ref": session_id[:8]})
        return record

    async def _enforce_session_cap(self, user_id: str, *, keep: str) -> None:
        set_key = self.user_sessions_key(user_id)
        session_ids = await self._store.smembers(set_key)
        if len(session_ids) <= self._limits.max_sessions_per_user:
            return

        records = {sid: await self._read(sid) for sid in session_ids}
        stale = [sid for sid, rec in records.items() if rec is None]
        if stale:
            await self._store.srem(set_key, *stale)

        others = sorted(
            (rec for sid, rec in records.items() if rec is not None and sid != keep),
            key=lambda rec: rec.last_activity,
        )
        overflow = len(others) + 1 - self._limits.max_sessions_per_user
        if overflow <= 0:
            return

        evicted = [rec.session_id for rec in others[:overflow]]
        await self._store.delete([self.session_key(sid) for sid in evicted])
        await self._store.srem(set_key, *evicted)
        logger.info("session.evicted", extra={"user_id": user_id, "evicted": len(evicted)})

    async def get_session(self, session_id: str) -> SessionRecord | None:
        """Return the session and refresh its activity in the background."""

        if not self.enabled:
            return None
        record = await self._read(session_id)
        if record is None:
            return None

        task = asyncio.create_task(self._touch(session_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return record

    async def _touch(self, session_id: str) -> None:
        record = await self._read(session_id)
        if record is None:
            return
        touched = record.model_copy(update={"last_activity": self._now_ms()})
        try:
            await self._write(touched, only_if_exists=True)
        except StoreAppError as exc:
            self._degraded("session.touch_failed", exc, session_ref=session_id[:8])

    async def update_session(self, session_id: str, updates: Mapping[str, Any]) -> bool:
        """Merge ``updates`` into an existing session.

        Returns:
            False when the session does not exist (not an error) or the
            store failed.

        Raises:
            ValidationAppError: If the merged record is not a valid session.
        """

        if not self.enabled:
            return False
        record = await self._read(session_id)
        if record is None:
            return False

        changes = {k: v for k, v in updates.items() if k not in _PROTECTED_FIELDS}
        merged = {**record.model_dump(), **changes, "last_activity": self._now_ms()}
        try:
            updated = SessionRecord.model_validate(merged)
        except ValidationError as exc:
            raise ValidationAppError(
                code="invalid_session_update",
                message="Session update does not produce a valid session record",
                details={"context": {"fields": sorted(changes)}},
            ) from exc

        try:
            await self._write(updated)
        except StoreAppError as exc:
            self._degraded("session.update_failed", exc, session_ref=session_id[:8])
            return False
        return True

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and unregister it from its owner's set.

        If the record has already expired its owner is unknown, so the id
        stays in the user set until cleanup.
        """

        if not self.enabled:
            return False
        record = await self._read(session_id)
        try:
            if record is not None:
                await self._store.srem(self.user_sessions_key(record.user_id), session_id)
            deleted = await self._store.delete(self.session_key(session_id))
        except StoreAppError as exc:
            self._degraded("session.delete_failed", exc, session_ref=session_id[:8])
            return False

        logger.info("session.deleted", extra={"session_ref": session_id[:8], "deleted": deleted})
        return deleted > 0

    # ------------------------------------------------------------------
    # Per-user operations
    # ------------------------------------------------------------------

    async def get_user_sessions(self, user_id: str) -> list[SessionRecord]:
        """Live sessions of ``user_id``, most recently active first."""

        if not self.enabled:
            return []
        try:
            session_ids = await self._store.smembers(self.user_sessions_key(user_id))
        except StoreAppError as exc:
            self._degraded("session.list_failed", exc, user_id=user_id)
            return []

        records = [await self._read(sid) for sid in sorted(session_ids)]
        return sorted(
            (rec for rec in records if rec is not None),
            key=lambda rec: rec.last_activity,
            reverse=True,
        )

    async def delete_all_user_sessions(
        self,
        user_id: str,
        except_session_id: str | None = None,
    ) -> int:
        """Revoke every session of ``user_id`` ("sign out everywhere").

        Returns:
            Number of session records deleted.
        """

        if not self.enabled:
            return 0
        set_key = self.user_sessions_key(user_id)
        try:
            session_ids = await self._store.smembers(set_key)
            targets = sorted(sid for sid in session_ids if sid != except_session_id)
            if not targets:
                return 0
            deleted = await self._store.delete([self.session_key(sid) for sid in targets])
            await self._store.srem(set_key, *targets)
        except StoreAppError as exc:
            self._degraded("session.revoke_all_failed", exc, user_id=user_id)
            return 0

        logger.info(
            "session.revoked_all",
            extra={"user_id": user_id, "deleted": deleted, "kept": except_session_id is not None},
        )
        return deleted

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def get_session_stats(self) -> SessionStats:
        """Count session records and user sets from a key scan."""

        if not self.enabled:
            return SessionStats(enabled=False)
        try:
            all_keys = await self._store.keys(f"{self._prefixes.session}*")
            user_keys = set(await self._store.keys(f"{self.user_sessions_key('')}*"))
        except StoreAppError as exc:
            self._degraded("session.stats_failed", exc)
            return SessionStats(enabled=True)

        total = sum(1 for key in all_keys if key not in user_keys)
        return SessionStats(enabled=True, total_sessions=total, user_count=len(user_keys))

    async def cleanup_stale_sessions(self, batch_size: int | None = None) -> int:
        """Remove ids whose session record has expired from every user set.

        Args:
            batch_size: Maximum ids removed per SREM call.

        Returns:
            Number of stale ids removed.
        """

        if not self.enabled:
            return 0
        batch = batch_size or self._limits.cleanup_batch_size
        removed = 0
        try:
            for set_key in await self._store.keys(f"{self.user_sessions_key('')}*"):
                session_ids = sorted(await self._store.smembers(set_key))
                stale = [sid for sid in session_ids if not await self._store.exists(self.session_key(sid))]
                for start in range(0, len(stale), batch):
                    removed += await self._store.srem(set_key, *stale[start:start + batch])
        except StoreAppError as exc:
            self._degraded("session.cleanup_failed", exc, removed=removed)
            return removed

        if removed:
            logger.info("session.cleanup", extra={"removed": removed})
        return removed

    async def drain(self) -> None:
        """Wait for pending background activity refreshes."""

        if self._pending:
            await asyncio.gather(*list(self._pending))
