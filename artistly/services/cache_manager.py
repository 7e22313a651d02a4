"""Tagged value cache over the key-value store.

Entries live at ``cache:<key>`` with a TTL picked from named classes.
Tags give group invalidation: ``tag:<name>`` holds the list of cache keys
written under that tag, and ``delete_by_tag`` removes them all at once.

The cache is an optimization layer. Every public method logs and
swallows store failures and unserializable values (a failed read is a
miss, a failed write is ``False``), with one exception: ``get_stats``
raises so the admin endpoint can report the outage.

Tag maintenance is read-append-write and not atomic. A crash between the
entry write and the index write can leave an entry unreachable by its
tag until it expires, and an index can reference keys that are already
gone; ``delete_by_tag`` treats those as no-ops.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Sequence, TypeVar

from artistly.adapters.store.base import AbstractKeyValueStore
from artistly.core.config import (
    CacheTTLSettings,
    FeatureSettings,
    KeyPrefixSettings,
    LimitSettings,
)
from artistly.core.errors import AppError
from artistly.core.logging import log_degraded
from artistly.services.analytics import AnalyticsRecorder

logger = logging.getLogger(__name__)

T = TypeVar("T")

TTLSpec = int | str | None

TTL_CLASSES = (
    "short",
    "medium",
    "long",
    "user_profile",
    "artist_data",
    "notifications",
    "session",
    "analytics",
)

# Names used by the web client's cache helpers
_TTL_ALIASES = {
    "shortCache": "short",
    "mediumCache": "medium",
    "longCache": "long",
    "userProfile": "user_profile",
    "artistData": "artist_data",
}


@dataclass(frozen=True)
class CacheStats:
    """Keyspace-level cache figures reported by the Redis server."""

    total_keys: int = 0
    memory_usage: str = "0B"
    hit_rate: float = 0.0


@dataclass
class CacheWrite:
    """One entry of a batch write."""

    key: str
    value: Any
    ttl: TTLSpec = None
    tags: Sequence[str] = field(default_factory=tuple)


class CacheManager:
    """Value cache with TTL classes and tag-based invalidation.

    Attributes:
        enabled: Mirrors the ``ENABLE_CACHE`` flag; when off every read
            misses and every write is a no-op.
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        ttl: CacheTTLSettings | None = None,
        prefixes: KeyPrefixSettings | None = None,
        features: FeatureSettings | None = None,
        limits: LimitSettings | None = None,
        analytics: AnalyticsRecorder | None = None,
    ) -> None:
        self._store = store
        self._ttl = ttl or CacheTTLSettings()
        self._prefixes = prefixes or KeyPrefixSettings()
        self._features = features or FeatureSettings()
        self._limits = limits or LimitSettings()
        self._analytics = analytics

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"CacheManager(enabled={self.enabled}, prefix={self._prefixes.cache!r})"

    @property
    def enabled(self) -> bool:
        return self._features.cache

    # ------------------------------------------------------------------
    # Keys and TTLs
    # ------------------------------------------------------------------

    def resolve_ttl(self, ttl: TTLSpec) -> int:
        """Turn seconds or a TTL class name into seconds (default: medium)."""

        if isinstance(ttl, int) and not isinstance(ttl, bool) and ttl > 0:
            return ttl
        if isinstance(ttl, str):
            name = _TTL_ALIASES.get(ttl, ttl)
            if name in TTL_CLASSES:
                return getattr(self._ttl, name)
        return self._ttl.medium

    def cache_key(self, key: str) -> str:
        """Namespaced store key; over-long logical keys are hashed."""

        if len(key) > self._limits.max_key_length:
            key = "h:" + hashlib.sha256(key.encode()).hexdigest()
        return f"{self._prefixes.cache}{key}"

    def tag_key(self, tag: str) -> str:
        return f"{self._prefixes.tag}{tag}"

    def _degraded(self, event: str, exc: BaseException, **fields: Any) -> None:
        log_degraded(logger, event, exc, error_logging=self._features.error_logging, **fields)

    async def _record(self, event: str) -> None:
        if self._analytics is not None:
            await self._analytics.record(event)

    # ------------------------------------------------------------------
    # Basic operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Return the cached value or None on miss, failure, or when disabled."""

        if not self.enabled:
            return None

        cache_key = self.cache_key(key)
        try:
            value = await self._store.get(cache_key)
        except AppError as exc:
            self._degraded("cache.get_failed", exc, cache_key=cache_key)
            return None

        if value is None:
            logger.debug("cache.miss", extra={"cache_key": cache_key})
            await self._record("cache.miss")
            return None

        logger.debug("cache.hit", extra={"cache_key": cache_key})
        await self._record("cache.hit")
        return value

    async def set(
        self,
        key: str,
        value: Any,
        *,
        ttl: TTLSpec = None,
        tags: Iterable[str] | None = None,
    ) -> bool:
        """Store ``value`` and register it under each tag.

        Args:
            key: Logical cache key (without namespace).
            value: JSON-serializable value.
            ttl: Seconds, or a TTL class name such as ``"short"`` or
                ``"userProfile"``. Defaults to the medium class.
            tags: Labels the entry can later be invalidated by.

        Returns:
            True when the entry and every tag index were written.
        """

        if not self.enabled:
            return False

        cache_key = self.cache_key(key)
        seconds = self.resolve_ttl(ttl)
        tag_list = list(tags or ())
        try:
            await self._store.set(cache_key, value, seconds)
            for tag in tag_list:
                await self._add_to_tag(tag, cache_key, seconds)
        except AppError as exc:
            self._degraded("cache.set_failed", exc, cache_key=cache_key, tags=tag_list)
            return False

        logger.debug(
            "cache.set",
            extra={"cache_key": cache_key, "ttl_s": seconds, "tags": tag_list},
        )
        return True

    async def _add_to_tag(self, tag: str, cache_key: str, entry_ttl: int) -> None:
        tag_key = self.tag_key(tag)
        members = await self._store.get(tag_key)
        if not isinstance(members, list):
            members = []
        if cache_key not in members:
            members.append(cache_key)

        # The index must outlive its longest-lived member, not just the newest one
        index_ttl = entry_ttl + self._ttl.tag_buffer
        remaining = await self._store.ttl(tag_key)
        if remaining > index_ttl:
            index_ttl = remaining

        await self._store.set(tag_key, members, index_ttl)

    async def delete(self, keys: str | Sequence[str]) -> int:
        """Delete entries directly. Tag indices keep their (now stale) references."""

        if not self.enabled:
            return 0

        key_list = [keys] if isinstance(keys, str) else list(keys)
        cache_keys = [self.cache_key(k) for k in key_list]
        try:
            deleted = await self._store.delete(cache_keys)
        except AppError as exc:
            self._degraded("cache.delete_failed", exc, key_count=len(cache_keys))
            return 0

        logger.debug("cache.delete", extra={"key_count": len(cache_keys), "deleted": deleted})
        return deleted

    async def delete_by_tag(self, tag: str) -> int:
        """Delete every entry registered under ``tag`` plus the tag index.

        Returns:
            Number of cache entries that existed and were removed.
        """

        if not self.enabled:
            return 0

        tag_key = self.tag_key(tag)
        try:
            members = await self._store.get(tag_key)
            if not members:
                return 0
            deleted = await self._store.delete([str(m) for m in members])
            await self._store.delete(tag_key)
        except AppError as exc:
            self._degraded("cache.tag_invalidation_failed", exc, tag=tag)
            return 0

        logger.info(
            "cache.tag_invalidated",
            extra={"tag": tag, "key_count": len(members), "deleted": deleted},
        )
        return deleted

    async def exists(self, key: str) -> bool:
        if not self.enabled:
            return False
        try:
            return await self._store.exists(self.cache_key(key))
        except AppError as exc:
            self._degraded("cache.exists_failed", exc, cache_key=self.cache_key(key))
            return False

    async def get_or_set(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        *,
        ttl: TTLSpec = None,
        tags: Iterable[str] | None = None,
    ) -> T:
        """Return the cached value, or produce it with ``fetch`` and cache it.

        Cache failures fall back to ``fetch`` without caching; errors raised
        by ``fetch`` itself propagate. Concurrent misses for the same key
        each call ``fetch`` and the last write wins.
        """

        cached = await self.get(key)
        if cached is not None:
            return cached

        value = await fetch()
        if value is not None:
            await self.set(key, value, ttl=ttl, tags=tags)
        return value

    async def clear(self) -> int:
        """Delete every cache entry and tag index. Administrative, O(keyspace)."""

        if not self.enabled:
            return 0
        try:
            keys = await self._store.keys(f"{self._prefixes.cache}*")
            keys += await self._store.keys(f"{self._prefixes.tag}*")
            deleted = await self._store.delete(keys)
        except AppError as exc:
            self._degraded("cache.clear_failed", exc)
            return 0

        logger.warning("cache.cleared", extra={"deleted": deleted})
        return deleted

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    async def mget(self, keys: Sequence[str]) -> list[Any | None]:
        if not self.enabled:
            return [None] * len(keys)
        try:
            return await self._store.mget([self.cache_key(k) for k in keys])
        except AppError as exc:
            self._degraded("cache.mget_failed", exc, key_count=len(keys))
            return [None] * len(keys)

    async def mset(self, entries: Iterable[CacheWrite]) -> bool:
        """Write several entries; True only if every write succeeded."""

        results = [
            await self.set(entry.key, entry.value, ttl=entry.ttl, tags=entry.tags)
            for entry in entries
        ]
        return all(results)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def get_stats(self) -> CacheStats:
        """Read key count, memory usage and hit rate from the server.

        Raises:
            StoreAppError: If the server cannot be queried.
        """

        if not self.enabled:
            return CacheStats()

        memory = await self._store.info("memory")
        keyspace = await self._store.info("keyspace")
        stats = await self._store.info("stats")

        total_keys = sum(
            int(db.get("keys", 0)) for db in keyspace.values() if isinstance(db, dict)
        )
        hits = int(stats.get("keyspace_hits", 0))
        misses = int(stats.get("keyspace_misses", 0))
        hit_rate = round(hits / (hits + misses) * 100, 2) if hits + misses else 0.0

        return CacheStats(
            total_keys=total_keys,
            memory_usage=str(memory.get("used_memory_human", "0B")),
            hit_rate=hit_rate,
        )

    # ------------------------------------------------------------------
    # Domain helpers
    # ------------------------------------------------------------------

    async def get_cached_user_profile(self, user_id: str) -> Any | None:
        return await self.get(f"user:profile:{user_id}")

    async def cache_user_profile(self, user_id: str, profile: Any) -> bool:
        return await self.set(
            f"user:profile:{user_id}",
            profile,
            ttl="user_profile",
            tags=["user", f"user:{user_id}"],
        )

    async def invalidate_user(self, user_id: str) -> int:
        return await self.delete_by_tag(f"user:{user_id}")

    async def get_cached_artist(self, artist_id: str) -> Any | None:
        return await self.get(f"artist:{artist_id}")

    async def cache_artist(self, artist_id: str, artist: Any) -> bool:
        return await self.set(
            f"artist:{artist_id}",
            artist,
            ttl="artist_data",
            tags=["artist", f"artist:{artist_id}"],
        )

    async def invalidate_artist(self, artist_id: str) -> int:
        return await self.delete_by_tag(f"artist:{artist_id}")

    @staticmethod
    def search_key(query: str) -> str:
        return "search:" + base64.urlsafe_b64encode(query.encode()).decode()

    async def get_cached_search(self, query: str) -> Any | None:
        return await self.get(self.search_key(query))

    async def cache_search(self, query: str, results: Any) -> bool:
        return await self.set(self.search_key(query), results, ttl="short", tags=["search"])

    async def invalidate_searches(self) -> int:
        return await self.delete_by_tag("search")

    async def get_cached_notifications(self, user_id: str) -> Any | None:
        return await self.get(f"notifications:{user_id}")

    async def cache_notifications(self, user_id: str, notifications: Any) -> bool:
        return await self.set(
            f"notifications:{user_id}",
            notifications,
            ttl="notifications",
            tags=["notifications", f"user:{user_id}"],
        )
