"""Redis-backed implementation of the key-value store.

One ``RedisStore`` owns one redis-py asyncio client (and therefore one
connection pool). The client is created lazily on first use and rebuilt
after a connection-level failure. Retries, backoff and timeouts are
delegated to redis-py through ``RedisSettings``.

Failure policy:
- ``get``/``mget`` are fail-soft: transport and decode errors are logged
  and reported as a miss.
- Every other command is fail-loud: the redis error is wrapped in
  ``StoreAppError`` and raised to the caller.
- ``set`` accepts plain JSON values only; anything else raises
  ``ValidationAppError`` before a command is sent.
- ``health_check`` never raises.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from artistly.adapters.store.base import AbstractKeyValueStore, StoreHealth
from artistly.core.config import RedisSettings
from artistly.core.errors import StoreAppError, ValidationAppError
from artistly.core.logging import log_degraded

logger = logging.getLogger(__name__)

_CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


def _serialize(key: str, value: Any) -> str:
    # Only plain JSON values round-trip
    try:
        return json.dumps(value, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise ValidationAppError(
            code="unserializable_value",
            message="Value cannot be stored as JSON",
            details={"key": key, "error_type": type(exc).__name__},
        ) from exc


class RedisStore(AbstractKeyValueStore):
    """Connection-managed adapter over a Redis server.

    Args:
        settings: Connection options (URL, timeouts, retries).
        client: Pre-built client to use instead of connecting from the URL.
            Injected clients are never replaced or rebuilt.
    """

    def __init__(self, settings: RedisSettings | None = None, *, client: Redis | None = None) -> None:
        self._settings = settings or RedisSettings()
        self._client: Redis | None = client
        self._owns_client = client is None
        self._broken = False

    def __repr__(self) -> str:  # pragma: no cover - representation only
        state = "none" if self._client is None else ("broken" if self._broken else "ready")
        return f"RedisStore(client={state}, injected={not self._owns_client})"

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _build_client(self) -> Redis:
        cfg = self._settings
        retry = Retry(
            ExponentialBackoff(
                cap=cfg.retry_backoff_cap_seconds,
                base=cfg.retry_backoff_base_seconds,
            ),
            cfg.max_retries,
        )
        return Redis.from_url(
            cfg.url,
            decode_responses=True,
            socket_connect_timeout=cfg.connect_timeout_seconds,
            socket_timeout=cfg.command_timeout_seconds,
            retry=retry,
            retry_on_error=[RedisConnectionError, RedisTimeoutError],
            health_check_interval=cfg.health_check_interval_seconds,
        )

    async def connect(self) -> Redis:
        """Return the shared client, creating or rebuilding it as needed."""

        if self._client is not None and (not self._broken or not self._owns_client):
            return self._client

        if self._client is not None:
            logger.warning("store.reconnecting")
            await self._close_client()

        logger.info(
            "store.connecting",
            extra={
                "connect_timeout_s": self._settings.connect_timeout_seconds,
                "command_timeout_s": self._settings.command_timeout_seconds,
                "max_retries": self._settings.max_retries,
            },
        )
        self._client = self._build_client()
        self._broken = False
        logger.info("store.connected")
        return self._client

    async def get_client(self) -> Redis:
        return await self.connect()

    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._close_client()
        logger.info("store.closed")

    async def _close_client(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except RedisError as exc:
            logger.warning("store.close_failed", extra={"error_msg": str(exc)})

    def _note_failure(self, exc: BaseException) -> None:
        if isinstance(exc, _CONNECTION_ERRORS):
            if not self._broken:
                logger.error("store.error", extra={"error_type": type(exc).__name__, "error_msg": str(exc)})
            self._broken = True

    @contextmanager
    def _command(self, operation: str, key: str | None = None) -> Iterator[None]:
        """Translate redis errors raised inside the block into StoreAppError."""

        try:
            yield
        except RedisError as exc:
            self._note_failure(exc)
            logger.warning(
                "store.command_failed",
                extra={"operation": operation, "cache_key": key, "error_msg": str(exc)},
            )
            raise StoreAppError(
                code="store_command_failed",
                message=f"Store command '{operation}' failed: {exc}",
                details={"operation": operation, **({"key": key} if key else {})},
            ) from exc

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        try:
            client = await self.connect()
            raw = await client.get(key)
        except RedisError as exc:
            self._note_failure(exc)
            log_degraded(logger, "store.get_failed", exc, cache_key=key)
            return None

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            log_degraded(logger, "store.decode_failed", exc, cache_key=key)
            return None

    async def mget(self, keys: Sequence[str]) -> list[Any | None]:
        if not keys:
            return []
        try:
            client = await self.connect()
            raw_values = await client.mget(list(keys))
        except RedisError as exc:
            self._note_failure(exc)
            log_degraded(logger, "store.mget_failed", exc, key_count=len(keys))
            return [None] * len(keys)

        values: list[Any | None] = []
        for key, raw in zip(keys, raw_values):
            if raw is None:
                values.append(None)
                continue
            try:
                values.append(json.loads(raw))
            except ValueError as exc:
                log_degraded(logger, "store.decode_failed", exc, cache_key=key)
                values.append(None)
        return values

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
        *,
        only_if_exists: bool = False,
    ) -> bool:
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValidationAppError(
                code="invalid_ttl",
                message="TTL must be a positive number of seconds",
                details={"key": key},
            )
        payload = _serialize(key, value)
        with self._command("set", key):
            client = await self.connect()
            result = await client.set(key, payload, ex=ttl_seconds, xx=only_if_exists)
        return bool(result)

    async def delete(self, keys: str | Sequence[str]) -> int:
        key_list = [keys] if isinstance(keys, str) else list(keys)
        if not key_list:
            return 0
        with self._command("delete", key_list[0] if len(key_list) == 1 else None):
            client = await self.connect()
            return int(await client.delete(*key_list))

    async def exists(self, key: str) -> bool:
        with self._command("exists", key):
            client = await self.connect()
            return bool(await client.exists(key))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        with self._command("expire", key):
            client = await self.connect()
            return bool(await client.expire(key, ttl_seconds))

    async def ttl(self, key: str) -> int:
        with self._command("ttl", key):
            client = await self.connect()
            return int(await client.ttl(key))

    async def keys(self, pattern: str) -> list[str]:
        with self._command("scan", pattern):
            client = await self.connect()
            found = [
                key
                async for key in client.scan_iter(match=pattern, count=self._settings.scan_batch_size)
            ]
        # SCAN may return a key more than once
        return list(dict.fromkeys(found))

    async def incr(self, key: str, amount: int = 1, ttl_seconds: int | None = None) -> int:
        with self._command("incr", key):
            client = await self.connect()
            value = int(await client.incrby(key, amount))
            if ttl_seconds and value == amount:
                await client.expire(key, ttl_seconds)
        return value

    # ------------------------------------------------------------------
    # Sorted sets
    # ------------------------------------------------------------------

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        with self._command("zadd", key):
            client = await self.connect()
            return int(await client.zadd(key, mapping))

    async def zremrangebyscore(self, key: str, min_score: float, max_score: float) -> int:
        with self._command("zremrangebyscore", key):
            client = await self.connect()
            return int(await client.zremrangebyscore(key, min_score, max_score))

    async def zcard(self, key: str) -> int:
        with self._command("zcard", key):
            client = await self.connect()
            return int(await client.zcard(key))

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        with self._command("sadd", key):
            client = await self.connect()
            return int(await client.sadd(key, *members))

    async def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        with self._command("srem", key):
            client = await self.connect()
            return int(await client.srem(key, *members))

    async def smembers(self, key: str) -> set[str]:
        with self._command("smembers", key):
            client = await self.connect()
            return set(await client.smembers(key))

    async def scard(self, key: str) -> int:
        with self._command("scard", key):
            client = await self.connect()
            return int(await client.scard(key))

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    async def info(self, section: str | None = None) -> dict[str, Any]:
        with self._command("info", section):
            client = await self.connect()
            if section is None:
                return dict(await client.info())
            return dict(await client.info(section))

    async def health_check(self) -> StoreHealth:
        start = time.perf_counter()
        try:
            client = await self.connect()
            await client.ping()
        except (RedisError, OSError, ValueError) as exc:
            self._note_failure(exc)
            logger.warning("store.health_check_failed", extra={"error_msg": str(exc)})
            return StoreHealth(status="unhealthy", error=str(exc))

        latency_ms = (time.perf_counter() - start) * 1000
        return StoreHealth(status="healthy", latency_ms=round(latency_ms, 2))

    async def flushall(self) -> None:
        with self._command("flushall"):
            client = await self.connect()
            await client.flushall()
        logger.warning("store.flushed")
