"""Key-value store interfaces.

Services depend on this abstraction (not on redis-py directly) so the
composition root can hand them any store, including an in-process fake
for tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence


@dataclass(frozen=True)
class StoreHealth:
    """Result of a liveness probe against the backing store.

    Attributes:
        status: ``"healthy"`` or ``"unhealthy"``.
        latency_ms: Round-trip time of the probe when healthy.
        error: Error description when unhealthy.
    """

    status: str
    latency_ms: float | None = None
    error: str | None = None

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"


class AbstractKeyValueStore(ABC):
    """Minimal surface over a remote in-memory data store.

    Write primitives raise :class:`~artistly.core.errors.StoreAppError`;
    ``get``/``mget`` degrade to ``None`` instead.
    """

    @abstractmethod
    async def connect(self) -> Any:
        """Return the shared client, creating it on first use."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the shared client if one was created."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the deserialized value for ``key`` or ``None``."""

    @abstractmethod
    async def mget(self, keys: Sequence[str]) -> list[Any | None]:
        """Return values for ``keys`` in order, ``None`` for misses."""

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
        *,
        only_if_exists: bool = False,
    ) -> bool:
        """Serialize and store ``value``; returns whether it was written."""

    @abstractmethod
    async def delete(self, keys: str | Sequence[str]) -> int:
        """Delete one or more keys and return how many existed."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Remaining lifetime in seconds (-1 no expiry, -2 missing)."""

    @abstractmethod
    async def keys(self, pattern: str) -> list[str]:
        """All keys matching a glob pattern. Administrative use only."""

    @abstractmethod
    async def incr(self, key: str, amount: int = 1, ttl_seconds: int | None = None) -> int:
        raise NotImplementedError

    @abstractmethod
    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        raise NotImplementedError

    @abstractmethod
    async def zremrangebyscore(self, key: str, min_score: float, max_score: float) -> int:
        raise NotImplementedError

    @abstractmethod
    async def zcard(self, key: str) -> int:
        raise NotImplementedError

    @abstractmethod
    async def sadd(self, key: str, *members: str) -> int:
        raise NotImplementedError

    @abstractmethod
    async def srem(self, key: str, *members: str) -> int:
        raise NotImplementedError

    @abstractmethod
    async def smembers(self, key: str) -> set[str]:
        raise NotImplementedError

    @abstractmethod
    async def scard(self, key: str) -> int:
        raise NotImplementedError

    @abstractmethod
    async def info(self, section: str | None = None) -> dict[str, Any]:
        """Server INFO output parsed into a mapping."""

    @abstractmethod
    async def health_check(self) -> StoreHealth:
        """Probe liveness; never raises."""

    @abstractmethod
    async def flushall(self) -> None:
        """Remove every key from the store."""
