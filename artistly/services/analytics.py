"""Daily event counters kept next to the cache.

Counters live at ``analytics:<event>:<YYYY-MM-DD>`` and expire after the
analytics TTL. Recording is fail-soft and a no-op unless analytics is
enabled.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable

from artistly.adapters.store.base import AbstractKeyValueStore
from artistly.core.config import CacheTTLSettings, FeatureSettings, KeyPrefixSettings
from artistly.core.errors import StoreAppError
from artistly.core.logging import log_degraded

logger = logging.getLogger(__name__)


class AnalyticsRecorder:
    """Increment per-day counters for cache and rate-limit events."""

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        ttl: CacheTTLSettings | None = None,
        prefixes: KeyPrefixSettings | None = None,
        features: FeatureSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl or CacheTTLSettings()
        self._prefixes = prefixes or KeyPrefixSettings()
        self._features = features or FeatureSettings()
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._features.analytics

    def _key(self, event: str, day: str | None = None) -> str:
        if day is None:
            day = datetime.fromtimestamp(self._clock(), tz=timezone.utc).strftime("%Y-%m-%d")
        return f"{self._prefixes.analytics}{event}:{day}"

    async def record(self, event: str, amount: int = 1) -> int | None:
        """Add ``amount`` to today's counter for ``event``.

        Returns:
            The new counter value, or None when disabled or on failure.
        """

        if not self.enabled:
            return None
        try:
            return await self._store.incr(self._key(event), amount, ttl_seconds=self._ttl.analytics)
        except StoreAppError as exc:
            log_degraded(
                logger,
                "analytics.record_failed",
                exc,
                error_logging=self._features.error_logging,
                analytics_event=event,
            )
            return None

    async def count(self, event: str, day: str | None = None) -> int:
        """Read a counter; missing counters and failures read as zero."""

        if not self.enabled:
            return 0
        value = await self._store.get(self._key(event, day))
        return int(value) if isinstance(value, (int, float)) else 0
