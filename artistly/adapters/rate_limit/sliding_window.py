"""Sliding-window rate limiter backed by a sorted set per identifier.

Each window lives at ``rate:<action>:<identifier>``. Members are request
markers scored by their timestamp in milliseconds; a check purges
everything at or before ``now - window``, counts what is left, and records
the request only when it is allowed.

Notes:
- Check-and-record is a sequence of independent commands, not a
  transaction. Concurrent bursts for one identifier from several
  processes can overshoot the limit slightly.
- Fail-open: if the store errors, or rate limiting is switched off, the
  request is allowed with the full budget remaining.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from typing import TYPE_CHECKING, Callable

from artistly.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RateLimitRule,
    RateLimitStats,
)
from artistly.adapters.store.base import AbstractKeyValueStore
from artistly.core.config import FeatureSettings, KeyPrefixSettings, RateLimitSettings
from artistly.core.errors import StoreAppError
from artistly.core.logging import log_degraded

if TYPE_CHECKING:
    from artistly.services.analytics import AnalyticsRecorder

logger = logging.getLogger(__name__)

DEFAULT_ACTION = "default"


def build_rules(cfg: RateLimitSettings) -> dict[str, RateLimitRule]:
    """Map action classes to their configured rules."""

    return {
        DEFAULT_ACTION: RateLimitRule(cfg.window_ms, cfg.max_requests),
        "login": RateLimitRule(cfg.login_window_ms, cfg.login_max_requests),
        "signup": RateLimitRule(cfg.signup_window_ms, cfg.signup_max_requests),
        "password_reset": RateLimitRule(cfg.password_reset_window_ms, cfg.password_reset_max_requests),
        "api": RateLimitRule(cfg.api_window_ms, cfg.api_max_requests),
        "search": RateLimitRule(cfg.search_window_ms, cfg.search_max_requests),
        "upload": RateLimitRule(cfg.upload_window_ms, cfg.upload_max_requests),
    }


def _hash_identifier(identifier: str) -> str:
    """Hash the identifier for logging without exposing IPs or user ids."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Per-identifier request counting over a trailing time window.

    Args:
        store: Backing store providing sorted-set commands.
        config: Default and per-action window/budget settings.
        prefixes: Key namespaces (``rate`` is used).
        features: Feature flags (``rate_limiting``, ``error_logging``).
        analytics: Optional recorder for denied requests.
        clock: Time source returning UNIX time in seconds.
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        config: RateLimitSettings | None = None,
        prefixes: KeyPrefixSettings | None = None,
        features: FeatureSettings | None = None,
        analytics: AnalyticsRecorder | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._config = config or RateLimitSettings()
        self._prefixes = prefixes or KeyPrefixSettings()
        self._features = features or FeatureSettings()
        self._analytics = analytics
        self._clock = clock
        self._rules = build_rules(self._config)

    @property
    def enabled(self) -> bool:
        return self._features.rate_limiting

    @property
    def rules(self) -> dict[str, RateLimitRule]:
        return dict(self._rules)

    def rule_for(self, action: str) -> RateLimitRule:
        return self._rules.get(action, self._rules[DEFAULT_ACTION])

    def _key(self, action: str, identifier: str) -> str:
        return f"{self._prefixes.rate}{action}:{identifier}"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _open_result(self, rule: RateLimitRule, now: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=rule.max_requests,
            remaining=rule.max_requests,
            reset_time=now + rule.window_ms,
        )

    async def check_limit(
        self,
        identifier: str,
        rule: RateLimitRule | None = None,
        action: str = DEFAULT_ACTION,
    ) -> RateLimitResult:
        """Count one request for ``identifier`` and decide whether it may pass.

        Raises:
            ValueError: If identifier is empty.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        rule = rule or self.rule_for(action)
        now = self._now_ms()
        if not self.enabled:
            return self._open_result(rule, now)

        key = self._key(action, identifier)
        window_start = now - rule.window_ms

        try:
            await self._store.zremrangebyscore(key, 0, window_start)
            current = await self._store.zcard(key)
            allowed = current < rule.max_requests
            if allowed:
                # Score is the timestamp; the suffix keeps same-millisecond requests distinct
                member = f"{now}-{secrets.token_hex(4)}"
                await self._store.zadd(key, {member: now})
                await self._store.expire(key, rule.window_seconds)
        except StoreAppError as exc:
            log_degraded(
                logger,
                "rate_limit.check_failed",
                exc,
                error_logging=self._features.error_logging,
                action=action,
                key_hash=_hash_identifier(identifier),
            )
            return self._open_result(rule, now)

        reset_time = now + rule.window_ms
        if allowed:
            result = RateLimitResult(
                allowed=True,
                limit=rule.max_requests,
                remaining=max(0, rule.max_requests - current - 1),
                reset_time=reset_time,
                total_hits=current + 1,
            )
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "action": action,
                    "key_hash": _hash_identifier(identifier),
                    "limit": result.limit,
                    "remaining": result.remaining,
                },
            )
            return result

        result = RateLimitResult(
            allowed=False,
            limit=rule.max_requests,
            remaining=max(0, rule.max_requests - current),
            reset_time=reset_time,
            total_hits=current,
            retry_after_seconds=rule.window_seconds,
        )
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "action": action,
                "key_hash": _hash_identifier(identifier),
                "limit": result.limit,
                "window_ms": rule.window_ms,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        if self._analytics is not None:
            await self._analytics.record(f"rate_limit.denied.{action}")
        return result

    async def get_remaining(
        self,
        identifier: str,
        rule: RateLimitRule | None = None,
        action: str = DEFAULT_ACTION,
    ) -> int:
        """Remaining budget without recording a request."""

        rule = rule or self.rule_for(action)
        if not self.enabled:
            return rule.max_requests

        key = self._key(action, identifier)
        window_start = self._now_ms() - rule.window_ms
        try:
            await self._store.zremrangebyscore(key, 0, window_start)
            current = await self._store.zcard(key)
        except StoreAppError as exc:
            log_degraded(
                logger,
                "rate_limit.remaining_failed",
                exc,
                error_logging=self._features.error_logging,
                action=action,
            )
            return rule.max_requests
        return max(0, rule.max_requests - current)

    async def reset_limit(self, identifier: str, action: str = DEFAULT_ACTION) -> bool:
        if not self.enabled:
            return False
        try:
            await self._store.delete(self._key(action, identifier))
        except StoreAppError as exc:
            log_degraded(
                logger,
                "rate_limit.reset_failed",
                exc,
                error_logging=self._features.error_logging,
                action=action,
            )
            return False
        logger.info(
            "rate_limit.reset",
            extra={"action": action, "key_hash": _hash_identifier(identifier)},
        )
        return True

    async def get_stats(self) -> RateLimitStats:
        """Count windows in the keyspace and how many still hold requests."""

        if not self.enabled:
            return RateLimitStats(enabled=False)
        try:
            keys = await self._store.keys(f"{self._prefixes.rate}*")
            active = 0
            for key in keys:
                if await self._store.zcard(key) > 0:
                    active += 1
        except StoreAppError as exc:
            log_degraded(
                logger,
                "rate_limit.stats_failed",
                exc,
                error_logging=self._features.error_logging,
            )
            return RateLimitStats(enabled=True)
        return RateLimitStats(enabled=True, total_keys=len(keys), active_windows=active)

    # Predefined action classes

    async def check_login_limit(self, identifier: str) -> RateLimitResult:
        return await self.check_limit(identifier, action="login")

    async def check_signup_limit(self, identifier: str) -> RateLimitResult:
        return await self.check_limit(identifier, action="signup")

    async def check_password_reset_limit(self, identifier: str) -> RateLimitResult:
        return await self.check_limit(identifier, action="password_reset")

    async def check_api_limit(self, identifier: str) -> RateLimitResult:
        return await self.check_limit(identifier, action="api")

    async def check_search_limit(self, identifier: str) -> RateLimitResult:
        return await self.check_limit(identifier, action="search")

    async def check_upload_limit(self, identifier: str) -> RateLimitResult:
        return await self.check_limit(identifier, action="upload")
