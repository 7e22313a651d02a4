"""Rate limiter interfaces.

The HTTP layer and the auth flows depend on this abstraction (not the
concrete implementation) so the backing store can be swapped freely.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitRule:
    """How many requests an identifier may make in a trailing window.

    Attributes:
        window_ms: Length of the sliding window in milliseconds.
        max_requests: Requests allowed inside one window.
    """

    window_ms: int
    max_requests: int

    def __post_init__(self) -> None:
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")

    @property
    def window_seconds(self) -> int:
        return max(1, math.ceil(self.window_ms / 1000))


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Requests left in the window after this one (0 when blocked).
        reset_time: UNIX epoch milliseconds at which the window has fully slid past now.
        total_hits: Requests counted in the window, including this one if allowed.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    total_hits: int = 0
    retry_after_seconds: int | None = None

    @property
    def reset_at(self) -> int:
        """Reset time in UNIX epoch seconds, for HTTP headers."""
        return math.ceil(self.reset_time / 1000)


@dataclass(frozen=True)
class RateLimitStats:
    """Administrative view over all rate-limit windows."""

    enabled: bool
    total_keys: int = 0
    active_windows: int = 0


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    async def check_limit(
        self,
        identifier: str,
        rule: RateLimitRule | None = None,
        action: str = "default",
    ) -> RateLimitResult:
        """Count one request for ``identifier`` under ``action``.

        Args:
            identifier: Who is being limited (IP address, user id).
            rule: Window and budget; defaults to the action's configured rule.
            action: Action class the window belongs to (login, search, ...).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    async def reset_limit(self, identifier: str, action: str = "default") -> bool:
        """Drop the identifier's window for ``action`` entirely."""
        raise NotImplementedError
