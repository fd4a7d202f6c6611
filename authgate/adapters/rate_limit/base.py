"""Rate limiter interfaces.

Callers depend on this abstraction (not the concrete implementation) so the
storage backend can be swapped later (e.g., Redis) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitConfig:
    """Budget for one rate-gated action.

    Attributes:
        limit: Max requests per window.
        window_seconds: Window length, starting at the first request of a window.
    """

    limit: int = 5
    window_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window ends.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None = None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitDecision:
        """Count one request for ``identifier`` and decide whether it may proceed.

        Args:
            identifier: Unique identifier (e.g., client IP, email digest).
            config: Limit and window for this action.

        Returns:
            RateLimitDecision describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self, identifier: str) -> None:
        """Forget any window state for ``identifier``."""
        raise NotImplementedError
