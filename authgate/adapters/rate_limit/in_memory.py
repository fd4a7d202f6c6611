"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
  Sharing state across processes is out of scope for this limiter.
- Thread-safe: every check-and-update happens under one lock, so concurrent
  increments for the same identifier are never lost.
- Windows start at the first request for a key (not aligned to the clock).
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from authgate.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitDecision,
)

logger = logging.getLogger(__name__)


@dataclass
class _WindowState:
    count: int
    reset_at: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Fixed-window counter per identifier with a background sweep.

    Expired windows are dropped lazily by ``check`` and periodically by a
    daemon sweep thread, which bounds memory for identifiers that never come
    back. The sweep never holds the lock for a full scan.
    """

    def __init__(
        self,
        *,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            sweep_interval_seconds: Cadence of the background sweep.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If the sweep interval is not positive.
        """
        if sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")

        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitDecision:
        """Count one request for ``identifier``.

        Raises:
            ValueError: If identifier is empty.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        with self._lock:
            now = self._clock()
            state = self._state_by_key.get(identifier)

            if state is None or now > state.reset_at:
                state = _WindowState(count=1, reset_at=now + config.window_seconds)
                self._state_by_key[identifier] = state
                return RateLimitDecision(
                    allowed=True,
                    limit=config.limit,
                    remaining=config.limit - 1,
                    reset_at=state.reset_at,
                )

            if state.count >= config.limit:
                return RateLimitDecision(
                    allowed=False,
                    limit=config.limit,
                    remaining=0,
                    reset_at=state.reset_at,
                    retry_after_seconds=max(0, int(math.ceil(state.reset_at - now))),
                )

            state.count += 1
            return RateLimitDecision(
                allowed=True,
                limit=config.limit,
                remaining=config.limit - state.count,
                reset_at=state.reset_at,
            )

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._state_by_key.pop(identifier, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    def sweep(self) -> int:
        """Remove expired windows; returns how many were removed."""

        with self._lock:
            keys = list(self._state_by_key)

        removed = 0
        for key in keys:
            # Short critical section per key; check() interleaves freely.
            with self._lock:
                state = self._state_by_key.get(key)
                if state is not None and self._clock() > state.reset_at:
                    del self._state_by_key[key]
                    removed += 1

        if removed:
            logger.debug("rate_limit.sweep", extra={"removed": removed, "remaining_keys": len(self)})
        return removed

    def start(self) -> None:
        """Start the background sweep thread (idempotent)."""

        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_event.clear()
        # Daemon so a pending sweep never keeps the process alive.
        self._sweeper = threading.Thread(
            target=self._run_sweeper,
            name="rate-limit-sweeper",
            daemon=True,
        )
        self._sweeper.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _run_sweeper(self) -> None:
        while not self._stop_event.wait(self._sweep_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("rate_limit.sweep_failed")
