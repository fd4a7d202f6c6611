"""Unit tests for in-memory rate limiter adapter."""

import threading
from unittest.mock import Mock

import pytest

from authgate.adapters.rate_limit.base import RateLimitConfig
from authgate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

FIVE_PER_MINUTE = RateLimitConfig(limit=5, window_seconds=60)


def test_counts_down_then_blocks_within_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(clock=clock)

    remaining = [limiter.check("login:ip:1.2.3.4", FIVE_PER_MINUTE).remaining for _ in range(5)]
    assert remaining == [4, 3, 2, 1, 0]

    clock.return_value = 1010.0
    blocked = limiter.check("login:ip:1.2.3.4", FIVE_PER_MINUTE)
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.reset_at == 1060.0
    assert blocked.retry_after_seconds == 50


def test_retry_after_rounds_up() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(clock=clock)
    config = RateLimitConfig(limit=1, window_seconds=60)

    limiter.check("k", config)
    clock.return_value = 1000.4
    assert limiter.check("k", config).retry_after_seconds == 60


def test_resets_on_new_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(clock=clock)
    config = RateLimitConfig(limit=1, window_seconds=10)

    assert limiter.check("k", config).allowed is True
    assert limiter.check("k", config).allowed is False

    clock.return_value = 1010.5
    fresh = limiter.check("k", config)
    assert fresh.allowed is True
    assert fresh.remaining == 0
    assert fresh.reset_at == 1020.5


def test_isolated_by_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(clock=clock)
    config = RateLimitConfig(limit=1, window_seconds=60)

    assert limiter.check("k1", config).allowed is True
    assert limiter.check("k1", config).allowed is False

    assert limiter.check("k2", config).allowed is True


def test_blocked_requests_do_not_extend_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(clock=clock)
    config = RateLimitConfig(limit=1, window_seconds=60)

    limiter.check("k", config)
    for offset in (1, 20, 59):
        clock.return_value = 1000.0 + offset
        assert limiter.check("k", config).reset_at == 1060.0


def test_reset_forgets_identifier() -> None:
    limiter = InMemoryFixedWindowRateLimiter(clock=Mock(return_value=1000.0))
    config = RateLimitConfig(limit=1, window_seconds=60)

    limiter.check("k", config)
    limiter.reset("k")

    assert limiter.check("k", config).allowed is True


def test_sweep_removes_only_expired_windows() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(clock=clock)

    limiter.check("old", FIVE_PER_MINUTE)
    clock.return_value = 1030.0
    limiter.check("recent", FIVE_PER_MINUTE)

    clock.return_value = 1061.0
    assert limiter.sweep() == 1
    assert len(limiter) == 1

    # The surviving window still counts from its original start.
    assert limiter.check("recent", FIVE_PER_MINUTE).remaining == 3


def test_concurrent_checks_never_lose_increments() -> None:
    limiter = InMemoryFixedWindowRateLimiter(clock=Mock(return_value=1000.0))
    config = RateLimitConfig(limit=1000, window_seconds=60)
    threads_count, per_thread = 8, 50
    barrier = threading.Barrier(threads_count)

    def worker() -> None:
        barrier.wait()
        for _ in range(per_thread):
            limiter.check("shared", config)

    threads = [threading.Thread(target=worker) for _ in range(threads_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    decision = limiter.check("shared", config)
    assert decision.remaining == 1000 - threads_count * per_thread - 1


def test_start_and_stop_sweeper_thread() -> None:
    limiter = InMemoryFixedWindowRateLimiter(sweep_interval_seconds=0.01)

    limiter.start()
    limiter.start()  # idempotent
    limiter.stop()

    assert limiter._sweeper is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 1, "window_seconds": 0},
    ],
)
def test_invalid_config_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimitConfig(**kwargs)


def test_invalid_check_args() -> None:
    limiter = InMemoryFixedWindowRateLimiter()

    with pytest.raises(ValueError):
        limiter.check("", FIVE_PER_MINUTE)

    with pytest.raises(ValueError):
        InMemoryFixedWindowRateLimiter(sweep_interval_seconds=0)
