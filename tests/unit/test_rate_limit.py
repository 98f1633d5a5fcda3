from __future__ import annotations

import pytest

from edutrack.auth.rate_limit import RateLimiter, client_identifier
from edutrack.errors import RateLimitError


def test_fixed_window_counts_and_resets(clock) -> None:
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
    assert limiter.hit("1.2.3.4") == 1
    assert limiter.hit("1.2.3.4") == 0

    clock.advance(15)
    with pytest.raises(RateLimitError) as ei:
        limiter.hit("1.2.3.4")
    assert ei.value.http_status == 429
    assert ei.value.retry_after == 45
    assert ei.value.limit == 2

    clock.advance(45)
    assert limiter.hit("1.2.3.4") == 1


def test_identifiers_are_independent(clock) -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.hit("a")
    assert limiter.hit("b") == 0
    with pytest.raises(RateLimitError):
        limiter.hit("a")
    limiter.reset("a")
    assert limiter.hit("a") == 0


def test_retry_after_is_at_least_one_second(clock) -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=1, clock=clock)
    limiter.hit("a")
    clock.advance(0.9)
    with pytest.raises(RateLimitError) as ei:
        limiter.hit("a")
    assert ei.value.retry_after == 1


def test_prune_drops_expired_windows(clock) -> None:
    limiter = RateLimiter(max_requests=5, window_seconds=10, clock=clock)
    limiter.hit("a")
    clock.advance(5)
    limiter.hit("b")
    clock.advance(6)
    assert limiter.prune() == 1


@pytest.mark.parametrize(
    "headers, peer, expected",
    [
        ({"x-forwarded-for": "10.0.0.1, 172.16.0.9"}, "127.0.0.1", "10.0.0.1"),
        ({"x-real-ip": " 10.0.0.2 "}, "127.0.0.1", "10.0.0.2"),
        ({}, "127.0.0.1", "127.0.0.1"),
        ({}, None, "unknown"),
    ],
)
def test_client_identifier(headers, peer, expected) -> None:
    assert client_identifier(headers, peer) == expected
