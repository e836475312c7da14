"""
tests/test_limiter.py -- RequestRateLimiter (limits moving window, in memory).

Covers:
  - Up to max_requests per window are allowed; the next is refused
  - Retry-after is positive and never longer than the window
  - Refused requests do not extend the retry time
  - Keys are independent; limiters do not share storage
  - A key is readmitted once its window has passed
  - reset() clears every counter
"""

from __future__ import annotations

import time

import pytest

from api.limiter import RequestRateLimiter


@pytest.fixture()
def limiter() -> RequestRateLimiter:
    return RequestRateLimiter(max_requests=3, window_seconds=60)


def test_allows_up_to_limit(limiter: RequestRateLimiter) -> None:
    states = [limiter.hit("1.2.3.4") for _ in range(3)]
    assert all(s.allowed for s in states)
    assert [s.remaining for s in states] == [2, 1, 0]


def test_refuses_over_limit(limiter: RequestRateLimiter) -> None:
    for _ in range(3):
        limiter.hit("1.2.3.4")
    state = limiter.hit("1.2.3.4")
    assert not state.allowed
    assert state.remaining == 0
    assert 1 <= state.retry_after <= 60


def test_refused_hits_do_not_extend_wait(limiter: RequestRateLimiter) -> None:
    for _ in range(3):
        limiter.hit("k")
    first = limiter.hit("k").retry_after
    for _ in range(5):
        assert not limiter.hit("k").allowed
    assert limiter.hit("k").retry_after <= first


def test_keys_independent(limiter: RequestRateLimiter) -> None:
    for _ in range(3):
        limiter.hit("a")
    assert not limiter.hit("a").allowed
    assert limiter.hit("b").allowed


def test_limiters_do_not_share_counters(limiter: RequestRateLimiter) -> None:
    for _ in range(3):
        limiter.hit("a")
    other = RequestRateLimiter(max_requests=3, window_seconds=60)
    assert other.hit("a").allowed


def test_window_expiry_readmits() -> None:
    short = RequestRateLimiter(max_requests=1, window_seconds=1)
    assert short.hit("k").allowed
    assert not short.hit("k").allowed
    time.sleep(1.1)
    assert short.hit("k").allowed


def test_reset(limiter: RequestRateLimiter) -> None:
    for _ in range(3):
        limiter.hit("k")
    limiter.reset()
    assert limiter.hit("k").allowed


@pytest.mark.parametrize("kwargs", [{"max_requests": 0, "window_seconds": 60}, {"max_requests": 1, "window_seconds": 0}])
def test_rejects_non_positive_config(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RequestRateLimiter(**kwargs)
