"""
api/limiter.py -- Per-client request throttling for the /auth routes.

Counting is done by the `limits` package (the engine underneath slowapi):
a MovingWindowRateLimiter over an in-memory MemoryStorage. Request N+1
inside the trailing window is refused, with a retry-after that counts down
to when the oldest counted request leaves the window.

RequestRateLimiter is an ordinary object. create_app() builds one in the
lifespan, stores it on app.state.rate_limiter and resets its storage at
shutdown; there is no module-level instance, so every app (and every test)
gets its own counters.

Refused requests are not recorded: the moving window only stores hits it
accepted, so a client hammering the limit does not push its own retry time
further out.

Accuracy: counts are per process. MemoryStorage is not shared between
workers.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass

from fastapi import HTTPException, Request
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from slowapi.util import get_remote_address


@dataclass(frozen=True)
class RateLimitState:
    allowed: bool
    remaining: int
    retry_after: int = 0


class RequestRateLimiter:
    """Allow max_requests per key within any window_seconds span."""

    def __init__(self, *, max_requests: int, window_seconds: int, namespace: str = "authgate") -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be greater than zero")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be greater than zero")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.item = RateLimitItemPerSecond(max_requests, window_seconds, namespace=namespace)
        self.storage = MemoryStorage()
        self._strategy = MovingWindowRateLimiter(self.storage)

    def hit(self, key: str) -> RateLimitState:
        """Record one request for key and report whether it may proceed."""
        allowed = self._strategy.hit(self.item, key)
        stats = self._strategy.get_window_stats(self.item, key)
        if allowed:
            return RateLimitState(allowed=True, remaining=max(stats.remaining, 0))
        # MemoryStorage timestamps with time.time(); reset_time is on the same clock.
        retry_after = math.ceil(stats.reset_time - time.time())
        return RateLimitState(allowed=False, remaining=0, retry_after=max(retry_after, 1))

    def reset(self) -> None:
        self.storage.reset()


def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency applied to the /auth router.

    Keys on the client address (slowapi's get_remote_address) and raises 429
    with a Retry-After header when the client is over its budget.
    """
    limiter: RequestRateLimiter = request.app.state.rate_limiter
    state = limiter.hit(get_remote_address(request))
    if not state.allowed:
        raise HTTPException(
            status_code=429,
            detail={
                "code": "rate_limited",
                "message": "Too many requests. Please try again later.",
                "retry_after": state.retry_after,
            },
            headers={"Retry-After": str(state.retry_after)},
        )
