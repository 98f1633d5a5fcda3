from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Callable, Dict

from edutrack.errors import RateLimitError
from edutrack.utils.time_utils import now_s


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    Fixed-window, in-memory request limiter.

    Each identifier (client IP) gets max_requests per window_seconds; the
    window starts with the first request and resets once it has elapsed.
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_seconds: int = 60,
        clock: Callable[[], float] = now_s,
    ):
        self._windows: Dict[str, _Window] = {}
        self._max = max_requests
        self._window = window_seconds
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def max_requests(self) -> int:
        return self._max

    def hit(self, identifier: str) -> int:
        """
        Count one request. Returns the requests remaining in the window;
        raises RateLimitError once the limit is exceeded.
        """
        now = self._clock()
        with self._lock:
            w = self._windows.get(identifier)
            if w is None or w.reset_at <= now:
                w = _Window(count=0, reset_at=now + self._window)
                self._windows[identifier] = w
            w.count += 1
            count, reset_at = w.count, w.reset_at

        if count > self._max:
            raise RateLimitError(
                max(1, math.ceil(reset_at - now)), limit=self._max, reset_at=int(reset_at)
            )
        return self._max - count

    def prune(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [k for k, w in self._windows.items() if w.reset_at <= now]
            for k in stale:
                del self._windows[k]
        return len(stale)

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._windows.pop(identifier, None)


def client_identifier(headers, peer: str | None) -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return peer or "unknown"
