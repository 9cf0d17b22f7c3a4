# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Rolling-window rate limiting for the chat endpoint.

Requests over the limit are rejected with 429 straight away; nothing is
queued.  Single-process only, like the rest of the in-memory state.
Keys whose window has emptied are swept once per window, so the map only
holds clients seen recently.
"""

import threading
import time
from collections import deque

from fastapi import Request

from core.config import settings
from core.errors import RateLimited
from core.security import get_client_ip


class SlidingWindowRateLimiter:
    def __init__(self, max_requests: int, window_seconds: float) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._lock = threading.Lock()
        self._hits: dict[str, deque] = {}
        self._last_sweep: float | None = None

    def check(self, key: str, now: float | None = None) -> bool:
        """Record a hit for *key*; False when the window is already full."""
        now = time.monotonic() if now is None else now
        cutoff = now - self.window_seconds
        with self._lock:
            self._sweep(now, cutoff)
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            return True

    def _sweep(self, now: float, cutoff: float) -> None:
        if self._last_sweep is not None and now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._last_sweep = None


chat_limiter = SlidingWindowRateLimiter(settings.chat_rate_limit, settings.chat_rate_window_seconds)


def enforce_chat_rate_limit(request: Request) -> None:
    """Dependency: one hit per request, keyed by client IP."""
    if not chat_limiter.check(get_client_ip(request)):
        raise RateLimited()
