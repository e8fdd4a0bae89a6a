# backend/viewcounter/services/rate_limit.py
from __future__ import annotations

import math
import threading
import time
from typing import Callable

from starlette.requests import Request


def client_ip(request: Request) -> str:
    """
    Best-effort client IP detection with proxy headers (left-most X-Forwarded-For).
    """
    fwd = request.headers.get("x-forwarded-for")
    if fwd:
        left = fwd.split(",")[0].strip()
        if left:
            return left
    real = request.headers.get("x-real-ip")
    if real:
        return real.strip()
    host = request.client.host if request.client else ""
    return host or "0.0.0.0"


class FixedWindowLimiter:
    """
    max_requests per key per window_seconds, windows aligned to the first hit.
    Process-local; multi-replica deployments get per-replica limits.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = int(max_requests)
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[float, int]] = {}

    def hit(self, key: str) -> tuple[bool, int]:
        """Returns (allowed, retry_after_seconds)."""
        now = self._clock()
        with self._lock:
            start, count = self._windows.get(key, (now, 0))
            if now - start >= self.window_seconds:
                start, count = now, 0

            if count >= self.max_requests:
                retry = max(1, math.ceil(self.window_seconds - (now - start)))
                return False, retry

            self._windows[key] = (start, count + 1)
            if len(self._windows) > 10_000:
                self._prune(now)
            return True, 0

    def _prune(self, now: float) -> None:
        stale = [k for k, (s, _c) in self._windows.items() if now - s >= self.window_seconds]
        for k in stale:
            self._windows.pop(k, None)
