# backend/viewcounter/services/runtime_metrics.py
from __future__ import annotations

import threading
from typing import Iterator

# Every series the service emits. /metrics lists all of them, zero or not,
# so dashboards do not see series appear only after the first failure.
KNOWN_COUNTERS: dict[str, str] = {
    "badge_views": "Badge SVGs served.",
    "counter_increments": "Counters incremented (persisted or not).",
    "store_read_errors": "Counter store reads that failed and were treated as empty.",
    "store_write_errors": "Counter store writes that failed; the value was returned unpersisted.",
    "asset_cache_hits": "Glyph images served from the encoded-asset memo.",
    "asset_cache_misses": "Glyph images loaded and encoded.",
    "asset_load_errors": "Glyph images that could not be read from disk.",
    "asset_transform_fallbacks": "Downscales that failed or grew the image; raw bytes were kept.",
    "rate_limited": "Requests rejected with 429.",
}


class CounterRegistry:
    """Process-local monotonic counters; one lock, no labels."""

    def __init__(self, known: dict[str, str]) -> None:
        self._lock = threading.Lock()
        self._help = dict(known)
        self._values: dict[str, int] = {k: 0 for k in known}

    def inc(self, name: str, n: int = 1) -> None:
        with self._lock:
            self._values[name] = self._values.get(name, 0) + int(n)

    def get(self, name: str) -> int:
        with self._lock:
            return self._values.get(name, 0)

    def help_for(self, name: str) -> str:
        return self._help.get(name, "")

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._values)

    def __iter__(self) -> Iterator[tuple[str, int]]:
        return iter(sorted(self.snapshot().items()))

    def reset(self) -> None:
        with self._lock:
            self._values = {k: 0 for k in self._help}


METRICS = CounterRegistry(KNOWN_COUNTERS)
