"""
TTL cache shared by the polled REST services.

Entries are never evicted on read: an expired entry stops being *fresh*
but stays available through ``get_stale`` so callers can fall back to the
last good value when a refresh fails.
"""

import time
from typing import Any, Callable


class TTLCache:
    """Per-key TTL cache with stale fallback.

    Not thread-safe; safe inside a single asyncio event loop.
    """

    def __init__(
        self,
        ttl_seconds: float = 60,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._store: dict[str, tuple[float, Any]] = {}

    def get(self, key: str):
        """Return the value if it is younger than the TTL, else None."""
        entry = self._store.get(key)
        if entry is None:
            return None
        ts, data = entry
        if self._clock() - ts < self._ttl:
            return data
        return None

    def get_stale(self, key: str):
        """Return the last stored value regardless of age."""
        entry = self._store.get(key)
        return entry[1] if entry else None

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (self._clock(), value)
