"""Search quota — fixed-window counter checked before any provider is called."""

import asyncio
import time
from collections.abc import Callable

from tripcompare.errors import QuotaExceeded


class SearchQuota:
    def __init__(self, limit: int, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = asyncio.Lock()

    async def check(self, key: str | None) -> None:
        """Count one search for ``key``; raises QuotaExceeded past the limit."""
        if self.limit <= 0:
            return
        key = key or "anonymous"
        async with self._lock:
            now = self._clock()
            self._prune(now)
            started, count = self._windows.get(key, (now, 0))
            if count >= self.limit:
                raise QuotaExceeded(key, self.limit, retry_after=round(self.window - (now - started), 1))
            self._windows[key] = (started, count + 1)

    async def prune(self) -> int:
        """Drop windows that have ended; returns how many were dropped."""
        async with self._lock:
            return self._prune(self._clock())

    @property
    def tracked_keys(self) -> int:
        return len(self._windows)

    def _prune(self, now: float) -> int:
        stale = [k for k, (started, _) in self._windows.items() if now - started >= self.window]
        for k in stale:
            del self._windows[k]
        return len(stale)
