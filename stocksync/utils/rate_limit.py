"""Per-host rate limiting utilities."""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict


class RateLimiter:
    """Minimum spacing between calls to the same host."""

    def __init__(self, *, min_interval: float = 0.5) -> None:
        self.min_interval = min_interval
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._last_request: dict[str, float] = defaultdict(lambda: 0.0)

    async def wait_for_host(self, host: str) -> None:
        if self.min_interval <= 0:
            return
        lock = self._locks[host]
        async with lock:
            elapsed = time.monotonic() - self._last_request[host]
            if elapsed < self.min_interval:
                await asyncio.sleep(self.min_interval - elapsed)
            self._last_request[host] = time.monotonic()
