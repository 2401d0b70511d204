from __future__ import annotations

import asyncio
import time


class RateLimiter:
    """Enforces a minimum interval between consecutive requests.

    The last-request stamp is shared by every caller of one limiter, so
    concurrent callers are serialised by the lock and spaced out one after
    another rather than all waking up at once.
    """

    def __init__(self, min_interval_ms: int = 1000) -> None:
        self._min_interval_ms = max(0, min_interval_ms)
        self._last_request = 0.0
        self._lock = asyncio.Lock()

    @property
    def min_interval_ms(self) -> int:
        return self._min_interval_ms

    @min_interval_ms.setter
    def min_interval_ms(self, value: int) -> None:
        self._min_interval_ms = max(0, int(value))

    @property
    def last_request(self) -> float:
        return self._last_request

    def remaining_s(self, now: float | None = None) -> float:
        now = time.monotonic() if now is None else now
        if self._last_request == 0.0:
            return 0.0
        elapsed = now - self._last_request
        return max(0.0, self._min_interval_ms / 1000 - elapsed)

    async def acquire(self) -> float:
        async with self._lock:
            wait_s = self.remaining_s()
            if wait_s > 0:
                await asyncio.sleep(wait_s)
            self._last_request = time.monotonic()
            return wait_s
