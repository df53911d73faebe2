"""
Request Rate Limiting
=====================

Token bucket shared by all enrichment tasks of a pipeline run. The per-task
pacing delay only spaces out one task's own requests; this bucket bounds the
aggregate request rate across tasks.
"""

import asyncio
import time
from typing import Optional


class TokenBucket:
    """Async token bucket.

    ``rate`` tokens are added per second up to ``capacity``. A rate of zero
    disables limiting entirely.
    """

    def __init__(self, rate: float, capacity: Optional[float] = None):
        self.rate = rate
        self.capacity = capacity if capacity is not None else max(1.0, rate)
        self.tokens = self.capacity
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.rate > 0

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> float:
        """Wait until ``tokens`` are available and consume them.

        Callers are served one at a time, so waiting tasks are released in
        arrival order.

        Returns:
            Seconds spent waiting
        """
        if not self.enabled:
            return 0.0

        waited = 0.0
        async with self._lock:
            self._refill()
            if self.tokens < tokens:
                sleep_time = (tokens - self.tokens) / self.rate
                await asyncio.sleep(sleep_time)
                waited = sleep_time
                self._refill()
            self.tokens -= tokens

        return waited
