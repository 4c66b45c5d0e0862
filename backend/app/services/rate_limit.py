"""
In-memory fixed-window rate limiting for the interactive code runner.
Counts are per process.
"""

import math
import time
from typing import Callable, Dict, Optional, Tuple

from app.config import RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW


class FixedWindowRateLimiter:
    def __init__(self, limit: int = RATE_LIMIT_REQUESTS, window: float = RATE_LIMIT_WINDOW,
                 clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}  # key -> (count, reset_at)
        self._next_prune = 0.0

    def check(self, key: str) -> Tuple[bool, Optional[int]]:
        """Register one request for `key`. Returns (allowed, seconds_to_wait)."""
        now = self._clock()
        if now >= self._next_prune:
            self._prune(now)

        count, reset_at = self._windows.get(key, (0, 0.0))

        if now >= reset_at:
            self._windows[key] = (1, now + self.window)
            return True, None

        if count >= self.limit:
            return False, max(1, math.ceil(reset_at - now))

        self._windows[key] = (count + 1, reset_at)
        return True, None

    def _prune(self, now: float):
        """Drop callers whose window has already ended."""
        self._windows = {k: v for k, v in self._windows.items() if v[1] > now}
        self._next_prune = now + self.window
