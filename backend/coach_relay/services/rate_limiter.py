"""
Sliding window rate limiter for token requests.

Each consumer may mint at most ``limit`` tokens within any ``window_seconds``
span. Rejected requests are not counted against the window.
"""

from __future__ import annotations

import math
import time
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Optional


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    remaining: int
    reset_time: float
    retry_after: Optional[int] = None


class RateLimiter:
    """
    Sliding window rate limiter keyed by consumer id.

    Timestamps come from ``clock`` (monotonic by default) so wall-clock jumps
    cannot reopen or extend a window.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: dict[str, deque[float]] = {}
        self._lock = Lock()

    def check(self, consumer_id: str) -> RateLimitResult:
        """
        Record a request from ``consumer_id`` if it fits in the window.

        Args:
            consumer_id: Opaque client identifier (header value or IP).

        Returns:
            RateLimitResult with allowed status and metadata.
        """
        now = self._clock()
        window_start = now - self.window_seconds

        with self._lock:
            timestamps = self._requests.setdefault(consumer_id, deque())
            while timestamps and timestamps[0] <= window_start:
                timestamps.popleft()

            if len(timestamps) >= self.limit:
                # Oldest request leaving the window frees the next slot
                reset_time = timestamps[0] + self.window_seconds
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_time=reset_time,
                    retry_after=max(1, math.ceil(reset_time - now)),
                )

            timestamps.append(now)
            return RateLimitResult(
                allowed=True,
                remaining=self.limit - len(timestamps),
                reset_time=timestamps[0] + self.window_seconds,
            )

    def prune(self) -> int:
        """Forget consumers with no requests left in the window."""
        window_start = self._clock() - self.window_seconds
        with self._lock:
            idle = [
                key for key, stamps in self._requests.items()
                if not stamps or stamps[-1] <= window_start
            ]
            for key in idle:
                del self._requests[key]
        return len(idle)

    def reset(self, consumer_id: str) -> None:
        with self._lock:
            self._requests.pop(consumer_id, None)
