"""
Fixed-window request limiting per client key.
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int | None = None

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class FixedWindowRateLimiter:
    """
    Allows ``limit`` hits per key within a window that opens on the first hit.

    State lives in process memory and is not shared between workers.
    """

    def __init__(
        self,
        limit: int = 30,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window = self._windows.get(key)

        if window is None or now > window[0]:
            reset_at = now + self._window_seconds
            self._windows[key] = (reset_at, 1)
            return RateLimitDecision(
                allowed=True,
                limit=self._limit,
                remaining=max(0, self._limit - 1),
                reset_at=reset_at,
            )

        reset_at, count = window
        if count >= self._limit:
            return RateLimitDecision(
                allowed=False,
                limit=self._limit,
                remaining=0,
                reset_at=reset_at,
                retry_after=max(1, math.ceil(reset_at - now)),
            )

        count += 1
        self._windows[key] = (reset_at, count)
        return RateLimitDecision(
            allowed=True,
            limit=self._limit,
            remaining=max(0, self._limit - count),
            reset_at=reset_at,
        )
