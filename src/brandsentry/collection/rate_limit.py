"""Per-source request pacing for collection adapters."""

from __future__ import annotations

import threading
import time
from typing import Callable

from brandsentry.scope import RateLimit


class RateLimiter:
    """Bound concurrent calls and enforce a minimum interval between call starts.

    Use as a context manager around each upstream request.
    """

    def __init__(
        self,
        limit: RateLimit,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = limit.min_interval_ms / 1000.0
        self._slots = threading.BoundedSemaphore(limit.max_concurrency)
        self._lock = threading.Lock()
        self._clock = clock
        self._sleep = sleep
        self._next_start: float | None = None

    def _wait_turn(self) -> None:
        with self._lock:
            now = self._clock()
            start = now if self._next_start is None else max(now, self._next_start)
            self._next_start = start + self.min_interval
        delay = start - now
        if delay > 0:
            self._sleep(delay)

    def __enter__(self) -> "RateLimiter":
        self._slots.acquire()
        try:
            self._wait_turn()
        except BaseException:
            self._slots.release()
            raise
        return self

    def __exit__(self, *exc_info) -> None:
        self._slots.release()


__all__ = ["RateLimiter"]
