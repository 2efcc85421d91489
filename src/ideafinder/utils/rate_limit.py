"""Pacing for OpenAI calls so a run stays under the configured requests per minute."""

from __future__ import annotations

import contextlib
import threading
import time
from typing import Callable, Dict, Iterator, Optional


class RateLimiter:
    """Spaces calls evenly across a minute. A limit of ``0`` disables pacing.

    The limiter also counts granted calls and the time spent waiting, which the
    run summary reports next to the cache statistics.
    """

    def __init__(
        self,
        rate_limit: int,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._rate_limit = max(rate_limit, 0)
        self._interval = 60.0 / self._rate_limit if self._rate_limit else 0.0
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self._lock = threading.Lock()
        self._next_slot = self._clock()
        self._calls = 0
        self._waited = 0.0

    @property
    def interval(self) -> float:
        return self._interval

    def acquire(self) -> float:
        """Block until the next slot opens and return the seconds waited."""

        with self._lock:
            self._calls += 1
            if self._interval <= 0:
                return 0.0
            now = self._clock()
            delay = max(0.0, self._next_slot - now)
            self._next_slot = max(self._next_slot, now) + self._interval
            self._waited += delay
        if delay:
            self._sleep(delay)
        return delay

    @contextlib.contextmanager
    def slot(self) -> Iterator[None]:
        self.acquire()
        yield

    def stats(self) -> Dict[str, float]:
        with self._lock:
            return {
                "requests_per_minute": self._rate_limit,
                "calls": self._calls,
                "seconds_waited": round(self._waited, 3),
            }
