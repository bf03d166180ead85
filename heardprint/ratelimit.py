"""
Request pacing.

A minimum-interval limiter: each request start waits until at least
`interval` seconds have passed since the previous start. Sequential callers
see the same spacing as a fixed sleep; time already spent waiting on the
network counts toward the interval.
"""

import threading
import time
from typing import Callable

from . import config

DEFAULT_REQUEST_DELAY = config.REQUEST_DELAY


class RequestPacer:
    """Thread-safe spacing of request starts."""

    def __init__(
        self,
        interval: float = DEFAULT_REQUEST_DELAY,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = max(0.0, float(interval))
        self._clock = clock
        self._sleep = sleep
        self._last_start = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Block until the next request may start. Returns seconds slept."""
        with self._lock:
            slept = 0.0
            now = self._clock()
            if self._last_start is not None and self.interval > 0:
                gap = self._last_start + self.interval - now
                if gap > 0:
                    self._sleep(gap)
                    slept = gap
                    now = self._clock()
            self._last_start = now
            return slept

    def reset(self) -> None:
        with self._lock:
            self._last_start = None
