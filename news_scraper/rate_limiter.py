from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

# Upper bound on how long a waiter sleeps before re-checking cancellation.
_POLL_SECS = 0.05


class RateLimiter:
    """Thread-safe token-bucket rate limiter based on requests per second (QPS).

    The bucket holds at most ``qps`` tokens and starts full. A background
    thread adds one token every ``1 / qps`` seconds; a refill into a full
    bucket is dropped, so idle time never builds up more than one burst.
    Calling acquire() blocks the current thread until a token is available
    or the run is cancelled.
    """

    def __init__(self, qps: float) -> None:
        self._interval = 1.0 / qps if qps > 0 else 0.0
        self._capacity = max(1, int(qps)) if qps > 0 else 0
        self._tokens = self._capacity
        self._cv = threading.Condition(threading.Lock())
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        if self._interval > 0:
            self._thread = threading.Thread(target=self._refill, name="rate-limiter-refill", daemon=True)
            self._thread.start()

    def acquire(self, cancel: Optional[CancellationToken] = None) -> None:
        """Block until a token is available, then consume it.

        Raises ScrapeCancelled without consuming a token if ``cancel`` fires
        first.
        """
        if cancel is not None:
            cancel.raise_if_cancelled()
        if self._interval <= 0:
            return
        with self._cv:
            while True:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                if self._tokens > 0:
                    self._tokens -= 1
                    return
                self._cv.wait(timeout=_POLL_SECS)

    def close(self) -> None:
        """Stop the refill thread. Tokens left in the bucket can still be taken."""
        self._stopped.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None

    def __enter__(self) -> "RateLimiter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def capacity(self) -> int:
        return self._capacity

    def _refill(self) -> None:
        # Ticks follow a fixed schedule so oversleeping one tick does not
        # lower the sustained rate; a late tick fires immediately instead.
        next_tick = time.monotonic() + self._interval
        while not self._stopped.wait(max(0.0, next_tick - time.monotonic())):
            with self._cv:
                if self._tokens < self._capacity:
                    self._tokens += 1
                    self._cv.notify()
            next_tick += self._interval
        logger.debug("rate limiter refill stopped")
