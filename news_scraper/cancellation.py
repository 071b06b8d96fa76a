from __future__ import annotations

import threading
from typing import Optional

from .errors import ScrapeCancelled


class CancellationToken:
    """One-shot cancellation signal shared by everything in a single run.

    Only newly entered suspension points observe it; requests already on the
    wire are left to finish or time out.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScrapeCancelled("scrape run was cancelled")
