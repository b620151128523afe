from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import AbandonedError


class Cancellation:
    """Cancellation state shared between a request and the unit it runs.

    The request side calls ``cancel()`` when the client goes away; the unit
    calls ``check()`` at its boundaries, and always right before commit, so a
    cancelled or overdue unit is rolled back instead of landing silently.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def check(self, operation: str) -> None:
        if self.cancelled:
            raise AbandonedError(f"{operation} abandoned: request cancelled")
        if self.expired:
            raise AbandonedError(f"{operation} abandoned: request timed out")
