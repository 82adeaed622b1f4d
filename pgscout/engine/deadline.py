"""
Deadline - caller-supplied scrape budget and cancellation signal.
"""

import threading
import time
from typing import Optional

from ..model.errors import ScrapeCancelled


class Deadline:
    """
    Scrape deadline with optional cancellation event.

    Usage:
        deadline = Deadline(timeout=10.0)
        deadline.check()          # raises ScrapeCancelled once expired
        deadline.remaining()      # seconds left, None when unbounded
    """

    def __init__(self, timeout: Optional[float] = None, cancel_event: Optional[threading.Event] = None):
        self._expires_at = time.monotonic() + timeout if timeout is not None else None
        self._cancel_event = cancel_event

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls()

    def remaining(self) -> Optional[float]:
        """Seconds left, or None if there is no time limit."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def expired(self) -> bool:
        if self.cancelled():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self):
        """Raise ScrapeCancelled if the deadline passed or cancel was requested."""
        if self.cancelled():
            raise ScrapeCancelled("scrape cancelled by caller")
        if self.expired():
            raise ScrapeCancelled("scrape deadline exceeded")
