import threading
import time
from typing import Optional

from bmc_exporter.services.errors import ScrapeCancelledError


class ScrapeContext:
    """
    Cancellation and deadline carried through one scrape.

    Sleeps wake early on cancel, and request timeouts are capped by the time
    left before the deadline.
    """

    def __init__(self, timeout: Optional[float] = None, trace_id: str = "-"):
        self.trace_id = trace_id
        self.deadline: Optional[float] = time.monotonic() + timeout if timeout else None
        self._cancelled = threading.Event()

    def cancel(self):
        self._cancelled.set()

    def clear_deadline(self):
        """Drop the deadline. Only an explicit cancel stops the scrape afterwards."""
        self.deadline = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def check(self):
        """Raise ScrapeCancelledError if the scrape was cancelled or ran out of time."""
        if self.cancelled:
            raise ScrapeCancelledError("scrape cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise ScrapeCancelledError("scrape deadline exceeded")

    def sleep(self, seconds: float):
        if seconds > 0:
            remaining = self.remaining()
            if remaining is not None:
                seconds = min(seconds, remaining)
            self._cancelled.wait(seconds)
        self.check()

    def timeout_for(self, timeout: float) -> float:
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)
