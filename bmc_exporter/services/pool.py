"""
Task Pool - bounded concurrent execution of per-device fetch tasks.

BMCs allow only a handful of sessions, so a device pool usually runs with a
single worker. Results are always consumed in submission order.
"""

from concurrent.futures import ThreadPoolExecutor
from enum import Enum, IntEnum
from typing import Callable, Iterator, List, Optional, Sequence
import contextvars
import logging

logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ScrapeStatus(IntEnum):
    """Value exposed on the `up` gauge."""
    UNHEALTHY = 0
    HEALTHY = 1
    IGNORED = 2


class FetchTask:
    """One endpoint to fetch, tagged with the telemetry category it feeds."""

    def __init__(self, url: str, tag: str, fetch: Callable[[], bytes]):
        self.url = url
        self.tag = tag
        self._fetch = fetch
        self.state = TaskState.PENDING
        self.body: Optional[bytes] = None
        self.error: Optional[Exception] = None

    @property
    def done(self) -> bool:
        return self.state in (TaskState.SUCCEEDED, TaskState.FAILED)

    def run(self):
        if self.state != TaskState.PENDING:
            raise RuntimeError(f"task for {self.url} already {self.state.value}")
        self.state = TaskState.RUNNING
        try:
            self.body = self._fetch()
            self.state = TaskState.SUCCEEDED
        except Exception as e:
            # stored for the orchestrator, which decides how the failure counts
            self.error = e
            self.state = TaskState.FAILED
            logger.debug(f"Task {self.tag} {self.url} failed: {e}")

    def __repr__(self) -> str:
        return f"FetchTask(url={self.url!r}, tag={self.tag!r}, state={self.state.value})"


class TaskPool:
    def __init__(self, tasks: Optional[Sequence[FetchTask]] = None, concurrency: int = 1):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.tasks: List[FetchTask] = list(tasks or [])
        self.concurrency = concurrency

    def add_task(self, task: FetchTask):
        self.tasks.append(task)

    def __len__(self) -> int:
        return len(self.tasks)

    def __iter__(self) -> Iterator[FetchTask]:
        return iter(self.tasks)

    def run(self):
        """Run every task with at most `concurrency` in flight, and wait for all of them."""
        if not self.tasks:
            return
        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="fetch") as executor:
            futures = [executor.submit(contextvars.copy_context().run, task.run) for task in self.tasks]
            for future in futures:
                future.result()


def aggregate_status(outcomes: Sequence[bool]) -> ScrapeStatus:
    """Fold per-task outcomes with logical AND. No outcomes at all means the scrape was skipped."""
    if not outcomes:
        return ScrapeStatus.IGNORED
    return ScrapeStatus.HEALTHY if all(outcomes) else ScrapeStatus.UNHEALTHY
