"""Background work attached to a build's lifetime.

Slow metadata collection (anything that shells out) is submitted here so it
does not hold up the build.  Each task runs exactly once; there is no
cancellation.  ``wait()`` is the completion signal the build end uses: it
blocks up to a timeout and reports whether everything finished, anything
still running at that point is best effort.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, List, Optional

_log = logging.getLogger(__name__)


class BackgroundTasks:
    """Run named tasks on a small worker pool."""

    def __init__(self, max_workers: int = 1):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="buildmeta"
        )
        self._futures: List[Future] = []
        self._lock = threading.Lock()

    def submit(self, name: str, task: Callable[[], None]) -> Future:
        future = self._executor.submit(task)
        future.add_done_callback(lambda f: self._report(name, f))
        with self._lock:
            self._futures.append(future)
        _log.debug("Scheduled background task %s", name)
        return future

    @staticmethod
    def _report(name: str, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            _log.warning("Background task %s failed", name, exc_info=exc)

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for f in self._futures if not f.done())

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted task is done or *timeout* expires.

        Returns ``True`` when all tasks completed in time.
        """
        with self._lock:
            futures = list(self._futures)
        if not futures:
            return True
        _done, not_done = wait(futures, timeout=timeout)
        if not_done:
            _log.warning(
                "%d background task(s) still running after %ss", len(not_done), timeout
            )
        return not not_done

    def shutdown(self) -> None:
        """Stop accepting work; running tasks are left to finish on their own."""
        self._executor.shutdown(wait=False)
