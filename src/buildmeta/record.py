"""The telemetry record a build's metadata is written into.

``BuildScan`` is the interface the enhancements rely on.  ``BuildScanRecord``
is the in-process implementation used by the Robot Framework listener: it
collects tags, custom values and links for a single run and runs the
callbacks registered for the end of the build.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

_log = logging.getLogger(__name__)


class BuildScan(Protocol):
    def tag(self, name: str) -> None: ...

    def set_value(self, name: str, value: str) -> None: ...

    def add_link(self, label: str, url: str) -> None: ...

    def run_at_build_finish(self, callback: Callable[["BuildScan"], None]) -> None: ...

    def server_address(self) -> Optional[str]: ...


class BuildScanRecord:
    """Thread-safe in-memory build scan.

    Tags keep first-seen order and are stored once.  A value written twice
    under the same name keeps the last write.  Links keep insertion order.
    """

    def __init__(self, server: Optional[str] = None):
        self._server = server or None
        self._lock = threading.Lock()
        self._tags: List[str] = []
        self._values: Dict[str, str] = {}
        self._links: List[Tuple[str, str]] = []
        self._finish_callbacks: List[Callable[[BuildScan], None]] = []
        self._finished = False

    # -- BuildScan -----------------------------------------------------------

    def tag(self, name: str) -> None:
        with self._lock:
            if name not in self._tags:
                self._tags.append(name)

    def set_value(self, name: str, value: str) -> None:
        with self._lock:
            self._values[name] = value

    def add_link(self, label: str, url: str) -> None:
        with self._lock:
            self._links.append((label, url))

    def run_at_build_finish(self, callback: Callable[[BuildScan], None]) -> None:
        with self._lock:
            if self._finished:
                _log.debug("Build already finished, dropping callback %r", callback)
                return
            self._finish_callbacks.append(callback)

    def server_address(self) -> Optional[str]:
        return self._server

    # -- Lifecycle -----------------------------------------------------------

    @property
    def finished(self) -> bool:
        return self._finished

    def finish(self) -> None:
        """Run every build-finish callback once, in registration order.

        Callbacks registered while finishing are run as well.  A failing
        callback is logged and the rest still run.
        """
        if self._finished:
            return
        index = 0
        while True:
            with self._lock:
                if index >= len(self._finish_callbacks):
                    self._finished = True
                    return
                callback = self._finish_callbacks[index]
            index += 1
            try:
                callback(self)
            except Exception:
                _log.warning("Build finish callback %r failed", callback, exc_info=True)

    # -- Accessors -----------------------------------------------------------

    @property
    def tags(self) -> List[str]:
        with self._lock:
            return list(self._tags)

    @property
    def values(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._values)

    @property
    def links(self) -> List[Tuple[str, str]]:
        with self._lock:
            return list(self._links)

    def links_by_label(self) -> Dict[str, str]:
        return dict(self.links)

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serialisable snapshot of the record."""
        with self._lock:
            return {
                "tags": list(self._tags),
                "values": dict(self._values),
                "links": [{"label": label, "url": url} for label, url in self._links],
                "server": self._server,
            }
