"""Adds a standard set of tags, links and custom values to a build scan.

``BuildScanEnhancements.apply()`` runs once per build:

1. operating system tag
2. IDE / command line tag (local builds only)
3. ``CI`` or ``LOCAL`` tag
4. CI server links, build numbers and searchable job/stage values
5. git metadata, collected in the background
6. ``switches.*`` values for build flags such as ``skipTests``

CI detection happens once in the constructor and the same classification is
used by every step, including the background git task.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Iterable, Optional

from .ci_platforms import CiClassification, classify, extract_ci_metadata
from .entries import apply_entries
from .environment import Environment
from .git_metadata import GitProbe, capture_git_snapshot, git_entries
from .record import BuildScan
from .tasks import BackgroundTasks

_log = logging.getLogger(__name__)

DEFAULT_SWITCHES = ("skipITs", "skipTests", "maven.test.skip")


def property_resolves_to_true(value: Optional[str]) -> bool:
    """A flag given without a value (``-DskipTests``) counts as true."""
    return value is not None and (value == "" or value.lower() == "true")


class BuildScanEnhancements:
    def __init__(
        self,
        scan: BuildScan,
        environment: Optional[Environment] = None,
        tasks: Optional[BackgroundTasks] = None,
        git_probe: Optional[GitProbe] = None,
        switches: Iterable[str] = DEFAULT_SWITCHES,
    ):
        self.scan = scan
        self.environment = environment or Environment()
        self.tasks = tasks or BackgroundTasks()
        self.git_probe = git_probe or GitProbe()
        self.switches = tuple(switches)
        self.classification: CiClassification = classify(self.environment)
        self.git_future: Optional[Future] = None

    def apply(self) -> None:
        """Run every capture step; a failing step never stops the others."""
        for step in (
            self.capture_os,
            self.capture_ide,
            self.capture_ci_or_local,
            self.capture_ci_metadata,
            self.capture_git_metadata,
            self.capture_skip_tests_flags,
        ):
            try:
                step()
            except Exception:
                _log.warning("Build scan step %s failed", step.__name__, exc_info=True)

    def capture_os(self) -> None:
        os_name = self.environment.system_property("os.name")
        if os_name:
            self.scan.tag(os_name)

    def capture_ide(self) -> None:
        if self.classification.is_ci:
            return
        idea_version = self.environment.system_property("idea.version")
        eclipse_version = self.environment.system_property("eclipse.buildId")
        if idea_version is not None:
            self.scan.tag("IntelliJ IDEA")
            self.scan.set_value("IntelliJ IDEA version", idea_version)
        elif eclipse_version is not None:
            self.scan.tag("Eclipse")
            self.scan.set_value("Eclipse version", eclipse_version)
        else:
            self.scan.tag("Cmd Line")

    def capture_ci_or_local(self) -> None:
        self.scan.tag("CI" if self.classification.is_ci else "LOCAL")

    def capture_ci_metadata(self) -> None:
        apply_entries(
            self.scan, extract_ci_metadata(self.environment, self.classification)
        )

    def capture_git_metadata(self) -> Future:
        self.git_future = self.tasks.submit("git metadata", self._capture_git_metadata)
        return self.git_future

    def _capture_git_metadata(self) -> None:
        snapshot = capture_git_snapshot(
            self.git_probe, self.environment, self.classification
        )
        if snapshot is None:
            return
        apply_entries(self.scan, git_entries(snapshot))

    def capture_skip_tests_flags(self) -> None:
        for name in self.switches:
            if property_resolves_to_true(self.environment.project_property(name)):
                self.scan.set_value(f"switches.{name}", "On")
