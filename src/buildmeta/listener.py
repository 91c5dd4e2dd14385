"""Robot Framework listener that publishes build scan metadata.

The top-level suite start collects OS, IDE, CI and build-flag metadata and
schedules git collection in the background.  The top-level suite end waits
for the background work, finishes the scan (which adds the deferred search
links) and writes the scan to a JSON file.
"""

import argparse
import json
import os
import sys
from typing import Any, Dict, Mapping, Optional

from robot.api import SuiteVisitor, logger  # type: ignore
from robot.running import TestSuite  # type: ignore

from . import config
from .enhancements import BuildScanEnhancements
from .environment import Environment, default_system_properties
from .git_metadata import GitProbe
from .record import BuildScanRecord
from .tasks import BackgroundTasks


def start_build_scan(
    server: Optional[str] = None,
    properties: Optional[Mapping[str, str]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> BuildScanEnhancements:
    """Create a scan, apply the enhancements and return them."""
    system_properties = default_system_properties()
    system_properties.update(config.extra_properties())
    system_properties.update(properties or {})

    record = BuildScanRecord(server=server or config.server_address())
    enhancements = BuildScanEnhancements(
        record,
        environment=Environment(env=env, properties=system_properties),
        tasks=BackgroundTasks(),
        git_probe=GitProbe(config.git_executable(), timeout=config.git_timeout()),
        switches=config.switch_properties(),
    )
    enhancements.apply()
    return enhancements


def finish_build_scan(
    enhancements: BuildScanEnhancements, timeout: Optional[float] = None
) -> BuildScanRecord:
    """Wait for background work, then run the build-finish callbacks."""
    if timeout is None:
        timeout = config.background_timeout()
    enhancements.tasks.wait(timeout)
    enhancements.tasks.shutdown()
    record: BuildScanRecord = enhancements.scan  # type: ignore[assignment]
    record.finish()
    return record


def scan_metadata(record: BuildScanRecord) -> Dict[str, str]:
    """Flatten a scan into suite metadata; links use Robot's ``[label|url]``."""
    metadata = dict(record.values)
    tags = record.tags
    if tags:
        metadata["Build_Scan_Tags"] = ", ".join(tags)
    for label, url in record.links:
        metadata[label] = f"[{label}|{url}]"
    return metadata


class BuildScanListener:
    """Listener that collects build scan metadata and adds it to test results.

    Usage:
        robot --listener buildmeta.listener.BuildScanListener tests/
        robot --listener buildmeta.listener.BuildScanListener:https://scans.example.com tests/
    """

    ROBOT_LISTENER_API_VERSION = 2

    def __init__(self, server: Optional[str] = None):
        """Initialize the listener."""
        self.server = server or None
        self.enhancements: Optional[BuildScanEnhancements] = None
        self.record: Optional[BuildScanRecord] = None
        self._suite_depth: int = 0

    def start_suite(self, name: str, attributes: Dict[str, Any]):
        """Called when a test suite starts.

        Starts the scan at the top-level suite and adds the values
        collected so far to every suite's metadata dict.
        """
        self._suite_depth += 1
        if self._suite_depth == 1:
            self.enhancements = start_build_scan(server=self.server)
            self.record = self.enhancements.scan  # type: ignore[assignment]
            ci = self.enhancements.classification
            if ci.is_ci:
                platforms = ", ".join(p.value for p in ci.platforms) or "generic"
                logger.info(f"Running in CI environment: {platforms}")

        if self.record is not None and "metadata" in attributes:
            attributes["metadata"].update(self.record.values)

    def end_suite(self, name: str, attributes: Dict[str, Any]):
        """Called when a test suite ends.

        The scan is finished and saved only when the top-level suite ends.
        """
        self._suite_depth -= 1
        if self._suite_depth > 0 or self.enhancements is None:
            return

        record = finish_build_scan(self.enhancements)
        metadata = attributes.get("metadata")
        if metadata is not None:
            metadata.update(scan_metadata(record))

        self._save_scan_json(record)
        logger.info(
            f"Build scan for '{name}': {len(record.tags)} tags, "
            f"{len(record.values)} values, {len(record.links)} links"
        )

    def _save_scan_json(self, record: BuildScanRecord):
        """Save the scan to a JSON file for external tools."""
        try:
            output_dir = os.getenv("ROBOT_OUTPUT_DIR", ".")
            scan_file = os.path.join(output_dir, config.output_file())

            with open(scan_file, "w") as f:
                json.dump(record.to_dict(), f, indent=2)

            logger.info(f"Build scan saved to: {scan_file}")

        except Exception as e:
            logger.warn(f"Could not save build scan JSON: {e}")


class BuildScanModifier(SuiteVisitor):
    """Pre-run modifier variant: collects synchronously into suite metadata.

    Usage:
        robot --prerunmodifier buildmeta.listener.BuildScanModifier tests/
    """

    def __init__(self, server: Optional[str] = None):
        self.server = server or None
        self.record: Optional[BuildScanRecord] = None

    def start_suite(self, suite: TestSuite):
        """Modify the top-level suite with build scan metadata."""
        if self.record is None:
            self.record = finish_build_scan(start_build_scan(server=self.server))
            for key, value in scan_metadata(self.record).items():
                suite.metadata[key] = value
            logger.info(f"Added {len(suite.metadata)} build scan items to suite")
        return False


def _parse_property(text: str) -> tuple[str, str]:
    key, _, value = text.partition("=")
    if not key:
        raise argparse.ArgumentTypeError(f"invalid property: {text!r}")
    return key, value


def main(argv=None):
    """Collect build scan metadata for the current directory and print it."""
    parser = argparse.ArgumentParser(
        description="Collect CI, git and environment metadata as a build scan"
    )
    parser.add_argument("--server", help="Build scan server for search links")
    parser.add_argument("--config", help="Path to buildmeta.yaml")
    parser.add_argument(
        "-D",
        dest="properties",
        action="append",
        default=[],
        type=_parse_property,
        metavar="KEY=VALUE",
        help="System property, may be repeated",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for background collection",
    )
    args = parser.parse_args(argv)

    if args.config:
        os.environ[config.CONFIG_ENV] = args.config
        config.load_config.cache_clear()

    enhancements = start_build_scan(
        server=args.server, properties=dict(args.properties)
    )
    record = finish_build_scan(enhancements, timeout=args.timeout)

    print(json.dumps(record.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
