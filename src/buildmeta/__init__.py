"""Build scan enrichment with CI, git and environment metadata."""

__version__ = "0.1.0"

from .ci_platforms import CiClassification, CiPlatform, classify, extract_ci_metadata
from .enhancements import BuildScanEnhancements
from .environment import Environment
from .git_metadata import GitProbe, GitSnapshot, capture_git_snapshot, source_link
from .record import BuildScan, BuildScanRecord
from .tasks import BackgroundTasks

__all__ = [
    "BackgroundTasks",
    "BuildScan",
    "BuildScanEnhancements",
    "BuildScanRecord",
    "CiClassification",
    "CiPlatform",
    "Environment",
    "GitProbe",
    "GitSnapshot",
    "capture_git_snapshot",
    "classify",
    "extract_ci_metadata",
    "source_link",
]
