"""Git metadata for the build scan.

Runs a fixed set of ``git`` commands in the working directory, keeps their
trimmed output and turns it into build scan entries.  Every command is
independent: a failing command (non-zero exit, missing binary, timeout)
only drops the field it was meant to provide.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence
from urllib.parse import urlsplit

from .ci_platforms import CiClassification, ci_branch_name
from .entries import MetadataEntry
from .environment import Environment

_log = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT = 10  # seconds

VERSION_ARGS = ("--version",)
REMOTE_URL_ARGS = ("config", "--get", "remote.origin.url")
COMMIT_ID_ARGS = ("rev-parse", "--verify", "HEAD")
SHORT_COMMIT_ID_ARGS = ("rev-parse", "--short=8", "--verify", "HEAD")
BRANCH_ARGS = ("rev-parse", "--abbrev-ref", "HEAD")
STATUS_ARGS = ("status", "--porcelain")

REDACTED_USER_INFO = "******"


class GitProbe:
    """Invoke the git binary and capture its standard output."""

    def __init__(
        self,
        executable: str = "git",
        cwd: Optional[str] = None,
        timeout: float = DEFAULT_GIT_TIMEOUT,
    ):
        self.executable = executable
        self.cwd = cwd
        self.timeout = timeout

    def _run(self, args: Sequence[str]) -> Optional[subprocess.CompletedProcess]:
        try:
            return subprocess.run(
                [self.executable, *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            _log.debug("git %s failed to run: %s", " ".join(args), exc)
            return None

    def succeeds(self, *args: str) -> bool:
        result = self._run(args)
        return result is not None and result.returncode == 0

    def output(self, *args: str) -> str:
        """Return trimmed stdout, or ``""`` when the command fails."""
        result = self._run(args)
        if result is None:
            return ""
        if result.returncode != 0:
            _log.debug(
                "git %s exited with %d: %s",
                " ".join(args),
                result.returncode,
                result.stderr.strip(),
            )
            return ""
        return result.stdout.strip()

    def is_installed(self) -> bool:
        return self.succeeds(*VERSION_ARGS)


@dataclass(frozen=True)
class GitSnapshot:
    """What git reported for the working directory.  Empty means unknown."""

    repository: str = ""
    commit_id: str = ""
    commit_short_id: str = ""
    branch: str = ""
    status: str = ""

    @property
    def is_dirty(self) -> bool:
        return bool(self.status)


def capture_git_snapshot(
    probe: GitProbe,
    environment: Environment,
    classification: CiClassification,
) -> Optional[GitSnapshot]:
    """Query git once per field.

    Returns ``None`` when git is not installed.  A branch name published by
    the CI server wins over the one git reports.
    """
    if not probe.is_installed():
        _log.debug("git is not installed, skipping git metadata")
        return None
    repository = probe.output(*REMOTE_URL_ARGS)
    commit_id = probe.output(*COMMIT_ID_ARGS)
    commit_short_id = probe.output(*SHORT_COMMIT_ID_ARGS)
    branch = ci_branch_name(environment, classification)
    if branch is None:
        branch = probe.output(*BRANCH_ARGS)
    status = probe.output(*STATUS_ARGS)
    return GitSnapshot(
        repository=repository,
        commit_id=commit_id,
        commit_short_id=commit_short_id,
        branch=branch,
        status=status,
    )


def redact_user_info(url: str) -> str:
    """Mask credentials embedded in an http(s) remote URL."""
    if not url.startswith("http"):
        return url
    try:
        netloc = urlsplit(url).netloc
    except ValueError:
        return url
    user_info, sep, _host = netloc.rpartition("@")
    if not sep:
        return url
    return url.replace(user_info + "@", REDACTED_USER_INFO + "@", 1)


# host marker, link label, link template
_SOURCE_HOSTS = (
    ("github.com", "Github source", "https://github.com/{path}/tree/{commit}"),
    ("gitlab.com", "GitLab Source", "https://gitlab.com/{path}/-/commit/{commit}"),
)


def source_link(repository: str, commit_id: str) -> Optional[MetadataEntry]:
    """Link to the commit on GitHub or GitLab, or ``None`` for other hosts."""
    if not (repository and commit_id):
        return None
    for host, label, template in _SOURCE_HOSTS:
        if f"{host}/" not in repository and f"{host}:" not in repository:
            continue
        match = re.fullmatch(r"(.*)" + re.escape(host) + r"[/|:](.*)", repository)
        if not match:
            return None
        path = match.group(2)
        if path.endswith(".git"):
            path = path[: -len(".git")]
        return MetadataEntry.link(label, template.format(path=path, commit=commit_id))
    return None


def git_entries(snapshot: GitSnapshot) -> list[MetadataEntry]:
    """Turn a snapshot into build scan entries, skipping empty fields."""
    entries: list[MetadataEntry] = []
    if snapshot.repository:
        entries.append(
            MetadataEntry.value_of("Git repository", redact_user_info(snapshot.repository))
        )
    if snapshot.commit_id:
        entries.append(MetadataEntry.value_of("Git commit id", snapshot.commit_id))
    if snapshot.commit_short_id:
        entries.append(
            MetadataEntry.searchable(
                "Git commit id short", snapshot.commit_short_id, label="Git commit id"
            )
        )
    if snapshot.branch:
        entries.append(MetadataEntry.tag(snapshot.branch))
        entries.append(MetadataEntry.value_of("Git branch", snapshot.branch))
    if snapshot.is_dirty:
        entries.append(MetadataEntry.tag("Dirty"))
        entries.append(MetadataEntry.value_of("Git status", snapshot.status))
    link = source_link(snapshot.repository, snapshot.commit_id)
    if link is not None:
        entries.append(link)
    return entries
