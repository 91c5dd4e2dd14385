"""Shared pytest fixtures for the buildmeta test suite."""

from unittest.mock import patch

import pytest

from buildmeta.git_metadata import (
    BRANCH_ARGS,
    COMMIT_ID_ARGS,
    REMOTE_URL_ARGS,
    SHORT_COMMIT_ID_ARGS,
    STATUS_ARGS,
    VERSION_ARGS,
)


class FakeGitProbe:
    """Stands in for GitProbe: answers from a dict keyed by argument tuple."""

    def __init__(self, outputs=None, installed=True):
        self.outputs = dict(outputs or {})
        self.installed = installed
        self.calls = []

    def succeeds(self, *args):
        self.calls.append(args)
        if args == VERSION_ARGS:
            return self.installed
        return args in self.outputs

    def output(self, *args):
        self.calls.append(args)
        return self.outputs.get(args, "")

    def is_installed(self):
        return self.succeeds(*VERSION_ARGS)


def git_outputs(
    remote="git@github.com:org/repo.git",
    commit="abc123def4567890abc123def4567890abc12345",
    short="abc123de",
    branch="main",
    status="",
):
    """Canned git answers for a clean checkout."""
    return {
        REMOTE_URL_ARGS: remote,
        COMMIT_ID_ARGS: commit,
        SHORT_COMMIT_ID_ARGS: short,
        BRANCH_ARGS: branch,
        STATUS_ARGS: status,
    }


@pytest.fixture
def fake_git():
    """A FakeGitProbe for a clean GitHub checkout on ``main``."""
    return FakeGitProbe(git_outputs())


@pytest.fixture
def no_git():
    """A FakeGitProbe simulating a machine without git."""
    return FakeGitProbe(installed=False)


@pytest.fixture
def default_config():
    """Ignore any config/buildmeta.yaml on disk and use built-in defaults."""
    from buildmeta.config import load_config

    with patch("buildmeta.config._find_config_path", return_value=None):
        load_config.cache_clear()
        yield
        load_config.cache_clear()
