"""Read-only view of the build's environment.

Wraps the three places build metadata can come from: process environment
variables, system properties (``-Dkey=value`` style settings) and project
properties.  TeamCity exposes its build parameters to non-JVM steps through
a properties file named by ``TEAMCITY_BUILD_PROPERTIES_FILE``, which is read
lazily as the last project-property source.
"""

from __future__ import annotations

import logging
import os
import platform
import re
from typing import Mapping, Optional

from dotenv import dotenv_values

_log = logging.getLogger(__name__)

TEAMCITY_PROPERTIES_ENV = "TEAMCITY_BUILD_PROPERTIES_FILE"

# Java properties escape ':' '=' and '\' with a backslash.
_PROPERTIES_ESCAPE = re.compile(r"\\([:=\\ #!])")


def default_system_properties() -> dict[str, str]:
    """Return the properties every build gets for free."""
    return {"os.name": platform.system()}


def read_properties_file(path: str) -> dict[str, str]:
    """Parse a Java-style ``key=value`` properties file.

    Returns an empty dict when the file is missing or unreadable.
    """
    try:
        raw = dotenv_values(path, interpolate=False)
    except (OSError, UnicodeDecodeError) as exc:
        _log.debug("Cannot read properties file %s: %s", path, exc)
        return {}
    return {
        key: _PROPERTIES_ESCAPE.sub(r"\1", value)
        for key, value in raw.items()
        if value is not None
    }


class Environment:
    """Presence-or-absent lookups over env vars and properties."""

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        properties: Optional[Mapping[str, str]] = None,
        project_properties: Optional[Mapping[str, str]] = None,
    ):
        self._env = os.environ if env is None else env
        self._properties = (
            default_system_properties() if properties is None else dict(properties)
        )
        self._project_properties = dict(project_properties or {})
        self._teamcity_properties: Optional[dict[str, str]] = None

    def env_variable(self, name: str) -> Optional[str]:
        """Return the variable's value, or ``None`` when unset or empty."""
        value = self._env.get(name)
        return value if value else None

    def is_set(self, name: str) -> bool:
        """Return whether the variable is defined at all, even if empty."""
        return name in self._env

    def system_property(self, name: str) -> Optional[str]:
        """Return the property's value; an empty value counts as present."""
        return self._properties.get(name)

    def project_property(self, name: str) -> Optional[str]:
        if name in self._project_properties:
            return self._project_properties[name]
        if name in self._properties:
            return self._properties[name]
        return self._teamcity_build_properties().get(name)

    def read_properties_file(self, path: str) -> dict[str, str]:
        return read_properties_file(path)

    def _teamcity_build_properties(self) -> dict[str, str]:
        if self._teamcity_properties is None:
            path = self.env_variable(TEAMCITY_PROPERTIES_ENV)
            self._teamcity_properties = read_properties_file(path) if path else {}
        return self._teamcity_properties
