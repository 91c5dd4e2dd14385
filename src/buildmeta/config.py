"""Loader for config/buildmeta.yaml.

The file is optional: without it the built-in defaults apply.  Environment
variables override YAML values when set and non-empty.
"""

from __future__ import annotations

import copy
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml

_log = logging.getLogger(__name__)

CONFIG_ENV = "BUILDMETA_CONFIG"

DEFAULTS: dict[str, Any] = {
    "server": "",
    "git": {
        "executable": "git",
        "timeout_seconds": 10,
    },
    "background_timeout_seconds": 30,
    "switches": ["skipITs", "skipTests", "maven.test.skip"],
    "properties": {},
    "output_file": "build_scan.json",
}


def _find_config_path() -> Optional[Path]:
    """Locate buildmeta.yaml: $BUILDMETA_CONFIG, package root, then cwd."""
    explicit = os.environ.get(CONFIG_ENV, "")
    if explicit:
        return Path(explicit)

    # src/buildmeta/config.py -> ../../config/buildmeta.yaml
    pkg_root = Path(__file__).resolve().parent.parent.parent
    candidate = pkg_root / "config" / "buildmeta.yaml"
    if candidate.exists():
        return candidate

    cwd_candidate = Path.cwd() / "config" / "buildmeta.yaml"
    if cwd_candidate.exists():
        return cwd_candidate

    return None


# Env-var → YAML path overrides.  When the env var is set and non-empty,
# its value replaces the corresponding YAML key.
_ENV_OVERRIDES: list[tuple[str, list[str]]] = [
    ("BUILDMETA_SERVER", ["server"]),
    ("BUILDMETA_GIT", ["git", "executable"]),
    ("BUILDMETA_OUTPUT_FILE", ["output_file"]),
]


def _apply_env_overrides(cfg: dict[str, Any]) -> dict[str, Any]:
    """Overlay environment variables onto the loaded YAML config."""
    for env_key, yaml_path in _ENV_OVERRIDES:
        value = os.environ.get(env_key, "")
        if not value:
            continue
        section = cfg
        for key in yaml_path[:-1]:
            section = section.setdefault(key, {})
        section[yaml_path[-1]] = value
    return cfg


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def read_config(path: Optional[Path]) -> dict[str, Any]:
    """Read *path* on top of the defaults.  Unreadable files are ignored."""
    if path is None:
        return copy.deepcopy(DEFAULTS)
    try:
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        _log.warning("Ignoring config file %s: %s", path, exc)
        return copy.deepcopy(DEFAULTS)
    if not isinstance(loaded, dict):
        _log.warning("Ignoring config file %s: expected a mapping", path)
        return copy.deepcopy(DEFAULTS)
    return _merge(DEFAULTS, loaded)


@lru_cache(maxsize=1)
def load_config() -> dict[str, Any]:
    """Load and cache the configuration.

    Environment variables listed in ``_ENV_OVERRIDES`` take precedence
    over values defined in the YAML file.
    """
    return _apply_env_overrides(read_config(_find_config_path()))


# -- Convenience accessors ---------------------------------------------------


def server_address() -> Optional[str]:
    """Return the build scan server, or ``None`` when not configured."""
    return load_config().get("server") or None


def git_executable() -> str:
    return load_config().get("git", {}).get("executable", "git")


def git_timeout() -> float:
    return float(load_config().get("git", {}).get("timeout_seconds", 10))


def background_timeout() -> float:
    return float(load_config().get("background_timeout_seconds", 30))


def switch_properties() -> list[str]:
    """Return the property names reported as ``switches.<name>``."""
    return list(load_config().get("switches", []))


def extra_properties() -> dict[str, str]:
    """Return configured system properties with values stringified."""
    props = load_config().get("properties") or {}
    return {str(k): "" if v is None else str(v) for k, v in props.items()}


def output_file() -> str:
    return load_config().get("output_file", "build_scan.json")
