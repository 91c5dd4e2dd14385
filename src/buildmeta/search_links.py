"""Deep links into the build scan server that search by custom values.

A link querying several custom values at once looks like::

    <server>/scans?search.names=name1,name2&search.values=value1,value2#selection.buildScanB=%7BSCAN_ID%7D

The server address is only final once the build has finished, so links are
never composed eagerly: they are registered as build-finish callbacks.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional
from urllib.parse import quote_plus

from .record import BuildScan

_log = logging.getLogger(__name__)

SCAN_ID_PLACEHOLDER = "{SCAN_ID}"


def append_if_missing(text: str, suffix: str) -> str:
    return text if text.endswith(suffix) else text + suffix


def url_encode(value: str) -> str:
    """Form-encode *value* (spaces become ``+``, ``~`` becomes ``%7E``)."""
    return quote_plus(value, safe="*").replace("~", "%7E")


def search_link_label(label: str) -> str:
    return f"{label} build scans"


def search_link_url(server: str, names: str, values: str) -> str:
    """Compose the search URL for pre-joined *names* and *values*."""
    params = f"search.names={url_encode(names)}&search.values={url_encode(values)}"
    return (
        append_if_missing(server, "/")
        + "scans?"
        + params
        + "#selection.buildScanB="
        + url_encode(SCAN_ID_PLACEHOLDER)
    )


def join_search_params(params: Mapping[str, str]) -> Optional[tuple[str, str]]:
    """Join names and values with commas, ordered by name.

    Returns ``None`` for an empty mapping.
    """
    if not params:
        return None
    ordered = sorted(params.items())
    return (
        ",".join(name for name, _ in ordered),
        ",".join(value for _, value in ordered),
    )


def add_search_link(scan: BuildScan, label: str, name: str, value: str) -> None:
    """Add the search link right now, if the server address is known."""
    server = scan.server_address()
    if not server:
        _log.debug("No server address, skipping search link %r", label)
        return
    scan.add_link(search_link_label(label), search_link_url(server, name, value))


def add_search_link_for_values(
    scan: BuildScan, label: str, params: Mapping[str, str]
) -> None:
    """Schedule one search link that matches all *params* jointly."""
    joined = join_search_params(params)
    if joined is None:
        return
    names, values = joined
    scan.run_at_build_finish(lambda s: add_search_link(s, label, names, values))


def add_custom_value_and_search_link(
    scan: BuildScan, name: str, value: str, label: Optional[str] = None
) -> None:
    """Set a custom value now and schedule its search link for build finish."""
    link_label = label or name
    scan.set_value(name, value)
    scan.run_at_build_finish(lambda s: add_search_link(s, link_label, name, value))
