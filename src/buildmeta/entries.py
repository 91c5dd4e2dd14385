"""Metadata entries produced by the extractors and how they land in a scan."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from .record import BuildScan
from .search_links import add_custom_value_and_search_link, add_search_link_for_values


class EntryKind(Enum):
    """Where an entry is written in the build scan."""

    TAG = "tag"
    VALUE = "value"
    LINK = "link"
    # Custom value plus a search link deferred to build finish.
    SEARCHABLE_VALUE = "searchable_value"
    # Deferred search link matching several custom values jointly.
    SEARCH_LINK = "search_link"


@dataclass(frozen=True)
class MetadataEntry:
    kind: EntryKind
    name: str
    value: str = ""
    # Search-link label when it differs from ``name``.
    label: Optional[str] = None
    params: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def tag(cls, name: str) -> "MetadataEntry":
        return cls(EntryKind.TAG, name)

    @classmethod
    def value_of(cls, name: str, value: str) -> "MetadataEntry":
        return cls(EntryKind.VALUE, name, value)

    @classmethod
    def link(cls, label: str, url: str) -> "MetadataEntry":
        return cls(EntryKind.LINK, label, url)

    @classmethod
    def searchable(
        cls, name: str, value: str, label: Optional[str] = None
    ) -> "MetadataEntry":
        return cls(EntryKind.SEARCHABLE_VALUE, name, value, label=label)

    @classmethod
    def search_link(cls, label: str, params: dict[str, str]) -> "MetadataEntry":
        return cls(EntryKind.SEARCH_LINK, label, params=tuple(params.items()))


def apply_entry(scan: BuildScan, entry: MetadataEntry) -> None:
    if entry.kind is EntryKind.TAG:
        scan.tag(entry.name)
    elif entry.kind is EntryKind.VALUE:
        scan.set_value(entry.name, entry.value)
    elif entry.kind is EntryKind.LINK:
        scan.add_link(entry.name, entry.value)
    elif entry.kind is EntryKind.SEARCHABLE_VALUE:
        add_custom_value_and_search_link(scan, entry.name, entry.value, entry.label)
    elif entry.kind is EntryKind.SEARCH_LINK:
        add_search_link_for_values(scan, entry.name, dict(entry.params))


def apply_entries(scan: BuildScan, entries: Iterable[MetadataEntry]) -> None:
    for entry in entries:
        apply_entry(scan, entry)
