"""Tests for buildmeta.search_links."""

from buildmeta.record import BuildScanRecord
from buildmeta.search_links import (
    add_custom_value_and_search_link,
    add_search_link,
    add_search_link_for_values,
    append_if_missing,
    join_search_params,
    search_link_url,
    url_encode,
)

SERVER = "https://scans.example.com"


class TestAppendIfMissing:
    def test_appends(self):
        assert append_if_missing("https://x", "/") == "https://x/"

    def test_keeps_existing_suffix(self):
        assert append_if_missing("https://x/", "/") == "https://x/"


class TestSearchLinkUrl:
    def test_single_value(self):
        assert search_link_url(SERVER, "CI job", "build") == (
            "https://scans.example.com/scans?"
            "search.names=CI+job&search.values=build"
            "#selection.buildScanB=%7BSCAN_ID%7D"
        )

    def test_server_with_trailing_slash(self):
        assert search_link_url(SERVER + "/", "a", "b").startswith(
            "https://scans.example.com/scans?"
        )

    def test_values_are_encoded(self):
        url = search_link_url(SERVER, "CI stage", "unit & lint/fast")
        assert "search.values=unit+%26+lint%2Ffast" in url


class TestUrlEncode:
    def test_tilde_is_escaped(self):
        assert url_encode("a~b") == "a%7Eb"

    def test_unreserved_characters_kept(self):
        assert url_encode("a-b_c.d*e") == "a-b_c.d*e"


class TestJoinSearchParams:
    def test_sorted_by_name(self):
        assert join_search_params({"CI job": "build", "CI build number": "42"}) == (
            "CI build number,CI job",
            "42,build",
        )

    def test_single_param(self):
        assert join_search_params({"CI job": "build"}) == ("CI job", "build")

    def test_empty(self):
        assert join_search_params({}) is None


class TestAddSearchLink:
    def test_added_when_server_known(self):
        scan = BuildScanRecord(server=SERVER)
        add_search_link(scan, "CI job", "CI job", "build")
        assert scan.links == [
            ("CI job build scans", search_link_url(SERVER, "CI job", "build"))
        ]

    def test_skipped_without_server(self):
        scan = BuildScanRecord()
        add_search_link(scan, "CI job", "CI job", "build")
        assert scan.links == []


class TestDeferredSearchLinks:
    def test_value_now_link_at_finish(self):
        scan = BuildScanRecord(server=SERVER)
        add_custom_value_and_search_link(scan, "CI job", "build")
        assert scan.values == {"CI job": "build"}
        assert scan.links == []

        scan.finish()
        assert scan.links == [
            ("CI job build scans", search_link_url(SERVER, "CI job", "build"))
        ]

    def test_label_differs_from_name(self):
        scan = BuildScanRecord(server=SERVER)
        add_custom_value_and_search_link(
            scan, "Git commit id short", "abc123de", label="Git commit id"
        )
        scan.finish()
        label, url = scan.links[0]
        assert label == "Git commit id build scans"
        assert "search.names=Git+commit+id+short" in url

    def test_composite_link(self):
        scan = BuildScanRecord(server=SERVER)
        add_search_link_for_values(
            scan, "CI pipeline", {"CI job": "build", "CI build number": "42"}
        )
        assert scan.links == []
        scan.finish()
        assert scan.links == [
            (
                "CI pipeline build scans",
                "https://scans.example.com/scans?"
                "search.names=CI+build+number%2CCI+job&search.values=42%2Cbuild"
                "#selection.buildScanB=%7BSCAN_ID%7D",
            )
        ]

    def test_server_read_at_finish_time(self):
        scan = BuildScanRecord()
        add_custom_value_and_search_link(scan, "CI job", "build")
        scan._server = SERVER
        scan.finish()
        assert len(scan.links) == 1
