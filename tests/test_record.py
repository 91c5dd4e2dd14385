"""Tests for buildmeta.record.BuildScanRecord."""

import logging
import threading

from buildmeta.record import BuildScanRecord


class TestBuildScanRecord:
    def test_initial_state(self):
        scan = BuildScanRecord()
        assert scan.tags == []
        assert scan.values == {}
        assert scan.links == []
        assert scan.server_address() is None
        assert scan.finished is False

    def test_empty_server_is_none(self):
        assert BuildScanRecord(server="").server_address() is None

    def test_tags_are_unique_and_ordered(self):
        scan = BuildScanRecord()
        scan.tag("Linux")
        scan.tag("CI")
        scan.tag("Linux")
        assert scan.tags == ["Linux", "CI"]

    def test_value_overwrites(self):
        scan = BuildScanRecord()
        scan.set_value("CI build number", "1")
        scan.set_value("CI build number", "2")
        assert scan.values == {"CI build number": "2"}

    def test_links_keep_order(self):
        scan = BuildScanRecord()
        scan.add_link("GitLab build", "https://a")
        scan.add_link("GitLab pipeline", "https://b")
        assert scan.links == [("GitLab build", "https://a"), ("GitLab pipeline", "https://b")]
        assert scan.links_by_label() == {
            "GitLab build": "https://a",
            "GitLab pipeline": "https://b",
        }

    def test_to_dict(self):
        scan = BuildScanRecord(server="https://scans")
        scan.tag("LOCAL")
        scan.set_value("Git branch", "main")
        scan.add_link("Github source", "https://github.com/org/repo/tree/abc")
        assert scan.to_dict() == {
            "tags": ["LOCAL"],
            "values": {"Git branch": "main"},
            "links": [
                {"label": "Github source", "url": "https://github.com/org/repo/tree/abc"}
            ],
            "server": "https://scans",
        }


class TestFinish:
    def test_callbacks_run_in_order_once(self):
        scan = BuildScanRecord()
        calls = []
        scan.run_at_build_finish(lambda s: calls.append("first"))
        scan.run_at_build_finish(lambda s: calls.append("second"))
        scan.finish()
        scan.finish()
        assert calls == ["first", "second"]
        assert scan.finished is True

    def test_callback_receives_scan(self):
        scan = BuildScanRecord()
        seen = []
        scan.run_at_build_finish(seen.append)
        scan.finish()
        assert seen == [scan]

    def test_failing_callback_does_not_stop_others(self):
        scan = BuildScanRecord()
        calls = []

        def boom(_scan):
            raise RuntimeError("boom")

        scan.run_at_build_finish(boom)
        scan.run_at_build_finish(lambda s: calls.append("after"))
        scan.finish()
        assert calls == ["after"]

    def test_callbacks_registered_while_finishing_run(self):
        scan = BuildScanRecord()
        calls = []
        scan.run_at_build_finish(
            lambda s: s.run_at_build_finish(lambda s2: calls.append("nested"))
        )
        scan.finish()
        assert calls == ["nested"]

    def test_callback_after_finish_is_dropped_and_logged(self, caplog):
        scan = BuildScanRecord()
        scan.finish()
        calls = []
        with caplog.at_level(logging.DEBUG, logger="buildmeta.record"):
            scan.run_at_build_finish(lambda s: calls.append("late"))
        scan.finish()
        assert calls == []
        assert "Build already finished" in caplog.text


class TestConcurrentWrites:
    def test_parallel_values(self):
        scan = BuildScanRecord()

        def writer(prefix):
            for i in range(200):
                scan.set_value(f"{prefix}{i}", str(i))
                scan.tag(f"{prefix}{i % 5}")

        threads = [threading.Thread(target=writer, args=(p,)) for p in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(scan.values) == 800
        assert len(scan.tags) == 20
