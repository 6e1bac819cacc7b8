"""Tests for the test-event stream state machine."""

import json

import pytest

from mcp_server_clitools.core.projection import render, to_compact
from mcp_server_clitools.error_handling import ParseFailure
from mcp_server_clitools.models.records import TestRunRecord
from mcp_server_clitools.parsers import EventStreamAggregator, parse_event_stream


def _stream(*events: dict) -> str:
    return "\n".join(json.dumps(event) for event in events) + "\n"


PKG = "example.com/calc"


class TestEventStreamAggregation:
    def test_nested_member_is_child_of_prefix(self, make_result):
        stdout = _stream(
            {"Action": "run", "Package": PKG, "Test": "A"},
            {"Action": "run", "Package": PKG, "Test": "A/sub"},
            {"Action": "pass", "Package": PKG, "Test": "A/sub", "Elapsed": 0.01},
            {"Action": "pass", "Package": PKG, "Test": "A", "Elapsed": 0.02},
        )
        record = parse_event_stream(make_result(stdout), operation="go test")

        top = [m for m in record.members if m.parent is None]
        nested = [m for m in record.members if m.parent == "A"]
        assert [m.name for m in top] == ["A"]
        assert [m.name for m in nested] == ["sub"]
        assert top[0].status == "pass"
        assert nested[0].status == "pass"
        assert nested[0].full_name == "A/sub"
        assert record.passed == 2
        assert record.total == 2
        assert record.group_failures == []

    def test_deeper_nesting_collapses_into_top_level_parent(self, make_result):
        stdout = _stream(
            {"Action": "run", "Package": PKG, "Test": "A"},
            {"Action": "run", "Package": PKG, "Test": "A/b/c"},
            {"Action": "pass", "Package": PKG, "Test": "A/b/c"},
            {"Action": "pass", "Package": PKG, "Test": "A"},
        )
        record = parse_event_stream(make_result(stdout), operation="go test")

        deep = next(m for m in record.members if m.full_name == "A/b/c")
        assert deep.parent == "A"
        assert deep.name == "b/c"

    def test_counts_and_failed_output(self, make_result):
        stdout = _stream(
            {"Action": "start", "Package": PKG},
            {"Action": "run", "Package": PKG, "Test": "TestAdd"},
            {"Action": "output", "Package": PKG, "Test": "TestAdd", "Output": "=== RUN   TestAdd\n"},
            {"Action": "pass", "Package": PKG, "Test": "TestAdd", "Elapsed": 0},
            {"Action": "run", "Package": PKG, "Test": "TestDiv"},
            {"Action": "output", "Package": PKG, "Test": "TestDiv", "Output": "    calc_test.go:12: division by zero\n"},
            {"Action": "fail", "Package": PKG, "Test": "TestDiv", "Elapsed": 0.5},
            {"Action": "run", "Package": PKG, "Test": "TestSkip"},
            {"Action": "skip", "Package": PKG, "Test": "TestSkip"},
            {"Action": "output", "Package": PKG, "Output": "FAIL\n"},
            {"Action": "fail", "Package": PKG, "Elapsed": 0.6},
        )
        record = parse_event_stream(make_result(stdout, exit_code=1), operation="go test")

        assert (record.total, record.passed, record.failed, record.skipped) == (3, 1, 1, 1)
        failed = next(m for m in record.members if m.status == "fail")
        assert failed.name == "TestDiv"
        assert failed.elapsed == 0.5
        assert "division by zero" in failed.output
        passed = next(m for m in record.members if m.status == "pass")
        assert passed.output == ""
        # the package failed because a member failed: not a group failure
        assert record.group_failures == []
        assert record.success is False

    def test_group_failure_without_members_uses_group_output(self, make_result):
        stdout = _stream(
            {"Action": "start", "Package": PKG},
            {"Action": "output", "Package": PKG, "Output": "# example.com/calc\n"},
            {"Action": "output", "Package": PKG, "Output": "./calc.go:3:1: syntax error\n"},
            {"Action": "output", "Package": PKG, "Output": "FAIL\texample.com/calc [build failed]\n"},
            {"Action": "fail", "Package": PKG, "Elapsed": 0},
        )
        record = parse_event_stream(make_result(stdout, exit_code=1), operation="go test")

        assert record.total == 0
        assert len(record.group_failures) == 1
        failure = record.group_failures[0]
        assert failure.group == PKG
        assert "syntax error" in failure.reason
        assert "[build failed]" in failure.reason

    def test_build_events_feed_group_by_import_path(self, make_result):
        stdout = _stream(
            {"ImportPath": f"{PKG} [{PKG}.test]", "Action": "build-output", "Output": "# example.com/calc\n"},
            {"ImportPath": f"{PKG} [{PKG}.test]", "Action": "build-output", "Output": "./calc_test.go:9:2: undefined: Mul\n"},
            {"ImportPath": f"{PKG} [{PKG}.test]", "Action": "build-fail"},
            {"Action": "start", "Package": PKG},
            {"Action": "output", "Package": PKG, "Output": "FAIL\texample.com/calc [build failed]\n"},
            {"Action": "fail", "Package": PKG, "Elapsed": 0, "FailedBuild": f"{PKG} [{PKG}.test]"},
        )
        record = parse_event_stream(make_result(stdout, exit_code=1), operation="go test")

        assert len(record.group_failures) == 1
        assert "undefined: Mul" in record.group_failures[0].reason

    def test_unfinished_member_is_incomplete(self, make_result):
        stdout = _stream(
            {"Action": "run", "Package": PKG, "Test": "TestFast"},
            {"Action": "pass", "Package": PKG, "Test": "TestFast"},
            {"Action": "run", "Package": PKG, "Test": "TestHang"},
            {"Action": "output", "Package": PKG, "Test": "TestHang", "Output": "waiting...\n"},
        )
        record = parse_event_stream(
            make_result(stdout, exit_code=124, timed_out=True), operation="go test"
        )

        assert record.total == 1
        assert record.incomplete == 1
        hung = next(m for m in record.members if m.name == "TestHang")
        assert hung.status == "incomplete"
        assert "waiting" in hung.output
        assert record.timed_out is True

    def test_groups_are_independent(self, make_result):
        stdout = _stream(
            {"Action": "run", "Package": "a", "Test": "TestX"},
            {"Action": "run", "Package": "b", "Test": "TestX"},
            {"Action": "pass", "Package": "a", "Test": "TestX"},
            {"Action": "fail", "Package": "b", "Test": "TestX"},
        )
        record = parse_event_stream(make_result(stdout, exit_code=1), operation="go test")

        outcomes = {(m.group, m.name): m.status for m in record.members}
        assert outcomes == {("a", "TestX"): "pass", ("b", "TestX"): "fail"}

    def test_custom_separator(self):
        aggregator = EventStreamAggregator(separator="::")
        aggregator.feed({"Action": "pass", "Package": "suite", "Test": "Outer::inner"})
        members = aggregator.payload()["members"]
        assert members[0].parent == "Outer"
        assert members[0].name == "inner"


class TestEventStreamEdgeCases:
    @pytest.mark.parametrize("stdout", ["", "   \n\t\n"])
    def test_empty_input_is_zero_record(self, make_result, stdout):
        record = parse_event_stream(make_result(stdout), operation="go test")

        assert isinstance(record, TestRunRecord)
        assert (record.total, record.passed, record.failed, record.skipped) == (0, 0, 0, 0)
        assert record.members == []

    def test_non_json_lines_are_skipped(self, make_result):
        stdout = "go: downloading example.com/dep v1.0.0\n" + _stream(
            {"Action": "pass", "Package": PKG, "Test": "TestA"}
        )
        record = parse_event_stream(make_result(stdout), operation="go test")
        assert record.passed == 1

    def test_garbage_from_successful_run_is_parse_failure(self, make_result):
        with pytest.raises(ParseFailure):
            parse_event_stream(make_result("PASS\nok  \texample.com/calc\t0.1s\n"), operation="go test")

    def test_garbage_from_failed_run_is_not_parse_failure(self, make_result):
        record = parse_event_stream(
            make_result("no Go files in /src\n", stderr="no Go files", exit_code=1),
            operation="go test",
        )
        assert record.success is False
        assert record.total == 0

    def test_truncated_stream_keeps_complete_events(self, make_result):
        stdout = _stream({"Action": "pass", "Package": PKG, "Test": "TestA"}) + '{"Action":"pa'
        stdout += "\n... [truncated]"
        record = parse_event_stream(make_result(stdout, truncated=True), operation="go test")
        assert record.passed == 1
        assert record.truncated is True

    def test_event_cut_by_byte_limit_is_dropped(self, captured_result):
        first = _stream({"Action": "pass", "Package": PKG, "Test": "TestA"}).encode()
        second = _stream({"Action": "fail", "Package": PKG, "Test": "TestB"}).encode()
        result = captured_result(first + second, max_bytes=len(first) + 15)

        record = parse_event_stream(result, operation="go test")

        assert [m.name for m in record.members] == ["TestA"]
        assert (record.passed, record.failed) == (1, 0)


class TestTestRunRendering:
    def test_failing_run_renders_counts(self, make_result):
        stdout = _stream(
            {"Action": "pass", "Package": PKG, "Test": "TestA"},
            {"Action": "fail", "Package": PKG, "Test": "TestB"},
        )
        record = parse_event_stream(make_result(stdout, exit_code=1), operation="go test")

        text = render(record)
        assert text.startswith("go test: 1 passed, 1 failed, 0 skipped")
        assert "--- FAIL: TestB" in text
        compact_text = render(to_compact(record))
        assert compact_text == "go test: 1 passed, 1 failed, 0 skipped"

    def test_run_that_produced_nothing_renders_failure(self, make_result):
        record = parse_event_stream(
            make_result("", stderr="go: cannot find main module\n", exit_code=1),
            operation="go test",
        )
        assert render(record) == "go test: failed (exit 1)\ngo: cannot find main module"

    def test_timeout_renders_failure_annotation(self, make_result):
        record = parse_event_stream(
            make_result("", exit_code=124, timed_out=True), operation="go test"
        )
        assert render(record).startswith("go test: failed (exit 124) [timed out]")

    def test_compact_keeps_failed_names(self, make_result):
        stdout = _stream({"Action": "fail", "Package": PKG, "Test": "TestB"})
        record = parse_event_stream(make_result(stdout, exit_code=1), operation="go test")
        compact = to_compact(record)
        assert compact["failed_names"] == ["TestB"]
        assert "members" not in compact
