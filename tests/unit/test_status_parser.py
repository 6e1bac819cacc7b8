"""Tests for porcelain status classification."""

import pytest

from mcp_server_clitools.core.projection import render, to_compact
from mcp_server_clitools.error_handling import ParseFailure
from mcp_server_clitools.parsers import StatusVariant, parse_status, unquote_path


def _parse(make_result, stdout, variant, **kwargs):
    return parse_status(make_result(stdout, **kwargs), operation="git status", variant=variant)


class TestPorcelainV1:
    def test_rename_arrow_yields_single_renamed_entry(self, make_result):
        record = _parse(make_result, "R  old.txt -> new.txt\n", StatusVariant.V1)

        assert len(record.staged) == 1
        entry = record.staged[0]
        assert entry.status == "renamed"
        assert entry.file == "new.txt"
        assert entry.old_file == "old.txt"
        assert record.modified == []

    def test_two_sided_code_classifies_both_sides(self, make_result):
        record = _parse(make_result, "MM src/app.py\n", StatusVariant.V1)

        assert [(e.file, e.status) for e in record.staged] == [("src/app.py", "modified")]
        assert record.modified == ["src/app.py"]

    def test_mixed_entries(self, make_result):
        stdout = (
            "## main...origin/main [ahead 2, behind 1]\n"
            "A  added.py\n"
            " M changed.py\n"
            " D gone.py\n"
            "D  removed.py\n"
            "AD added_then_deleted.py\n"
            "?? new.txt\n"
            "!! build/\n"
        )
        record = _parse(make_result, stdout, StatusVariant.V1)

        assert record.branch == "main"
        assert record.upstream == "origin/main"
        assert (record.ahead, record.behind) == (2, 1)
        assert [(e.file, e.status) for e in record.staged] == [
            ("added.py", "added"),
            ("removed.py", "deleted"),
            ("added_then_deleted.py", "added"),
        ]
        assert record.modified == ["changed.py"]
        assert record.deleted == ["gone.py", "added_then_deleted.py"]
        assert record.untracked == ["new.txt"]
        assert record.ignored == ["build/"]
        assert record.clean is False

    @pytest.mark.parametrize("code", ["DD", "AU", "UD", "UA", "DU", "AA", "UU"])
    def test_unmerged_codes_are_conflicts(self, make_result, code):
        record = _parse(make_result, f"{code} merge.txt\n", StatusVariant.V1)

        assert record.conflicts == ["merge.txt"]
        assert record.staged == []
        assert record.modified == []

    def test_quoted_paths_are_unquoted(self, make_result):
        stdout = 'R  "old name.txt" -> "new\\tname.txt"\n?? "caf\\303\\251.txt"\n'
        record = _parse(make_result, stdout, StatusVariant.V1)

        assert record.staged[0].old_file == "old name.txt"
        assert record.staged[0].file == "new\tname.txt"
        assert record.untracked == ["café.txt"]

    def test_branch_without_upstream(self, make_result):
        record = _parse(make_result, "## feature\n", StatusVariant.V1)
        assert record.branch == "feature"
        assert record.upstream is None
        assert record.clean is True

    def test_detached_head(self, make_result):
        record = _parse(make_result, "## HEAD (no branch)\n", StatusVariant.V1)
        assert record.branch is None

    def test_fresh_repository(self, make_result):
        record = _parse(make_result, "## No commits yet on main\n", StatusVariant.V1)
        assert record.branch == "main"


class TestPorcelainV1Z:
    def test_rename_is_new_then_old(self, make_result):
        stdout = "## main\0R  new.txt\0old.txt\0 M other.txt\0"
        record = _parse(make_result, stdout, StatusVariant.V1_Z)

        assert record.staged[0].file == "new.txt"
        assert record.staged[0].old_file == "old.txt"
        assert record.modified == ["other.txt"]

    def test_paths_with_spaces_are_not_quoted(self, make_result):
        record = _parse(make_result, "?? my file.txt\0", StatusVariant.V1_Z)
        assert record.untracked == ["my file.txt"]


class TestPorcelainV2:
    HEADER = (
        "# branch.oid 1234567890abcdef1234567890abcdef12345678\n"
        "# branch.head main\n"
        "# branch.upstream origin/main\n"
        "# branch.ab +3 -0\n"
        "# stash 2\n"
    )

    def test_headers(self, make_result):
        record = _parse(make_result, self.HEADER, StatusVariant.V2)

        assert record.branch == "main"
        assert record.upstream == "origin/main"
        assert (record.ahead, record.behind) == (3, 0)
        assert record.stash_count == 2
        assert record.clean is True

    def test_ordinary_and_rename_entries(self, make_result):
        stdout = self.HEADER + (
            "1 M. N... 100644 100644 100644 abc123 def456 src/app.py\n"
            "1 .M N... 100644 100644 100644 abc123 abc123 README.md\n"
            "2 R. N... 100644 100644 100644 abc123 abc123 R100 lib/new.py\tlib/old.py\n"
            "u UU N... 100644 100644 100644 100644 a1 b2 c3 conflict.txt\n"
            "? notes.txt\n"
            "! dist\n"
        )
        record = _parse(make_result, stdout, StatusVariant.V2)

        assert [(e.file, e.status, e.old_file) for e in record.staged] == [
            ("src/app.py", "modified", None),
            ("lib/new.py", "renamed", "lib/old.py"),
        ]
        assert record.modified == ["README.md"]
        assert record.conflicts == ["conflict.txt"]
        assert record.untracked == ["notes.txt"]
        assert record.ignored == ["dist"]

    def test_nul_terminated_rename_matches_tab_form(self, make_result):
        stdout = (
            "# branch.head main\0"
            "2 R. N... 100644 100644 100644 abc123 abc123 R100 lib/new.py\0lib/old.py\0"
        )
        record = _parse(make_result, stdout, StatusVariant.V2_Z)

        assert record.staged[0].file == "lib/new.py"
        assert record.staged[0].old_file == "lib/old.py"

    def test_detached_head(self, make_result):
        record = _parse(make_result, "# branch.head (detached)\n", StatusVariant.V2)
        assert record.branch is None


class TestTruncatedStatus:
    def test_nul_record_cut_by_byte_limit_is_dropped(self, captured_result):
        result = captured_result(b"?? alpha.txt\0?? beta-long-name.txt\0", max_bytes=20)
        record = parse_status(result, operation="git status", variant=StatusVariant.V1_Z)

        assert record.untracked == ["alpha.txt"]
        assert record.truncated is True

    def test_line_cut_by_byte_limit_is_dropped(self, captured_result):
        result = captured_result(b"## main\n M a.py\n M bbbbbbbb.py\n", max_bytes=20)
        record = parse_status(result, operation="git status", variant=StatusVariant.V1)

        assert record.branch == "main"
        assert record.modified == ["a.py"]

    def test_line_limit_keeps_every_complete_line(self, captured_result):
        result = captured_result(b"## main\n M a.py\n M b.py\n", max_lines=2)
        record = parse_status(result, operation="git status", variant=StatusVariant.V1)

        assert result.truncated is True
        assert record.modified == ["a.py"]

    @pytest.mark.parametrize("max_bytes", [11, 14])
    def test_rename_without_source_path_is_dropped(self, captured_result, max_bytes):
        result = captured_result(b"R  new.txt\0old.txt\0", max_bytes=max_bytes)
        record = parse_status(result, operation="git status", variant=StatusVariant.V1_Z)

        assert record.staged == []

    def test_v2_entry_cut_by_byte_limit_is_dropped(self, captured_result):
        data = (
            b"# branch.head main\0"
            b"1 .M N... 100644 100644 100644 abc123 abc123 README.md\0"
        )
        result = captured_result(data, max_bytes=30)
        record = parse_status(result, operation="git status", variant=StatusVariant.V2_Z)

        assert record.branch == "main"
        assert record.modified == []

    def test_stdout_without_marker_keeps_last_record(self, make_result):
        # only stderr was cut: stdout carries no marker
        record = _parse(make_result, " M a.py\n M b.py", StatusVariant.V1, truncated=True)
        assert record.modified == ["a.py", "b.py"]


class TestStatusEdgeCases:
    @pytest.mark.parametrize("variant", list(StatusVariant))
    @pytest.mark.parametrize("stdout", ["", "  \n"])
    def test_empty_input_is_clean_record(self, make_result, variant, stdout):
        record = _parse(make_result, stdout, variant)

        assert record.clean is True
        assert record.staged == []
        assert record.untracked == []

    def test_garbage_from_successful_run_is_parse_failure(self, make_result):
        with pytest.raises(ParseFailure):
            _parse(make_result, "this is not porcelain output\nnor this\n", StatusVariant.V1)

    def test_failed_run_yields_failed_record(self, make_result):
        record = _parse(
            make_result,
            "",
            StatusVariant.V1_Z,
            stderr="fatal: not a git repository (or any of the parent directories): .git\n",
            exit_code=128,
        )
        assert record.success is False
        assert record.error is not None
        assert render(record).startswith("git status: failed (exit 128)\nfatal: not a git repository")

    def test_compact_view_keeps_counts(self, make_result):
        record = _parse(make_result, "## main\nMM a.py\n?? b.py\n", StatusVariant.V1)
        compact = to_compact(record)

        assert compact["branch"] == "main"
        assert compact["staged_count"] == 1
        assert compact["modified_count"] == 1
        assert compact["untracked_count"] == 1
        assert "staged" not in compact
        assert render(compact) == "On branch main: 1 staged, 1 modified, 1 untracked"


class TestUnquotePath:
    def test_plain_path_passes_through(self):
        assert unquote_path("plain.txt") == "plain.txt"

    def test_escapes(self):
        assert unquote_path('"a\\"b\\\\c"') == 'a"b\\c'

    def test_octal_utf8(self):
        assert unquote_path('"\\346\\227\\245.txt"') == "日.txt"
