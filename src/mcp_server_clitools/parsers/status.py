"""Parser for two-character porcelain status output.

Supported variants and their rename layout, as documented by git-status(1):

    v1   ``R  old -> new``           (paths C-quoted when unusual)
    v1z  ``R  new\\0old\\0``          (-z: no quoting, NUL terminated)
    v2   ``2 R. ... new\\told``       (paths C-quoted when unusual)
    v2z  ``2 R. ... new\\0old\\0``

Every variant yields the new path as ``file`` and the source path as
``old_file``.
"""

import logging
import re
from enum import Enum
from typing import Optional

from ..core.projection import CanonicalRecord
from ..core.runner import ExecutionResult
from ..models.records import StagedEntry, StatusRecord
from .base import ParserKind, captured_text, complete_records, parser, reject_unrecognized

logger = logging.getLogger(__name__)


class StatusVariant(str, Enum):
    V1 = "v1"
    V1_Z = "v1z"
    V2 = "v2"
    V2_Z = "v2z"

    @property
    def nul_terminated(self) -> bool:
        return self in (StatusVariant.V1_Z, StatusVariant.V2_Z)


STAGED_STATUS = {
    "A": "added",
    "M": "modified",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
    "T": "type-changed",
}
WORKTREE_MODIFIED = frozenset("MTARC")
UNMERGED_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})

_C_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "t": 0x09,
    "n": 0x0A,
    "v": 0x0B,
    "f": 0x0C,
    "r": 0x0D,
    '"': 0x22,
    "\\": 0x5C,
}
_OCTAL = re.compile(r"[0-7]{3}")
_AHEAD_RE = re.compile(r"ahead (\d+)")
_BEHIND_RE = re.compile(r"behind (\d+)")
_AB_RE = re.compile(r"^\+(\d+) -(\d+)$")


def unquote_path(value: str) -> str:
    """Undo git's C-style quoting of a path. Unquoted paths pass through."""
    if len(value) < 2 or value[0] != '"' or value[-1] != '"':
        return value
    body = value[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            if nxt in _C_ESCAPES:
                out.append(_C_ESCAPES[nxt])
                i += 2
                continue
            if _OCTAL.match(body, i + 1):
                # octal escapes are raw bytes of a UTF-8 sequence
                out.append(int(body[i + 1 : i + 4], 8))
                i += 4
                continue
        out.extend(ch.encode("utf-8"))
        i += 1
    return out.decode("utf-8", errors="replace")


def _take_quoted(text: str) -> tuple[str, str]:
    """Split a leading C-quoted token off text."""
    i = 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == '"':
            return text[: i + 1], text[i + 1 :]
        i += 1
    return text, ""


def _split_rename_v1(rest: str) -> tuple[str, Optional[str]]:
    """Return (new, old) from ``old -> new``."""
    if rest.startswith('"'):
        old, remainder = _take_quoted(rest)
        if remainder.startswith(" -> "):
            return unquote_path(remainder[4:]), unquote_path(old)
        return unquote_path(rest), None
    if " -> " in rest:
        old, new = rest.split(" -> ", 1)
        return unquote_path(new), old
    return unquote_path(rest), None


def _split_tab_pair(field: str) -> tuple[str, Optional[str]]:
    """Return (path, orig_path) from the v2 ``path<TAB>origPath`` field."""
    if "\t" not in field:
        return unquote_path(field), None
    path, orig = field.split("\t", 1)
    return unquote_path(path), unquote_path(orig)


class _StatusBuilder:
    def __init__(self):
        self.values: dict = {
            "branch": None,
            "upstream": None,
            "ahead": 0,
            "behind": 0,
            "stash_count": 0,
        }
        self.staged: list[StagedEntry] = []
        self.modified: list[str] = []
        self.deleted: list[str] = []
        self.untracked: list[str] = []
        self.conflicts: list[str] = []
        self.ignored: list[str] = []
        self.recognized = 0
        self.unrecognized = 0

    def entry(self, code: str, path: str, old_path: Optional[str] = None) -> None:
        self.recognized += 1
        code = code.replace(".", " ")
        if code in UNMERGED_CODES:
            self.conflicts.append(path)
            return
        if code == "??":
            self.untracked.append(path)
            return
        if code == "!!":
            self.ignored.append(path)
            return

        index, worktree = code[0], code[1]
        # each side classifies independently: "MM" is both staged and modified
        if index in STAGED_STATUS:
            self.staged.append(
                StagedEntry(
                    file=path,
                    status=STAGED_STATUS[index],
                    old_file=old_path if index in "RC" else None,
                )
            )
        if worktree == "D":
            self.deleted.append(path)
        elif worktree in WORKTREE_MODIFIED:
            self.modified.append(path)

    def v1_branch(self, header: str) -> None:
        self.recognized += 1
        text = header[3:]
        for prefix in ("No commits yet on ", "Initial commit on "):
            if text.startswith(prefix):
                self.values["branch"] = text[len(prefix) :].strip()
                return
        if text.startswith("HEAD (no branch)"):
            return
        if "..." not in text:
            self.values["branch"] = text.split(" ", 1)[0]
            return
        branch, rest = text.split("...", 1)
        self.values["branch"] = branch
        self.values["upstream"] = rest.split(" ", 1)[0]
        ahead = _AHEAD_RE.search(rest)
        behind = _BEHIND_RE.search(rest)
        self.values["ahead"] = int(ahead.group(1)) if ahead else 0
        self.values["behind"] = int(behind.group(1)) if behind else 0

    def v2_header(self, line: str) -> None:
        self.recognized += 1
        parts = line[2:].split(" ", 1)
        name = parts[0]
        value = parts[1] if len(parts) > 1 else ""
        if name == "branch.head":
            self.values["branch"] = None if value == "(detached)" else value
        elif name == "branch.upstream":
            self.values["upstream"] = value
        elif name == "branch.ab":
            match = _AB_RE.match(value)
            if match:
                self.values["ahead"] = int(match.group(1))
                self.values["behind"] = int(match.group(2))
        elif name == "stash":
            self.values["stash_count"] = int(value) if value.isdigit() else 0

    def build(self, envelope: dict) -> StatusRecord:
        clean = not (
            self.staged or self.modified or self.deleted or self.untracked or self.conflicts
        )
        return StatusRecord(
            **envelope,
            **self.values,
            staged=self.staged,
            modified=self.modified,
            deleted=self.deleted,
            untracked=self.untracked,
            conflicts=self.conflicts,
            ignored=self.ignored,
            clean=clean,
        )


def _parse_v1(builder: _StatusBuilder, lines: list[str]) -> None:
    for line in lines:
        if not line.strip():
            continue
        if line.startswith("## "):
            builder.v1_branch(line)
            continue
        if len(line) < 4 or line[2] != " ":
            builder.unrecognized += 1
            continue
        code, rest = line[:2], line[3:]
        if code[0] in "RC" or code[1] in "RC":
            new, old = _split_rename_v1(rest)
            builder.entry(code, new, old)
        else:
            builder.entry(code, unquote_path(rest))


def _parse_v1_z(builder: _StatusBuilder, records: list[str], cut: bool) -> None:
    records = iter(records)
    for record in records:
        if not record.strip():
            continue
        if record.startswith("## "):
            builder.v1_branch(record)
            continue
        if len(record) < 4 or record[2] != " ":
            builder.unrecognized += 1
            continue
        code, path = record[:2], record[3:]
        old = None
        if code[0] in "RC" or code[1] in "RC":
            old = next(records, None)
            if old is None and cut:
                # the source path record fell past the capture limit
                continue
        builder.entry(code, path, old)


def _parse_v2(builder: _StatusBuilder, records: list[str], nul: bool, cut: bool) -> None:
    records = iter(records)
    for record in records:
        if not record.strip():
            continue
        kind = record[:2]
        if kind == "# ":
            builder.v2_header(record)
        elif kind == "1 ":
            fields = record.split(" ", 8)
            if len(fields) < 9:
                builder.unrecognized += 1
                continue
            path = fields[8] if nul else unquote_path(fields[8])
            builder.entry(fields[1], path)
        elif kind == "2 ":
            fields = record.split(" ", 9)
            if len(fields) < 10:
                builder.unrecognized += 1
                continue
            if nul:
                path, old = fields[9], next(records, None)
                if old is None and cut:
                    continue
            else:
                path, old = _split_tab_pair(fields[9])
            builder.entry(fields[1], path, old)
        elif kind == "u ":
            fields = record.split(" ", 10)
            if len(fields) < 11:
                builder.unrecognized += 1
                continue
            builder.entry(fields[1], fields[10] if nul else unquote_path(fields[10]))
        elif kind == "? ":
            builder.entry("??", record[2:] if nul else unquote_path(record[2:]))
        elif kind == "! ":
            builder.entry("!!", record[2:] if nul else unquote_path(record[2:]))
        else:
            builder.unrecognized += 1


@parser(ParserKind.STATUS)
def parse_status(
    result: ExecutionResult,
    *,
    operation: str,
    variant: StatusVariant = StatusVariant.V1,
) -> StatusRecord:
    """Classify porcelain status output into a StatusRecord.

    When stdout was truncated, the record cut by the limit is dropped, as is
    a -z rename whose source path did not arrive.
    """
    variant = StatusVariant(variant)
    builder = _StatusBuilder()
    records = complete_records(result, "\0" if variant.nul_terminated else "\n")
    _, cut = captured_text(result)

    if variant is StatusVariant.V1:
        _parse_v1(builder, records)
    elif variant is StatusVariant.V1_Z:
        _parse_v1_z(builder, records, cut)
    else:
        _parse_v2(builder, records, nul=variant.nul_terminated, cut=cut)

    reject_unrecognized(
        result, operation, builder.recognized, builder.unrecognized, f"porcelain {variant.value} status"
    )
    return builder.build(CanonicalRecord.envelope(result, operation))
