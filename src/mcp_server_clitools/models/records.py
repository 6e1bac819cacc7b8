"""Canonical records for every operation kind the server exposes."""

from typing import Any, ClassVar, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from ..core.projection import CanonicalRecord

MemberStatus = Literal["pass", "fail", "skip", "incomplete"]
StagedStatus = Literal["added", "modified", "deleted", "renamed", "copied", "type-changed"]


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _list_count(fields: Mapping[str, Any], name: str) -> int:
    """Length of a list field, read from its derived count in compact views."""
    if f"{name}_count" in fields:
        return fields[f"{name}_count"]
    return len(fields.get(name) or [])


# Test runs


class MemberOutcome(BaseModel):
    """Outcome of one test function (or subtest) inside a group."""

    group: str
    name: str
    full_name: str
    parent: Optional[str] = None
    status: MemberStatus
    elapsed: Optional[float] = None
    output: str = ""


class GroupFailure(BaseModel):
    """A group (package) that failed without any member outcome to blame."""

    group: str
    reason: str
    elapsed: Optional[float] = None


class TestRunRecord(CanonicalRecord):
    """Aggregated result of one test-runner invocation."""

    __test__ = False

    kind: ClassVar[str] = "test-run"
    compact_fields: ClassVar[tuple[str, ...]] = (
        "total",
        "passed",
        "failed",
        "skipped",
        "incomplete",
    )
    compact_derived: ClassVar[dict] = {
        "failed_names": lambda r: [m.full_name for m in r.members if m.status == "fail"],
        "group_failures_count": lambda r: len(r.group_failures),
    }

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    incomplete: int = 0
    members: list[MemberOutcome] = Field(default_factory=list)
    group_failures: list[GroupFailure] = Field(default_factory=list)

    @classmethod
    def is_failure(cls, fields: Mapping[str, Any]) -> bool:
        # A failing test run still has counts worth rendering; only a run that
        # produced nothing to report is rendered as a bare failure.
        if fields["timed_out"]:
            return True
        if fields["success"]:
            return False
        group_failures = _list_count(fields, "group_failures")
        return fields["total"] == 0 and group_failures == 0

    @classmethod
    def summarize(cls, fields: Mapping[str, Any]) -> str:
        text = (
            f"{fields['operation']}: {fields['passed']} passed, "
            f"{fields['failed']} failed, {fields['skipped']} skipped"
        )
        if fields["incomplete"]:
            text += f", {fields['incomplete']} incomplete"
        group_failures = _list_count(fields, "group_failures")
        if group_failures:
            text += f"; {_plural(group_failures, 'group')} failed to run"
        return text

    def details(self) -> list[str]:
        lines = []
        for failure in self.group_failures:
            lines.append(f"FAIL {failure.group}")
            lines.extend(f"    {line}" for line in failure.reason.splitlines() if line.strip())
        for member in self.members:
            if member.status not in ("fail", "incomplete"):
                continue
            label = "FAIL" if member.status == "fail" else "INCOMPLETE"
            elapsed = f" ({member.elapsed:.2f}s)" if member.elapsed is not None else ""
            lines.append(f"--- {label}: {member.full_name} [{member.group}]{elapsed}")
            lines.extend(f"    {line}" for line in member.output.splitlines() if line.strip())
        return lines


# Working tree status


class StagedEntry(BaseModel):
    file: str
    status: StagedStatus
    old_file: Optional[str] = None


class StatusRecord(CanonicalRecord):
    """Snapshot of a working tree as reported by porcelain status."""

    kind: ClassVar[str] = "status"
    compact_fields: ClassVar[tuple[str, ...]] = ("branch", "upstream", "ahead", "behind", "clean")
    compact_derived: ClassVar[dict] = {
        "staged_count": lambda r: len(r.staged),
        "modified_count": lambda r: len(r.modified),
        "deleted_count": lambda r: len(r.deleted),
        "untracked_count": lambda r: len(r.untracked),
        "conflicts_count": lambda r: len(r.conflicts),
    }

    branch: Optional[str] = None
    upstream: Optional[str] = None
    ahead: int = 0
    behind: int = 0
    stash_count: int = 0
    staged: list[StagedEntry] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    untracked: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)
    ignored: list[str] = Field(default_factory=list)
    clean: bool = True

    @classmethod
    def summarize(cls, fields: Mapping[str, Any]) -> str:
        branch = fields["branch"] or "(detached)"
        text = f"On branch {branch}"
        if fields["upstream"]:
            text += f" tracking {fields['upstream']}"
            if fields["ahead"] or fields["behind"]:
                text += f" [ahead {fields['ahead']}, behind {fields['behind']}]"
        if fields["clean"]:
            return text + ": clean"
        parts = []
        for name, label in (
            ("staged", "staged"),
            ("modified", "modified"),
            ("deleted", "deleted"),
            ("untracked", "untracked"),
            ("conflicts", "conflicts"),
        ):
            count = _list_count(fields, name)
            if count:
                parts.append(f"{count} {label}")
        return f"{text}: {', '.join(parts)}"

    def details(self) -> list[str]:
        lines = []
        for entry in self.staged:
            if entry.old_file:
                lines.append(f"  {entry.status}: {entry.old_file} -> {entry.file}")
            else:
                lines.append(f"  {entry.status}: {entry.file}")
        lines.extend(f"  modified (unstaged): {path}" for path in self.modified)
        lines.extend(f"  deleted (unstaged): {path}" for path in self.deleted)
        lines.extend(f"  untracked: {path}" for path in self.untracked)
        lines.extend(f"  conflict: {path}" for path in self.conflicts)
        return lines


# Commit history


class CommitEntry(BaseModel):
    hash: str
    short_hash: str
    author: str
    email: str
    date: str
    refs: Optional[str] = None
    subject: str


class CommitLogRecord(CanonicalRecord):
    kind: ClassVar[str] = "commit-log"
    compact_fields: ClassVar[tuple[str, ...]] = ("total",)
    compact_derived: ClassVar[dict] = {
        "short_hashes": lambda r: [c.short_hash for c in r.commits],
    }

    commits: list[CommitEntry] = Field(default_factory=list)
    total: int = 0

    @classmethod
    def summarize(cls, fields: Mapping[str, Any]) -> str:
        if fields["total"] == 0:
            return "No commits found."
        return f"{fields['operation']}: {_plural(fields['total'], 'commit')}"

    def details(self) -> list[str]:
        return [f"{c.short_hash} {c.subject} ({c.author}, {c.date})" for c in self.commits]


# Releases


class ReleaseEntry(BaseModel):
    tag: str
    name: str = ""
    draft: bool = False
    prerelease: bool = False
    published_at: Optional[str] = None
    url: Optional[str] = None
    is_latest: bool = False
    created_at: Optional[str] = None


class ReleaseListRecord(CanonicalRecord):
    kind: ClassVar[str] = "release-list"
    compact_fields: ClassVar[tuple[str, ...]] = ("total", "total_available")
    compact_derived: ClassVar[dict] = {"tags": lambda r: [e.tag for e in r.releases]}

    releases: list[ReleaseEntry] = Field(default_factory=list)
    total: int = 0
    total_available: Optional[int] = None

    @classmethod
    def summarize(cls, fields: Mapping[str, Any]) -> str:
        if fields["total"] == 0:
            return "No releases found."
        text = f"{fields['operation']}: {_plural(fields['total'], 'release')}"
        if fields["total_available"] is not None and fields["total_available"] > fields["total"]:
            text += f" (of {fields['total_available']})"
        return text

    def details(self) -> list[str]:
        lines = []
        for release in self.releases:
            flags = [
                label
                for label, on in (
                    ("latest", release.is_latest),
                    ("draft", release.draft),
                    ("prerelease", release.prerelease),
                )
                if on
            ]
            suffix = f" [{', '.join(flags)}]" if flags else ""
            title = f" {release.name}" if release.name and release.name != release.tag else ""
            lines.append(f"  {release.tag}{title}{suffix} {release.published_at or ''}".rstrip())
        return lines


# Pull requests


class PullRequestEntry(BaseModel):
    number: int
    title: str
    state: str
    url: Optional[str] = None
    head_branch: Optional[str] = None
    author: Optional[str] = None


class PullRequestListRecord(CanonicalRecord):
    kind: ClassVar[str] = "pull-request-list"
    compact_fields: ClassVar[tuple[str, ...]] = ("total", "total_available")
    compact_derived: ClassVar[dict] = {"numbers": lambda r: [p.number for p in r.pull_requests]}

    pull_requests: list[PullRequestEntry] = Field(default_factory=list)
    total: int = 0
    total_available: Optional[int] = None

    @classmethod
    def summarize(cls, fields: Mapping[str, Any]) -> str:
        if fields["total"] == 0:
            return "No pull requests found."
        text = f"{fields['operation']}: {_plural(fields['total'], 'pull request')}"
        if fields["total_available"] is not None and fields["total_available"] > fields["total"]:
            text += f" (of {fields['total_available']})"
        return text

    def details(self) -> list[str]:
        return [
            f"  #{pr.number} {pr.title} ({pr.state}"
            + (f", {pr.head_branch}" if pr.head_branch else "")
            + ")"
            for pr in self.pull_requests
        ]


# Containers


class ContainerEntry(BaseModel):
    id: str
    name: str
    image: str
    status: str
    state: Optional[str] = None
    ports: str = ""


class ContainerListRecord(CanonicalRecord):
    kind: ClassVar[str] = "container-list"
    compact_fields: ClassVar[tuple[str, ...]] = ("total", "running")
    compact_derived: ClassVar[dict] = {"names": lambda r: [c.name for c in r.containers]}

    containers: list[ContainerEntry] = Field(default_factory=list)
    total: int = 0
    running: int = 0

    @classmethod
    def summarize(cls, fields: Mapping[str, Any]) -> str:
        if fields["total"] == 0:
            return "No containers found."
        return (
            f"{fields['operation']}: {_plural(fields['total'], 'container')}, "
            f"{fields['running']} running"
        )

    def details(self) -> list[str]:
        return [f"  {c.name} {c.image} {c.status}" for c in self.containers]
