"""State machine for line-delimited JSON test event streams.

The stream format is the one ``go test -json`` emits: one JSON object per
line with an ``Action`` (run, pause, cont, pass, fail, skip, output, start,
build-output, build-fail), the ``Package`` the event belongs to, and for
member-level events a ``Test`` key such as ``TestParse/empty_input``.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..core.projection import CanonicalRecord
from ..core.runner import ExecutionResult
from ..models.records import GroupFailure, MemberOutcome, TestRunRecord
from .base import ParserKind, complete_records, parser, reject_unrecognized

logger = logging.getLogger(__name__)

TERMINAL_ACTIONS = frozenset({"pass", "fail", "skip"})


@dataclass
class _Member:
    key: str
    status: Optional[str] = None
    elapsed: Optional[float] = None
    output: list[str] = field(default_factory=list)


@dataclass
class _Group:
    name: str
    members: dict[str, _Member] = field(default_factory=dict)
    output: list[str] = field(default_factory=list)
    status: Optional[str] = None
    elapsed: Optional[float] = None
    build_failed: bool = False


def _build_group_name(import_path: str) -> str:
    # "example.com/pkg [example.com/pkg.test]" -> "example.com/pkg"
    return import_path.split(" [", 1)[0]


class EventStreamAggregator:
    """
    Accumulates test events per group and member.

    Feed events in stream order, then call :meth:`payload` once. Members
    whose key contains the separator are children of the member named by
    the text before the first separator.
    """

    def __init__(self, separator: str = "/"):
        self.separator = separator
        self.events = 0
        self.ignored = 0
        self._groups: dict[str, _Group] = {}

    def _group(self, name: str) -> _Group:
        group = self._groups.get(name)
        if group is None:
            group = self._groups[name] = _Group(name)
        return group

    def feed_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            self.ignored += 1
            return
        if not isinstance(event, dict):
            self.ignored += 1
            return
        self.feed(event)

    def feed(self, event: Mapping[str, Any]) -> None:
        action = event.get("Action")
        if not isinstance(action, str):
            self.ignored += 1
            return

        if action in ("build-output", "build-fail"):
            import_path = event.get("ImportPath")
            if not isinstance(import_path, str):
                self.ignored += 1
                return
            group = self._group(_build_group_name(import_path))
            if action == "build-output":
                group.output.append(str(event.get("Output", "")))
            else:
                group.build_failed = True
            self.events += 1
            return

        package = event.get("Package")
        if not isinstance(package, str):
            self.ignored += 1
            return
        self.events += 1
        group = self._group(package)

        key = event.get("Test")
        if key:
            member = group.members.get(key)
            if member is None:
                member = group.members[key] = _Member(str(key))
            if action in TERMINAL_ACTIONS:
                member.status = action
                member.elapsed = _elapsed(event)
            elif action == "output":
                member.output.append(str(event.get("Output", "")))
            return

        if action in TERMINAL_ACTIONS:
            group.status = action
            group.elapsed = _elapsed(event)
        elif action == "output":
            group.output.append(str(event.get("Output", "")))

    def payload(self) -> dict[str, Any]:
        """Counts, member outcomes and group failures seen so far."""
        members: list[MemberOutcome] = []
        failures: list[GroupFailure] = []
        counts = {"pass": 0, "fail": 0, "skip": 0, "incomplete": 0}

        for group in self._groups.values():
            for member in group.members.values():
                status = member.status or "incomplete"
                counts[status] += 1
                parent, name = None, member.key
                if self.separator in member.key:
                    parent, name = member.key.split(self.separator, 1)
                members.append(
                    MemberOutcome(
                        group=group.name,
                        name=name,
                        full_name=member.key,
                        parent=parent,
                        status=status,
                        elapsed=member.elapsed,
                        # passing output is noise; keep what explains a problem
                        output="".join(member.output) if status in ("fail", "incomplete") else "",
                    )
                )

            if not group.members and (group.status == "fail" or group.build_failed):
                reason = "".join(group.output).strip() or f"{group.name} failed"
                failures.append(
                    GroupFailure(group=group.name, reason=reason, elapsed=group.elapsed)
                )

        return {
            "total": counts["pass"] + counts["fail"] + counts["skip"],
            "passed": counts["pass"],
            "failed": counts["fail"],
            "skipped": counts["skip"],
            "incomplete": counts["incomplete"],
            "members": members,
            "group_failures": failures,
        }


def _elapsed(event: Mapping[str, Any]) -> Optional[float]:
    value = event.get("Elapsed")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


@parser(ParserKind.EVENT_STREAM)
def parse_event_stream(
    result: ExecutionResult, *, operation: str, separator: str = "/"
) -> TestRunRecord:
    """
    Aggregate a test event stream into a TestRunRecord.

    Non-JSON lines are skipped, as is an event line cut short by
    truncation. A successful run whose non-blank output
    contains no events at all is a ParseFailure.
    """
    aggregator = EventStreamAggregator(separator=separator)
    for line in complete_records(result):
        aggregator.feed_line(line)

    reject_unrecognized(result, operation, aggregator.events, aggregator.ignored, "test events")
    if aggregator.ignored:
        logger.debug(
            f"Skipped {aggregator.ignored} non-event line(s) in {operation} output",
            extra={"operation": operation},
        )
    return TestRunRecord(**CanonicalRecord.envelope(result, operation), **aggregator.payload())
