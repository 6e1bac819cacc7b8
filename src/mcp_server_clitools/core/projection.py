"""Canonical records and the compact/rendered views derived from them.

A canonical record is the single source of truth for one tool call. The
compact view is a field subset of it (plus a few declared derivations that
only read the full record), and rendered text is produced from either view.
Nothing here re-parses output or consults anything but the record itself.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Mapping, Optional, Union

from pydantic import BaseModel

from ..error_handling import ErrorReport, classify_failure

logger = logging.getLogger(__name__)

ENVELOPE_FIELDS = ("operation", "success", "exit_code", "timed_out", "truncated", "error_text")


class CanonicalRecord(BaseModel):
    """Base for every per-operation record.

    Subclasses declare:
        kind: short identifier of the record type
        compact_fields: fields copied verbatim into the compact view
        compact_derived: name -> pure function of the full record
    """

    kind: ClassVar[str] = "record"
    compact_fields: ClassVar[tuple[str, ...]] = ()
    compact_derived: ClassVar[dict[str, Callable[[Any], Any]]] = {
        "error_category": lambda r: r.error.category.value if r.error else None,
    }

    operation: str
    success: bool = True
    exit_code: int = 0
    timed_out: bool = False
    truncated: bool = False
    error_text: Optional[str] = None
    error: Optional[ErrorReport] = None

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        for name in cls.compact_fields:
            if name not in cls.model_fields:
                raise TypeError(f"{cls.__name__}.compact_fields names unknown field {name!r}")
        for name in cls.compact_derived:
            if name in cls.model_fields:
                raise TypeError(
                    f"{cls.__name__}.compact_derived {name!r} shadows a record field"
                )

    @staticmethod
    def envelope(result, operation: str) -> dict[str, Any]:
        """Common fields for a record built from one ExecutionResult."""
        values: dict[str, Any] = {
            "operation": operation,
            "success": result.ok,
            "exit_code": result.exit_code,
            "timed_out": result.timed_out,
            "truncated": result.truncated,
        }
        if not result.ok:
            values["error_text"] = (result.stderr or "").strip() or None
            values["error"] = classify_failure(result, operation)
        return values

    @classmethod
    def summarize(cls, fields: Mapping[str, Any]) -> str:
        """One-line success summary, computable from compact fields alone."""
        return f"{fields['operation']}: ok"

    @classmethod
    def is_failure(cls, fields: Mapping[str, Any]) -> bool:
        return not fields["success"]

    def details(self) -> list[str]:
        """Detail lines shown only when rendering the full record."""
        return []


@dataclass(frozen=True)
class CompactRecord:
    """Field subset of a CanonicalRecord."""

    record_type: type
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> str:
        return self.record_type.kind

    def __getitem__(self, name: str) -> Any:
        return self.fields[name]

    def __contains__(self, name: object) -> bool:
        return name in self.fields


def _derivations(record_type: type) -> dict[str, Callable[[Any], Any]]:
    merged: dict[str, Callable[[Any], Any]] = {}
    for klass in reversed(record_type.__mro__):
        merged.update(getattr(klass, "compact_derived", None) or {})
    return merged


def to_compact(record: CanonicalRecord) -> CompactRecord:
    """Project a record onto its declared compact fields."""
    dumped = record.model_dump(mode="json")
    fields = {name: dumped[name] for name in ENVELOPE_FIELDS + record.compact_fields}
    for name, derive in _derivations(type(record)).items():
        fields[name] = derive(record)
    return CompactRecord(record_type=type(record), fields=fields)


def _first_line(text: Optional[str]) -> Optional[str]:
    for line in (text or "").splitlines():
        if line.strip():
            return line.strip()
    return None


def render(view: Union[CanonicalRecord, CompactRecord]) -> str:
    """Render a record (full form) or its compact view as display text."""
    if isinstance(view, CompactRecord):
        record_type = view.record_type
        fields: Mapping[str, Any] = view.fields
        details: list[str] = []
    else:
        record_type = type(view)
        fields = view.model_dump(mode="json")
        details = view.details()

    if record_type.is_failure(fields):
        head = f"{fields['operation']}: failed (exit {fields['exit_code']})"
        if fields["timed_out"]:
            head += " [timed out]"
        lines = [head]
        first = _first_line(fields.get("error_text"))
        if first:
            lines.append(first)
    else:
        lines = [record_type.summarize(fields), *details]

    if fields["truncated"]:
        lines.append("(output truncated)")
    return "\n".join(lines)


def estimate_tokens(text: str) -> int:
    """Rough token count at ~4 characters per token."""
    return -(-len(text) // 4)


@dataclass(frozen=True)
class ToolOutput:
    """What a tool returns to its caller: display text plus structured data."""

    text: str
    structured: dict[str, Any]
    compact: bool
    is_error: bool = False


def dual_output(
    record: CanonicalRecord, raw_stdout: str, compact: Optional[bool] = None
) -> ToolOutput:
    """
    Build the caller-facing output for a record.

    Args:
        record: The canonical record
        raw_stdout: The captured stdout the record was parsed from
        compact: True/False force a view; None compacts automatically when
            the full JSON would cost at least as many tokens as raw stdout

    Returns:
        ToolOutput with rendered text and the chosen structured view
    """
    full = record.model_dump(mode="json")
    if compact is None:
        compact = estimate_tokens(json.dumps(full)) >= estimate_tokens(raw_stdout)

    if compact:
        view = to_compact(record)
        return ToolOutput(
            text=render(view),
            structured=dict(view.fields),
            compact=True,
            is_error=record.is_failure(view.fields),
        )
    return ToolOutput(
        text=render(record),
        structured=full,
        compact=False,
        is_error=record.is_failure(full),
    )
