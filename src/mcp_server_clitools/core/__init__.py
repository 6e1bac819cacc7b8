"""Execution and output-normalisation pipeline shared by every tool."""

from .capture import TRUNCATION_MARKER, BoundedCapture, sanitize_error_output, strip_ansi
from .listing import PROBE_CEILING, ListPage, list_with_total, needs_probe
from .projection import (
    CanonicalRecord,
    CompactRecord,
    ToolOutput,
    dual_output,
    estimate_tokens,
    render,
    to_compact,
)
from .runner import ExecutionRequest, ExecutionResult, kill_process_group, kill_process_tree, run
from .sanitizer import assert_all_safe, assert_allowed_command, assert_allowed_root, assert_safe

__all__ = [
    "TRUNCATION_MARKER",
    "BoundedCapture",
    "sanitize_error_output",
    "strip_ansi",
    "PROBE_CEILING",
    "ListPage",
    "list_with_total",
    "needs_probe",
    "CanonicalRecord",
    "CompactRecord",
    "ToolOutput",
    "dual_output",
    "estimate_tokens",
    "render",
    "to_compact",
    "ExecutionRequest",
    "ExecutionResult",
    "kill_process_group",
    "kill_process_tree",
    "run",
    "assert_safe",
    "assert_all_safe",
    "assert_allowed_command",
    "assert_allowed_root",
]
