"""Parsers for JSON output: one document, or one object per line."""

import json
import logging
from typing import Any, Callable, Iterator

from ..core.projection import CanonicalRecord
from ..core.runner import ExecutionResult
from ..error_handling import ParseFailure
from .base import ParserKind, captured_text, complete_records, is_blank, parser

logger = logging.getLogger(__name__)

RecordBuilder = Callable[[Any, dict], CanonicalRecord]


@parser(ParserKind.DOCUMENT)
def parse_document(
    result: ExecutionResult,
    *,
    operation: str,
    into: RecordBuilder,
    empty: Callable[[], Any] = list,
) -> CanonicalRecord:
    """
    Parse stdout holding a single JSON document.

    Args:
        result: Captured execution result
        operation: Operation label used in the record and in errors
        into: Builds the record from the decoded value and the envelope fields
        empty: Factory for the value blank stdout stands for

    Returns:
        The record built by ``into``
    """
    envelope = CanonicalRecord.envelope(result, operation)
    text, _ = captured_text(result)

    if is_blank(text):
        return into(empty(), envelope)

    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        if not result.ok:
            # stdout of a failed command is not the document
            logger.debug(f"Ignoring non-JSON stdout of failed {operation}")
            return into(empty(), envelope)
        if result.truncated:
            raise ParseFailure(
                operation, "output was truncated before the JSON document ended"
            ) from e
        raise ParseFailure(
            operation, f"invalid JSON at line {e.lineno} column {e.colno}: {e.msg}"
        ) from e

    if value is None:
        value = empty()
    return into(value, envelope)


def iter_json_objects(text: str) -> Iterator[dict]:
    """Yield each line of text that decodes to a JSON object.

    Blank lines, malformed lines and non-object values are skipped.
    """
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            value = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed JSON line: {line[:80]!r}")
            continue
        if isinstance(value, dict):
            yield value


@parser(ParserKind.JSON_LINES)
def parse_json_lines(
    result: ExecutionResult, *, operation: str, into: RecordBuilder
) -> CanonicalRecord:
    """Parse stdout where every non-blank line is an independent JSON object.

    A line cut short by truncation is dropped before decoding.
    """
    envelope = CanonicalRecord.envelope(result, operation)
    items = list(iter_json_objects("\n".join(complete_records(result))))
    return into(items, envelope)
