"""Parser for line records split on a field separator."""

import logging
from typing import Callable, Sequence

from ..core.projection import CanonicalRecord
from ..core.runner import ExecutionResult
from .base import ParserKind, complete_records, parser, reject_unrecognized

logger = logging.getLogger(__name__)

UNIT_SEPARATOR = "\x1f"


def split_record(line: str, fields: Sequence[str], separator: str = UNIT_SEPARATOR):
    """Map one line onto field names, or None when it has too few fields.

    The last field absorbs any further separators.
    """
    parts = line.split(separator, len(fields) - 1)
    if len(parts) < len(fields):
        return None
    return dict(zip(fields, parts))


@parser(ParserKind.DELIMITED)
def parse_delimited(
    result: ExecutionResult,
    *,
    operation: str,
    fields: Sequence[str],
    into: Callable[[list[dict], dict], CanonicalRecord],
    separator: str = UNIT_SEPARATOR,
) -> CanonicalRecord:
    """Parse one record per non-blank line; short lines are skipped.

    A line cut short by truncation is dropped rather than parsed.
    """
    rows = []
    skipped = 0
    for line in complete_records(result):
        if not line.strip():
            continue
        row = split_record(line, fields, separator)
        if row is None:
            skipped += 1
            continue
        rows.append(row)

    reject_unrecognized(result, operation, len(rows), skipped, f"{len(fields)}-field records")
    if skipped:
        logger.debug(f"Skipped {skipped} short line(s) in {operation} output")
    return into(rows, CanonicalRecord.envelope(result, operation))
