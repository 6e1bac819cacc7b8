"""
Output parsers, one per output shape.

Each tool declares which shape its wrapped command emits; nothing here
sniffs output to guess a format.
"""

from .base import ParserKind, parser
from .delimited import UNIT_SEPARATOR, parse_delimited
from .documents import iter_json_objects, parse_document, parse_json_lines
from .events import EventStreamAggregator, parse_event_stream
from .status import StatusVariant, parse_status, unquote_path

PARSERS = {
    ParserKind.DOCUMENT: parse_document,
    ParserKind.JSON_LINES: parse_json_lines,
    ParserKind.EVENT_STREAM: parse_event_stream,
    ParserKind.STATUS: parse_status,
    ParserKind.DELIMITED: parse_delimited,
}


def get_parser(kind: ParserKind):
    """Return the parser for a declared output shape."""
    return PARSERS[ParserKind(kind)]


__all__ = [
    "ParserKind",
    "PARSERS",
    "get_parser",
    "parser",
    "UNIT_SEPARATOR",
    "parse_delimited",
    "parse_document",
    "parse_json_lines",
    "iter_json_objects",
    "parse_event_stream",
    "EventStreamAggregator",
    "parse_status",
    "StatusVariant",
    "unquote_path",
]
