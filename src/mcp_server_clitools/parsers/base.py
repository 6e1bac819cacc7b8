"""Shared plumbing for output parsers."""

import functools
import logging
from enum import Enum
from typing import Any, Callable, TypeVar

from ..core.capture import TRUNCATION_MARKER
from ..core.runner import ExecutionResult
from ..error_handling import ParseFailure

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class ParserKind(str, Enum):
    """The closed set of output shapes a tool can declare."""

    DOCUMENT = "document"
    JSON_LINES = "json-lines"
    EVENT_STREAM = "event-stream"
    STATUS = "status"
    DELIMITED = "delimited"


def parser(kind: ParserKind) -> Callable[[F], F]:
    """
    Mark a function as the parser for one output shape.

    The wrapped parser raises only ParseFailure: any other exception from
    decoding or record validation is converted, with the original chained.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(result: ExecutionResult, *, operation: str, **kwargs: Any):
            try:
                return func(result, operation=operation, **kwargs)
            except ParseFailure:
                raise
            except Exception as e:
                logger.debug(
                    f"{kind.value} parser failed for {operation}: {e}",
                    extra={"operation": operation},
                )
                raise ParseFailure(
                    operation, f"could not interpret {kind.value} output: {e}"
                ) from e

        wrapper.kind = kind  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator


def is_blank(text: str) -> bool:
    return not text or text.isspace()


def reject_unrecognized(
    result: ExecutionResult, operation: str, recognized: int, unrecognized: int, what: str
) -> None:
    """Raise when a successful run produced lines but none of them parsed.

    Output of a failed or timed-out run is not held to the format: the
    record's envelope already reports the failure.
    """
    if result.ok and recognized == 0 and unrecognized > 0:
        raise ParseFailure(
            operation, f"none of {unrecognized} output line(s) looked like {what}"
        )


def captured_text(result: ExecutionResult) -> tuple[str, bool]:
    """Return stdout without the truncation marker, and whether it was cut."""
    text = result.stdout
    if result.truncated and text.endswith(TRUNCATION_MARKER):
        return text[: -len(TRUNCATION_MARKER)], True
    return text, False


def complete_records(result: ExecutionResult, terminator: str = "\n") -> list[str]:
    """
    Split stdout into records, dropping one that truncation cut short.

    A cut stream keeps only records whose terminator arrived; the text after
    the last terminator is a fragment. Only stdout that carries the marker
    is trimmed: a run whose stderr alone was truncated keeps every record.
    """
    text, cut = captured_text(result)
    records = text.split(terminator)
    if cut:
        fragment = records.pop()
        if fragment:
            logger.debug(f"Dropped incomplete trailing record {fragment[:80]!r}")
    return records
