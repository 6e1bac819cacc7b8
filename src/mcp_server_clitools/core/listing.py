"""Page-plus-probe pattern for list operations.

A list operation runs the caller's page query and, separately, a probe
query at a fixed high limit whose only job is to count how many items
exist. The probe never populates returned items and never fails the call.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from ..configuration import DEFAULT_PROBE_CEILING, ServerConfig
from ..error_handling import ParseFailure
from . import runner as process_runner
from .runner import ExecutionRequest, ExecutionResult

logger = logging.getLogger(__name__)

PROBE_CEILING = DEFAULT_PROBE_CEILING

R = TypeVar("R")


@dataclass(frozen=True)
class ListPage(Generic[R]):
    """The parsed page, its raw result, and the probe's count if it had one."""

    result: ExecutionResult
    record: R
    total_available: Optional[int] = None


def needs_probe(limit: int, ceiling: int = PROBE_CEILING) -> bool:
    """A probe only adds information when the page limit is below the ceiling."""
    return limit < ceiling


def _probe_total(
    outcome: Any,
    parse: Callable[[ExecutionResult], R],
    count: Callable[[R], int],
    probe: ExecutionRequest,
) -> Optional[int]:
    if isinstance(outcome, BaseException):
        logger.debug(f"Probe {probe.command_line} raised {outcome!r}; omitting total")
        return None
    if not outcome.ok or outcome.truncated:
        logger.debug(
            f"Probe {probe.command_line} unusable "
            f"(exit {outcome.exit_code}, timed_out={outcome.timed_out}, "
            f"truncated={outcome.truncated}); omitting total",
            extra={"command": probe.program, "exit_code": outcome.exit_code},
        )
        return None
    try:
        return count(parse(outcome))
    except ParseFailure as e:
        logger.debug(f"Probe output could not be parsed: {e}; omitting total")
        return None


async def list_with_total(
    page: ExecutionRequest,
    probe: Optional[ExecutionRequest],
    parse: Callable[[ExecutionResult], R],
    *,
    count: Callable[[R], int],
    config: Optional[ServerConfig] = None,
) -> ListPage[R]:
    """
    Run a page query and an optional probe query concurrently.

    Args:
        page: Request carrying the caller's limit
        probe: Same query at the probe ceiling, or None to skip counting
        parse: Parser turning a result into a record
        count: Number of items in a parsed record
        config: Execution configuration passed to the runner

    Returns:
        ListPage with the page record and the probe total (None if omitted)

    Raises:
        Whatever the page query or its parse raises. Probe problems only
        omit the total.
    """
    if probe is None:
        result = await process_runner.run(page, config)
        return ListPage(result=result, record=parse(result))

    page_outcome, probe_outcome = await asyncio.gather(
        process_runner.run(page, config),
        process_runner.run(probe, config),
        return_exceptions=True,
    )
    if isinstance(page_outcome, BaseException):
        raise page_outcome

    record = parse(page_outcome)
    total = _probe_total(probe_outcome, parse, count, probe)
    return ListPage(result=page_outcome, record=record, total_available=total)
