"""go test -json"""

import logging
from typing import Optional

from ..configuration import ServerConfig, load_config_from_env
from ..core import runner as process_runner
from ..core.projection import ToolOutput, dual_output
from ..core.runner import ExecutionRequest
from ..core.sanitizer import assert_all_safe, assert_safe
from ..models.options import GoTestOptions
from ..parsers import ParserKind, get_parser

logger = logging.getLogger(__name__)

TEST_SHAPE = ParserKind.EVENT_STREAM


def build_test_args(options: GoTestOptions) -> list[str]:
    args = ["test", "-json"]
    if options.short:
        args.append("-short")
    if options.race:
        args.append("-race")
    if options.run:
        assert_safe(options.run, "run")
        args.extend(["-run", options.run])
    assert_all_safe(options.packages, "packages")
    args.extend(options.packages)
    return args


async def go_test(options: GoTestOptions, config: Optional[ServerConfig] = None) -> ToolOutput:
    """Run go tests and aggregate the event stream into a TestRunRecord."""
    config = config or load_config_from_env()
    request = ExecutionRequest(
        "go", build_test_args(options), cwd=options.path, timeout=options.timeout
    )
    result = await process_runner.run(request, config)
    record = get_parser(TEST_SHAPE)(result, operation="go test")
    logger.debug(
        f"go test: {record.passed} passed, {record.failed} failed",
        extra={"operation": "go test", "exit_code": result.exit_code},
    )
    return dual_output(record, result.stdout, options.compact)
