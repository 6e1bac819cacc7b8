"""docker ps"""

import logging
from typing import Optional

from ..configuration import ServerConfig, load_config_from_env
from ..core import runner as process_runner
from ..core.projection import ToolOutput, dual_output
from ..core.runner import ExecutionRequest
from ..core.sanitizer import assert_safe
from ..models.options import DockerPsOptions
from ..models.records import ContainerEntry, ContainerListRecord
from ..parsers import ParserKind, get_parser

logger = logging.getLogger(__name__)

PS_SHAPE = ParserKind.JSON_LINES


def build_ps_args(options: DockerPsOptions) -> list[str]:
    args = ["ps", "--format", "{{json .}}", "--no-trunc"]
    if options.all:
        args.append("--all")
    for value in options.filters:
        assert_safe(value, "filters")
        args.extend(["--filter", value])
    return args


def _is_running(item: dict) -> bool:
    state = item.get("State")
    if state:
        return state == "running"
    # older engines only report Status ("Up 3 hours")
    return str(item.get("Status", "")).startswith("Up")


def _container_record(items: list[dict], envelope: dict) -> ContainerListRecord:
    containers = [
        ContainerEntry(
            id=item.get("ID", ""),
            name=item.get("Names", ""),
            image=item.get("Image", ""),
            status=item.get("Status", ""),
            state=item.get("State") or None,
            ports=item.get("Ports", ""),
        )
        for item in items
    ]
    running = sum(1 for item in items if _is_running(item))
    return ContainerListRecord(
        **envelope, containers=containers, total=len(containers), running=running
    )


async def docker_ps(options: DockerPsOptions, config: Optional[ServerConfig] = None) -> ToolOutput:
    """List containers, one JSON object per line of docker output."""
    config = config or load_config_from_env()
    request = ExecutionRequest("docker", build_ps_args(options), timeout=options.timeout)
    result = await process_runner.run(request, config)
    record = get_parser(PS_SHAPE)(result, operation="docker ps", into=_container_record)
    return dual_output(record, result.stdout, options.compact)
