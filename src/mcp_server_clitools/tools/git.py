"""git status and git log"""

import logging
from typing import Optional

from ..configuration import ServerConfig, load_config_from_env
from ..core import runner as process_runner
from ..core.projection import ToolOutput, dual_output
from ..core.runner import ExecutionRequest
from ..core.sanitizer import assert_all_safe, assert_safe
from ..models.options import GitLogOptions, GitStatusOptions
from ..models.records import CommitEntry, CommitLogRecord
from ..parsers import ParserKind, StatusVariant, get_parser

logger = logging.getLogger(__name__)

STATUS_SHAPE = ParserKind.STATUS
LOG_SHAPE = ParserKind.DELIMITED

LOG_FIELDS = ("hash", "short_hash", "author", "email", "date", "refs", "subject")
# hash, short hash, author, email, ISO date, ref names, subject
LOG_FORMAT = "%H%x1f%h%x1f%an%x1f%ae%x1f%aI%x1f%D%x1f%s"


def build_status_args(options: GitStatusOptions) -> list[str]:
    """Build the argument vector for porcelain status, always NUL-terminated."""
    args = ["status", f"--porcelain={options.porcelain}", "-z", "--branch"]
    if options.porcelain == "v2":
        args.append("--show-stash")
    if options.show_ignored:
        args.append("--ignored")
    if options.pathspec:
        assert_all_safe(options.pathspec, "pathspec")
        args.append("--")
        args.extend(options.pathspec)
    return args


def status_variant(options: GitStatusOptions) -> StatusVariant:
    return StatusVariant.V2_Z if options.porcelain == "v2" else StatusVariant.V1_Z


def build_log_args(options: GitLogOptions) -> list[str]:
    args = ["log", f"--max-count={options.max_count}", f"--format={LOG_FORMAT}"]
    if options.author:
        assert_safe(options.author, "author")
        args.append(f"--author={options.author}")
    if options.ref:
        assert_safe(options.ref, "ref")
        args.append(options.ref)
    if options.path:
        assert_safe(options.path, "path")
        args.extend(["--", options.path])
    return args


def _commit_log_record(rows: list[dict], envelope: dict) -> CommitLogRecord:
    commits = [CommitEntry(**{**row, "refs": row["refs"] or None}) for row in rows]
    return CommitLogRecord(**envelope, commits=commits, total=len(commits))


async def git_status(
    options: GitStatusOptions, config: Optional[ServerConfig] = None
) -> ToolOutput:
    """Working tree status as a StatusRecord."""
    config = config or load_config_from_env()
    request = ExecutionRequest(
        "git", build_status_args(options), cwd=options.repo_path, timeout=options.timeout
    )
    result = await process_runner.run(request, config)
    record = get_parser(STATUS_SHAPE)(
        result, operation="git status", variant=status_variant(options)
    )
    return dual_output(record, result.stdout, options.compact)


async def git_log(options: GitLogOptions, config: Optional[ServerConfig] = None) -> ToolOutput:
    """Commit history as a CommitLogRecord."""
    config = config or load_config_from_env()
    request = ExecutionRequest(
        "git", build_log_args(options), cwd=options.repo_path, timeout=options.timeout
    )
    result = await process_runner.run(request, config)
    record = get_parser(LOG_SHAPE)(
        result, operation="git log", fields=LOG_FIELDS, into=_commit_log_record
    )
    return dual_output(record, result.stdout, options.compact)
