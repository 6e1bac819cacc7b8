"""GitHub CLI list operations: gh release list, gh pr list"""

import functools
import logging
from typing import Optional

from ..configuration import ServerConfig, load_config_from_env
from ..core.listing import list_with_total, needs_probe
from ..core.projection import ToolOutput, dual_output
from ..core.runner import ExecutionRequest
from ..core.sanitizer import assert_safe
from ..models.options import GhPrListOptions, GhReleaseListOptions
from ..models.records import (
    PullRequestEntry,
    PullRequestListRecord,
    ReleaseEntry,
    ReleaseListRecord,
)
from ..parsers import ParserKind, get_parser

logger = logging.getLogger(__name__)

LIST_SHAPE = ParserKind.DOCUMENT

RELEASE_JSON_FIELDS = "tagName,name,isDraft,isPrerelease,publishedAt,url,isLatest,createdAt"
PR_JSON_FIELDS = "number,title,state,url,headRefName,author"


def _repo_args(repo: Optional[str]) -> list[str]:
    if not repo:
        return []
    assert_safe(repo, "repo")
    return ["--repo", repo]


def build_release_list_args(options: GhReleaseListOptions, limit: Optional[int] = None) -> list[str]:
    """Build `gh release list`; ``limit`` overrides the caller's page size for probes."""
    args = [
        "release",
        "list",
        "--json",
        RELEASE_JSON_FIELDS,
        "--limit",
        str(limit if limit is not None else options.limit),
    ]
    if options.exclude_drafts:
        args.append("--exclude-drafts")
    if options.exclude_pre_releases:
        args.append("--exclude-pre-releases")
    args.extend(_repo_args(options.repo))
    return args


def build_pr_list_args(options: GhPrListOptions, limit: Optional[int] = None) -> list[str]:
    args = [
        "pr",
        "list",
        "--json",
        PR_JSON_FIELDS,
        "--state",
        options.state,
        "--limit",
        str(limit if limit is not None else options.limit),
    ]
    if options.author:
        assert_safe(options.author, "author")
        args.extend(["--author", options.author])
    if options.base:
        assert_safe(options.base, "base")
        args.extend(["--base", options.base])
    for label in options.labels:
        assert_safe(label, "labels")
        args.extend(["--label", label])
    args.extend(_repo_args(options.repo))
    return args


def _release_record(value, envelope: dict) -> ReleaseListRecord:
    if not isinstance(value, list):
        raise ValueError(f"expected a JSON array, got {type(value).__name__}")
    releases = [
        ReleaseEntry(
            tag=item["tagName"],
            name=item.get("name") or "",
            draft=bool(item.get("isDraft")),
            prerelease=bool(item.get("isPrerelease")),
            published_at=item.get("publishedAt") or None,
            url=item.get("url"),
            is_latest=bool(item.get("isLatest")),
            created_at=item.get("createdAt"),
        )
        for item in value
    ]
    return ReleaseListRecord(**envelope, releases=releases, total=len(releases))


def _pr_record(value, envelope: dict) -> PullRequestListRecord:
    if not isinstance(value, list):
        raise ValueError(f"expected a JSON array, got {type(value).__name__}")
    pull_requests = [
        PullRequestEntry(
            number=item["number"],
            title=item.get("title", ""),
            state=item.get("state", ""),
            url=item.get("url"),
            head_branch=item.get("headRefName"),
            author=(item.get("author") or {}).get("login"),
        )
        for item in value
    ]
    return PullRequestListRecord(
        **envelope, pull_requests=pull_requests, total=len(pull_requests)
    )


async def _list_operation(operation, args, probe_args, cwd, options, into, config):
    page = ExecutionRequest("gh", args, cwd=cwd, timeout=options.timeout)
    probe = None
    if probe_args is not None:
        probe = ExecutionRequest("gh", probe_args, cwd=cwd, timeout=options.timeout)

    parse = functools.partial(get_parser(LIST_SHAPE), operation=operation, into=into)
    listed = await list_with_total(
        page, probe, parse, count=lambda record: record.total, config=config
    )
    record = listed.record
    if listed.total_available is not None:
        record = record.model_copy(update={"total_available": listed.total_available})
    return dual_output(record, listed.result.stdout, options.compact)


async def gh_release_list(
    options: GhReleaseListOptions, config: Optional[ServerConfig] = None
) -> ToolOutput:
    """List releases; a probe at the ceiling reports how many exist in total."""
    config = config or load_config_from_env()
    probe_args = None
    if needs_probe(options.limit, config.probe_ceiling):
        probe_args = build_release_list_args(options, limit=config.probe_ceiling)
    return await _list_operation(
        "gh release list",
        build_release_list_args(options),
        probe_args,
        options.path,
        options,
        _release_record,
        config,
    )


async def gh_pr_list(options: GhPrListOptions, config: Optional[ServerConfig] = None) -> ToolOutput:
    """List pull requests; a probe at the ceiling reports how many exist in total."""
    config = config or load_config_from_env()
    probe_args = None
    if needs_probe(options.limit, config.probe_ceiling):
        probe_args = build_pr_list_args(options, limit=config.probe_ceiling)
    return await _list_operation(
        "gh pr list",
        build_pr_list_args(options),
        probe_args,
        options.path,
        options,
        _pr_record,
        config,
    )
