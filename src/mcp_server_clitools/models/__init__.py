"""
MCP CLI Tools Server Models Module

Canonical records produced by the output parsers and the option models
each tool validates its arguments with.
"""

from .options import (
    INPUT_LIMITS,
    DockerPsOptions,
    GhPrListOptions,
    GhReleaseListOptions,
    GitLogOptions,
    GitStatusOptions,
    GoTestOptions,
    ToolOptions,
)
from .records import (
    CommitEntry,
    CommitLogRecord,
    ContainerEntry,
    ContainerListRecord,
    GroupFailure,
    MemberOutcome,
    PullRequestEntry,
    PullRequestListRecord,
    ReleaseEntry,
    ReleaseListRecord,
    StagedEntry,
    StatusRecord,
    TestRunRecord,
)

__all__ = [
    "INPUT_LIMITS",
    "ToolOptions",
    "GitStatusOptions",
    "GitLogOptions",
    "GoTestOptions",
    "GhReleaseListOptions",
    "GhPrListOptions",
    "DockerPsOptions",
    "CommitEntry",
    "CommitLogRecord",
    "ContainerEntry",
    "ContainerListRecord",
    "GroupFailure",
    "MemberOutcome",
    "PullRequestEntry",
    "PullRequestListRecord",
    "ReleaseEntry",
    "ReleaseListRecord",
    "StagedEntry",
    "StatusRecord",
    "TestRunRecord",
]
