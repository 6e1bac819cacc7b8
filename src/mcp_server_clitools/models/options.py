"""Pydantic input models for the exposed tools.

Field limits bound what a caller can hand to a tool before any argument
vector is built. They are validated by pydantic; flag-injection checks
happen later in each tool's argument builder.
"""

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, Field

INPUT_LIMITS = {
    "string_max": 65_536,
    "short_string_max": 255,
    "path_max": 4_096,
    "array_max": 1_000,
    "message_max": 72_000,
}

ShortString = Annotated[str, Field(max_length=INPUT_LIMITS["short_string_max"])]
PathString = Annotated[str, Field(max_length=INPUT_LIMITS["path_max"])]


def _list_field(**kwargs):
    return Field(default_factory=list, max_length=INPUT_LIMITS["array_max"], **kwargs)


PageLimit = Annotated[int, Field(ge=1, le=1000)]


class ToolOptions(BaseModel):
    """Options shared by every tool."""

    model_config = {"extra": "forbid"}

    compact: Optional[bool] = Field(
        None,
        description="Force the compact (true) or full (false) view. Omit for automatic.",
    )
    timeout: Optional[float] = Field(
        None, gt=0, le=3600, description="Timeout in seconds for the external command."
    )


class GitStatusOptions(ToolOptions):
    repo_path: PathString
    porcelain: Literal["v1", "v2"] = "v1"
    pathspec: list[PathString] = _list_field()
    show_ignored: bool = False


class GitLogOptions(ToolOptions):
    repo_path: PathString
    max_count: PageLimit = 10
    ref: Optional[ShortString] = None
    author: Optional[ShortString] = None
    path: Optional[PathString] = None


class GoTestOptions(ToolOptions):
    path: PathString = Field(description="Module directory to run tests in.")
    packages: list[PathString] = Field(
        default_factory=lambda: ["./..."], max_length=INPUT_LIMITS["array_max"]
    )
    run: Optional[ShortString] = Field(None, description="Only run tests matching this regexp.")
    short: bool = False
    race: bool = False


class GhReleaseListOptions(ToolOptions):
    repo: Optional[ShortString] = Field(None, description="Repository in OWNER/REPO form.")
    path: Optional[PathString] = None
    limit: PageLimit = 30
    exclude_drafts: bool = False
    exclude_pre_releases: bool = False


class GhPrListOptions(ToolOptions):
    repo: Optional[ShortString] = Field(None, description="Repository in OWNER/REPO form.")
    path: Optional[PathString] = None
    state: Literal["open", "closed", "merged", "all"] = "open"
    limit: PageLimit = 30
    author: Optional[ShortString] = None
    base: Optional[ShortString] = None
    labels: list[ShortString] = _list_field()


class DockerPsOptions(ToolOptions):
    all: bool = False
    filters: list[ShortString] = _list_field()
