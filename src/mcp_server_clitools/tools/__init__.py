"""Tool modules: argument builders plus one async operation per exposed tool."""

from .docker import docker_ps
from .git import git_log, git_status
from .github import gh_pr_list, gh_release_list
from .go import go_test

__all__ = [
    "docker_ps",
    "git_log",
    "git_status",
    "gh_pr_list",
    "gh_release_list",
    "go_test",
]
