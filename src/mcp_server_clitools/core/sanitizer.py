"""Argument sanitizing and execution policy checks.

Every caller-supplied value that lands in a non-fixed position of an argument
vector goes through :func:`assert_safe` first. This is the only defense
against flag injection: no shell is ever involved, so quoting is not the
problem, option parsing in the wrapped tool is.
"""

import logging
import os
import re
from pathlib import Path
from typing import Iterable, Optional

from ..error_handling import InjectionRejected, PolicyViolation

logger = logging.getLogger(__name__)

# "-" alone, or "-" followed by any non-digit: "-1" passes, "-.5" and "-_x" do not
_FLAG_LIKE = re.compile(r"^-(?:$|[^0-9])")

_EXECUTABLE_SUFFIX = re.compile(r"\.(cmd|exe|bat|sh)$", re.IGNORECASE)


def is_flag_like(value: str) -> bool:
    """Return True when value would be parsed as an option by most CLIs.

    Only a digit after the dash marks data. This is stricter than letters-only
    option syntax: "-.5", "-_x" and "-@file" are all rejected.
    """
    return bool(_FLAG_LIKE.match(value.lstrip()))


def assert_safe(value: str, field_name: str, *, allow_flags: bool = False) -> None:
    """
    Reject a caller-supplied value that looks like a command-line flag.

    Leading whitespace is ignored when checking, since many CLIs strip it
    before option parsing.

    Args:
        value: The value about to be placed in an argument vector
        field_name: Name of the input field, used in the error message
        allow_flags: True only for fields documented as raw flag passthrough

    Raises:
        InjectionRejected: If the value is flag-like and not whitelisted
    """
    if allow_flags:
        return
    if is_flag_like(value):
        logger.warning(f"Rejected flag-like value for {field_name}")
        raise InjectionRejected(field_name, value)


def assert_all_safe(
    values: Iterable[str], field_name: str, *, allow_flags: bool = False
) -> None:
    """Apply assert_safe to every element, whatever its position."""
    for value in values:
        assert_safe(value, field_name, allow_flags=allow_flags)


def _command_basename(program: str) -> str:
    base = program.replace("\\", "/").rsplit("/", 1)[-1]
    return _EXECUTABLE_SUFFIX.sub("", base)


def assert_allowed_command(program: str, allowed: Optional[Iterable[str]]) -> None:
    """
    Enforce the allowed-commands policy. No-op when the policy is unset.

    Paths and executable suffixes are stripped before comparing, so
    "/usr/bin/git" and "git.exe" both match an allowlist entry "git".
    """
    if not allowed:
        return
    allowed_set = set(allowed)
    base = _command_basename(program)
    lowered = {name.lower() for name in allowed_set}
    if base in allowed_set or program in allowed_set or base.lower() in lowered:
        return
    raise PolicyViolation(
        f'Command "{program}" is not allowed by ALLOWED_COMMANDS policy. '
        f"Allowed: {', '.join(sorted(allowed_set))}"
    )


def assert_allowed_root(path: str, roots: Optional[Iterable[str]]) -> None:
    """
    Enforce the allowed-roots policy. No-op when the policy is unset.

    The target must resolve to one of the roots or a descendant of one.
    """
    if not roots:
        return
    roots = list(roots)
    target = Path(os.path.abspath(path)).resolve()
    for root in roots:
        root_path = Path(os.path.abspath(root)).resolve()
        if target == root_path or root_path in target.parents:
            return
    raise PolicyViolation(
        f'Path "{path}" is outside allowed roots. Allowed roots: {", ".join(roots)}'
    )
