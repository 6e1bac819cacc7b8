"""Error taxonomy and failure classification for MCP CLI Tools Server."""

import logging
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ToolError(Exception):
    """Base class for errors that abort a single tool call."""


class InjectionRejected(ToolError):
    """A caller-supplied value looked like a command-line flag."""

    def __init__(self, field_name: str, value: str):
        self.field_name = field_name
        self.value = value
        super().__init__(
            f'Invalid {field_name}: "{value}". Values must not start with "-".'
        )


class PolicyViolation(ToolError):
    """A command or working directory is outside the configured policy."""


class SpawnFailure(ToolError):
    """The external program could not be started."""

    def __init__(self, program: str, message: str):
        self.program = program
        super().__init__(message)


class ParseFailure(ToolError):
    """Captured output could not be interpreted by a parser."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class ErrorCategory(str, Enum):
    """Coarse classes of external-tool failures."""

    COMMAND_NOT_FOUND = "command-not-found"
    PERMISSION_DENIED = "permission-denied"
    TIMEOUT = "timeout"
    INVALID_INPUT = "invalid-input"
    NOT_FOUND = "not-found"
    NETWORK_ERROR = "network-error"
    AUTHENTICATION_ERROR = "authentication-error"
    CONFLICT = "conflict"
    CONFIGURATION_ERROR = "configuration-error"
    ALREADY_EXISTS = "already-exists"
    COMMAND_FAILED = "command-failed"


class ErrorReport(BaseModel):
    """Structured description of a failed command."""

    category: ErrorCategory
    message: str
    command: Optional[str] = None
    exit_code: Optional[int] = None
    suggestion: Optional[str] = None


TIMEOUT_EXIT_CODE = 124

_PATTERNS: list[tuple[ErrorCategory, tuple[str, ...]]] = [
    (
        ErrorCategory.COMMAND_NOT_FOUND,
        ("command not found", "not recognized", "enoent", "no such file or directory"),
    ),
    (
        ErrorCategory.AUTHENTICATION_ERROR,
        (
            "authentication",
            "authenticated",
            "credential",
            "unauthorized",
            "permission denied (publickey",
            "bad credentials",
            "login required",
        ),
    ),
    (
        ErrorCategory.PERMISSION_DENIED,
        ("permission denied", "eacces", "eperm", "access denied", "operation not permitted"),
    ),
    (
        ErrorCategory.NETWORK_ERROR,
        (
            "connection refused",
            "econnrefused",
            "etimedout",
            "econnreset",
            "enetunreach",
            "could not resolve host",
            "network is unreachable",
            "dns resolution failed",
        ),
    ),
    (ErrorCategory.ALREADY_EXISTS, ("already exists", "already exist")),
    (
        ErrorCategory.CONFIGURATION_ERROR,
        (
            "missing config",
            "configuration error",
            "config file not found",
            "invalid configuration",
            "no configuration",
            "could not read config",
        ),
    ),
    (ErrorCategory.CONFLICT, ("conflict", "lock file", "locked")),
    (
        ErrorCategory.NOT_FOUND,
        ("not found", "does not exist", "no such", "unknown revision", "pathspec"),
    ),
]

_HTTP_AUTH_RE = re.compile(r" 40[13][ :]")
_HTTP_NOT_FOUND_RE = re.compile(r" 404[ :]")

_SUGGESTIONS = {
    ErrorCategory.COMMAND_NOT_FOUND: 'Ensure "{command}" is installed and available in your PATH.',
    ErrorCategory.PERMISSION_DENIED: "Check file/directory permissions or run with elevated privileges.",
    ErrorCategory.TIMEOUT: "The command took too long. Retry with a longer timeout or a smaller scope.",
    ErrorCategory.INVALID_INPUT: "Check the input parameters and try again.",
    ErrorCategory.NOT_FOUND: "Verify the resource (file, branch, ref, etc.) exists.",
    ErrorCategory.NETWORK_ERROR: "Check your network connection and try again.",
    ErrorCategory.AUTHENTICATION_ERROR: "Verify your credentials or tokens are valid and not expired.",
    ErrorCategory.CONFLICT: "Resolve the conflict or release the lock and retry.",
    ErrorCategory.CONFIGURATION_ERROR: "Check that all required config files exist and are valid.",
    ErrorCategory.ALREADY_EXISTS: "The resource already exists. Use a different name or remove it first.",
    ErrorCategory.COMMAND_FAILED: 'Inspect the error message from "{command}" for more details.',
}


def classify_text(text: str, exit_code: int) -> ErrorCategory:
    """Map error text and exit code to the most specific category.

    Order matters: "permission denied (publickey)" is an authentication
    problem, not a filesystem one, and conflict messages can mention paths
    that were "not found".
    """
    if exit_code == TIMEOUT_EXIT_CODE:
        return ErrorCategory.TIMEOUT

    lower = text.lower()
    if "timed out" in lower or "timeout" in lower:
        return ErrorCategory.TIMEOUT

    for category, needles in _PATTERNS:
        if category == ErrorCategory.AUTHENTICATION_ERROR and _HTTP_AUTH_RE.search(lower):
            return category
        if category == ErrorCategory.NOT_FOUND and _HTTP_NOT_FOUND_RE.search(lower):
            return category
        if any(needle in lower for needle in needles):
            return category

    return ErrorCategory.COMMAND_FAILED


def classify_failure(result, command: str) -> ErrorReport:
    """
    Classify a failed execution result into an ErrorReport.

    Args:
        result: The ExecutionResult of the failed command
        command: Human-readable label for the command, e.g. "git status"

    Returns:
        ErrorReport with category, message and recovery suggestion
    """
    text = result.stderr or result.stdout
    if result.timed_out:
        category = ErrorCategory.TIMEOUT
    else:
        category = classify_text(text, result.exit_code)

    message = text.strip() or f"{command} failed with exit code {result.exit_code}"
    report = ErrorReport(
        category=category,
        message=message,
        command=command,
        exit_code=result.exit_code,
        suggestion=_SUGGESTIONS[category].format(command=command),
    )
    logger.debug(f"Classified failure of {command} as {category.value}")
    return report
