"""Configuration module for MCP CLI Tools Server.

Configuration is a single validated Pydantic model built from ``CLITOOLS_*``
environment variables. It is rebuilt on every call to
:func:`load_config_from_env`; nothing is cached at module level, so two tool
calls never share mutable configuration state.

Environment variable binding:
    ```bash
    export CLITOOLS_DEFAULT_TIMEOUT_SECONDS=120
    export CLITOOLS_MAX_OUTPUT_BYTES=1048576
    export CLITOOLS_PROBE_CEILING=1000
    export CLITOOLS_ALLOWED_COMMANDS=git,gh,go,docker
    export CLITOOLS_ALLOWED_ROOTS=/home/user/projects,/tmp/builds
    export CLITOOLS_SANITIZE_ALL_PATHS=true
    export LOG_LEVEL=DEBUG
    ```

Usage examples:
    >>> from mcp_server_clitools.configuration import load_config_from_env
    >>> config = load_config_from_env()
    >>> config.default_timeout_seconds
    60.0

Configuration testing:
    >>> from mcp_server_clitools.configuration import create_test_config
    >>> test_config = create_test_config(default_timeout_seconds=1)
"""

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import dotenv_values, load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "CLITOOLS_"

DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
DEFAULT_PROBE_CEILING = 1000

_TRUE_VALUES = {"1", "true", "yes", "on"}

TOKEN_VARIABLES = ("GITHUB_TOKEN", "GH_TOKEN")
TOKEN_PLACEHOLDERS = {"", "YOUR_TOKEN_HERE", "REPLACE_ME", "TODO", "CHANGEME"}


class ServerConfig(BaseModel):
    """Validated execution settings shared by every tool call."""

    default_timeout_seconds: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0)
    max_output_bytes: int = Field(DEFAULT_MAX_OUTPUT_BYTES, gt=0)
    probe_ceiling: int = Field(DEFAULT_PROBE_CEILING, gt=0)
    allowed_commands: Optional[frozenset[str]] = None
    allowed_roots: Optional[tuple[str, ...]] = None
    sanitize_all_paths: bool = False
    log_level: str = "INFO"

    model_config = {"frozen": True}

    @field_validator("allowed_commands", "allowed_roots", mode="before")
    @classmethod
    def _split_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",") if item.strip()]
            return items or None
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """Build a ServerConfig from CLITOOLS_* variables (and LOG_LEVEL)."""
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    for name in ServerConfig.model_fields:
        key = ENV_PREFIX + name.upper()
        raw = env.get(key)
        if raw is None or raw.strip() == "":
            continue
        if name == "sanitize_all_paths":
            values[name] = raw.strip().lower() in _TRUE_VALUES
        else:
            values[name] = raw.strip()

    if "log_level" not in values and env.get("LOG_LEVEL"):
        values["log_level"] = env["LOG_LEVEL"]

    return ServerConfig(**values)


def create_test_config(**overrides: Any) -> ServerConfig:
    """Create a configuration with fast defaults suitable for tests."""
    values: dict[str, Any] = {"default_timeout_seconds": 5.0, "log_level": "DEBUG"}
    values.update(overrides)
    return ServerConfig(**values)


def _is_placeholder_token(token: Optional[str]) -> bool:
    return token is None or token.strip() in TOKEN_PLACEHOLDERS


def load_environment_variables(root: Optional[Path] = None) -> list[str]:
    """Load .env files without overriding variables that are already set.

    Order of precedence:
    1. Existing process environment
    2. Project .env file (current working directory)
    3. Root .env file (if a root path is provided)

    Special handling for the GitHub CLI tokens (GITHUB_TOKEN, GH_TOKEN):
    empty, whitespace-only and placeholder values in the environment are
    replaced by a real value from a .env file. MCP clients often pass
    these through as "".

    Returns:
        Paths of the files that were loaded
    """
    loaded: list[str] = []
    candidates = [Path.cwd() / ".env"]
    if root is not None:
        candidates.append(Path(root) / ".env")

    for env_file in candidates:
        if not env_file.is_file() or str(env_file) in loaded:
            continue
        tokens_before = {name: os.environ.get(name) for name in TOKEN_VARIABLES}
        load_dotenv(env_file, override=False)

        file_values = dotenv_values(env_file)
        for name, before in tokens_before.items():
            value = file_values.get(name)
            if _is_placeholder_token(before) and not _is_placeholder_token(value):
                os.environ[name] = value

        loaded.append(str(env_file))
        logger.info(f"Loaded environment variables from {env_file}")

    return loaded


__all__ = [
    "ServerConfig",
    "load_config_from_env",
    "create_test_config",
    "load_environment_variables",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_MAX_OUTPUT_BYTES",
    "DEFAULT_PROBE_CEILING",
]
