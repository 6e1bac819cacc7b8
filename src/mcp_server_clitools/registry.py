"""Tool registry and routing system for MCP CLI Tools Server"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from mcp.types import Tool
from pydantic import BaseModel, ValidationError

from .core.projection import ToolOutput
from .error_handling import ToolError

logger = logging.getLogger(__name__)


class CliTools(str, Enum):
    """Enumeration of all available tools"""

    GIT_STATUS = "git_status"
    GIT_LOG = "git_log"
    GO_TEST = "go_test"
    GH_RELEASE_LIST = "gh_release_list"
    GH_PR_LIST = "gh_pr_list"
    DOCKER_PS = "docker_ps"


class ToolCategory(str, Enum):
    """Tool categories for organization and routing"""

    GIT = "git"
    GO = "go"
    GITHUB = "github"
    DOCKER = "docker"


@dataclass
class ToolDefinition:
    """Complete tool definition with metadata"""

    name: str
    category: ToolCategory
    description: str
    schema: Type[BaseModel]
    handler: Callable[[Any], Awaitable[ToolOutput]]


class ToolRegistry:
    """Central registry for all exposed CLI tools"""

    def __init__(self):
        self.tools: Dict[str, ToolDefinition] = {}
        self._initialized = False

    def register(self, tool_def: ToolDefinition):
        """Register a tool in the registry"""
        self.tools[tool_def.name] = tool_def
        logger.debug(f"Registered tool: {tool_def.name} ({tool_def.category.value})")

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        """Get tool definition by name"""
        return self.tools.get(name)

    def list_tools(self) -> List[Tool]:
        """Get all tools as MCP Tool objects"""
        return [
            Tool(
                name=tool_def.name,
                description=tool_def.description,
                inputSchema=tool_def.schema.model_json_schema(),
            )
            for tool_def in self.tools.values()
        ]

    def get_tools_by_category(self, category: ToolCategory) -> List[ToolDefinition]:
        """Get all tools in a specific category"""
        return [tool_def for tool_def in self.tools.values() if tool_def.category == category]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> ToolOutput:
        """
        Validate arguments against the tool's schema and run its handler.

        Raises:
            ToolError: Unknown tool, invalid arguments, or any error the
                handler raises (injection, policy, spawn, parse)
        """
        tool_def = self.get_tool(name)
        if tool_def is None:
            raise ToolError(f"Unknown tool: {name}")

        try:
            options = tool_def.schema.model_validate(arguments or {})
        except ValidationError as e:
            raise ToolError(f"Invalid arguments for {name}: {e}") from e

        logger.info(f"Tool call: {name}", extra={"operation": name})
        return await tool_def.handler(options)

    def initialize_default_tools(self):
        """Initialize registry with the default tool set"""
        if self._initialized:
            return

        from .models.options import (
            DockerPsOptions,
            GhPrListOptions,
            GhReleaseListOptions,
            GitLogOptions,
            GitStatusOptions,
            GoTestOptions,
        )
        from .tools import docker_ps, gh_pr_list, gh_release_list, git_log, git_status, go_test

        default_tools = [
            ToolDefinition(
                name=CliTools.GIT_STATUS.value,
                category=ToolCategory.GIT,
                description=(
                    "Show the working tree status: branch, upstream, staged, modified, "
                    "deleted, untracked and conflicted files"
                ),
                schema=GitStatusOptions,
                handler=git_status,
            ),
            ToolDefinition(
                name=CliTools.GIT_LOG.value,
                category=ToolCategory.GIT,
                description="Show the commit log",
                schema=GitLogOptions,
                handler=git_log,
            ),
            ToolDefinition(
                name=CliTools.GO_TEST.value,
                category=ToolCategory.GO,
                description="Run go tests and report per-test outcomes and package failures",
                schema=GoTestOptions,
                handler=go_test,
            ),
            ToolDefinition(
                name=CliTools.GH_RELEASE_LIST.value,
                category=ToolCategory.GITHUB,
                description="List GitHub releases with the total number available",
                schema=GhReleaseListOptions,
                handler=gh_release_list,
            ),
            ToolDefinition(
                name=CliTools.GH_PR_LIST.value,
                category=ToolCategory.GITHUB,
                description="List pull requests with the total number available",
                schema=GhPrListOptions,
                handler=gh_pr_list,
            ),
            ToolDefinition(
                name=CliTools.DOCKER_PS.value,
                category=ToolCategory.DOCKER,
                description="List docker containers",
                schema=DockerPsOptions,
                handler=docker_ps,
            ),
        ]
        for tool_def in default_tools:
            self.register(tool_def)

        self._initialized = True
        logger.info(f"Initialized {len(self.tools)} tools")
