"""
MCP CLI Tools Server - exposes command-line tools as structured MCP tools.

Every call runs one external program through the core pipeline and returns
rendered text alongside the structured (full or compact) record.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .configuration import load_environment_variables
from .logging_config import configure_logging
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-clitools"


def create_server(registry: Optional[ToolRegistry] = None) -> Server:
    """Build the MCP server with list_tools/call_tool bound to a registry."""
    if registry is None:
        registry = ToolRegistry()
        registry.initialize_default_tools()

    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> List[Tool]:
        """Return available tools"""
        return registry.list_tools()

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]):
        """Run a tool; ToolError propagates so the client sees isError."""
        output = await registry.call_tool(name, arguments)
        return [TextContent(type="text", text=output.text)], output.structured

    return server


async def main(
    root: Optional[Path] = None,
    test_mode: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Run the server over stdio until the client disconnects."""
    load_environment_variables(root)
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"), log_file=log_file)

    logger.info("Starting MCP CLI Tools Server")
    server = create_server()

    if test_mode:
        logger.info("Running in test mode - staying alive for CI testing")
        await asyncio.sleep(10)
        logger.info("Test mode completed successfully")
        return

    try:
        options = server.create_initialization_options()
        async with stdio_server() as (read_stream, write_stream):
            logger.info("Server running. Waiting for requests...")
            await server.run(read_stream, write_stream, options, raise_exceptions=False)
    except Exception as e:
        logger.exception(f"Critical Error: Server stopped due to unhandled exception: {e}")
        sys.exit(1)
    finally:
        logger.info("MCP CLI Tools Server shutting down.")
