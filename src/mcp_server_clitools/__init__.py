import os
from datetime import datetime
from pathlib import Path

import click

from .server import main as serve


@click.command()
@click.option("--root", "-r", type=Path, help="Project root; its .env file is loaded")
@click.option("-v", "--verbose", count=True)
@click.option(
    "--enable-file-logging",
    is_flag=True,
    help="Enable logging to file in logs/ directory",
)
@click.option(
    "--test-mode",
    is_flag=True,
    help="Run in test mode for CI (stays alive without immediate stdio)",
)
def main(root: Path | None, verbose: int, enable_file_logging: bool, test_mode: bool) -> None:
    """MCP CLI Tools Server - structured results from command-line tools"""
    import asyncio

    if verbose == 1:
        os.environ["LOG_LEVEL"] = "INFO"
    elif verbose >= 2:
        os.environ["LOG_LEVEL"] = "DEBUG"

    log_file = None
    if enable_file_logging:
        logs_dir = (root if root else Path.cwd()) / "logs"
        logs_dir.mkdir(exist_ok=True)
        session_id = os.environ.get(
            "MCP_SESSION_ID", datetime.now().strftime("%Y%m%d_%H%M%S")
        )
        log_file = str(logs_dir / f"mcp_clitools_debug-{session_id}.log")
        click.echo(f"Debug logging enabled: {log_file}", err=True)

    asyncio.run(serve(root, test_mode=test_mode, log_file=log_file))


if __name__ == "__main__":
    main()
