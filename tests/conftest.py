"""
Global pytest configuration and fixtures.

This file provides:
1. Factories for ExecutionResult values, so parser tests need no processes
2. A scripted fake runner that records every ExecutionRequest it receives
3. Fast test configuration and temporary directories
4. Automatic unit/integration marking by test location
"""

import shutil
import sys
import tempfile
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest

from mcp_server_clitools.configuration import ServerConfig, create_test_config
from mcp_server_clitools.core import runner as process_runner
from mcp_server_clitools.core.capture import BoundedCapture
from mcp_server_clitools.core.runner import ExecutionRequest, ExecutionResult


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def fast_config() -> ServerConfig:
    return create_test_config()


@pytest.fixture
def python_exe() -> str:
    """Interpreter used as a portable child process."""
    return sys.executable


@pytest.fixture
def make_result() -> Callable[..., ExecutionResult]:
    """Factory for ExecutionResult with success defaults."""

    def _make(
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
        truncated: bool = False,
        timed_out: bool = False,
    ) -> ExecutionResult:
        return ExecutionResult(
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            truncated=truncated,
            timed_out=timed_out,
        )

    return _make


@pytest.fixture
def captured_result() -> Callable[..., ExecutionResult]:
    """Factory for ExecutionResult whose stdout went through a BoundedCapture.

    The bytes are fed the way the runner feeds a pipe, so a limit produces
    the same cut and marker a real run would.
    """

    def _make(
        data: bytes,
        max_bytes: Optional[int] = None,
        max_lines: Optional[int] = None,
        exit_code: int = 0,
    ) -> ExecutionResult:
        capture = BoundedCapture(max_bytes=max_bytes, max_lines=max_lines)
        capture.feed(data)
        return ExecutionResult(
            stdout=capture.text(),
            stderr="",
            exit_code=exit_code,
            truncated=capture.truncated,
        )

    return _make


class FakeRunner:
    """Stands in for runner.run: answers requests from a script, records them."""

    def __init__(self):
        self.requests: list[ExecutionRequest] = []
        self._responders: list[Callable[[ExecutionRequest], Optional[object]]] = []

    def respond(self, responder: Callable[[ExecutionRequest], Optional[object]]) -> None:
        """Add a responder; the first one returning non-None answers a request.

        A returned exception instance is raised instead of returned.
        """
        self._responders.append(responder)

    def always(self, result: ExecutionResult) -> None:
        self.respond(lambda request: result)

    async def __call__(self, request: ExecutionRequest, config=None) -> ExecutionResult:
        self.requests.append(request)
        for responder in self._responders:
            answer = responder(request)
            if answer is None:
                continue
            if isinstance(answer, BaseException):
                raise answer
            return answer
        raise AssertionError(f"no scripted response for {request.command_line}")


@pytest.fixture
def fake_runner(monkeypatch) -> FakeRunner:
    """Replace the process runner for the duration of a test."""
    fake = FakeRunner()
    monkeypatch.setattr(process_runner, "run", fake)
    return fake


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line(
        "markers", "integration: Tests that spawn real child processes"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "tests/unit/" in str(item.fspath).replace("\\", "/"):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
