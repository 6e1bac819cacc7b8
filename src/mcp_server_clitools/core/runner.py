"""Process runner: one ExecutionRequest, one child process, one result."""

import asyncio
import logging
import os
import signal
import sys
import time
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Mapping, Optional

import psutil

from ..configuration import ServerConfig, load_config_from_env
from ..error_handling import TIMEOUT_EXIT_CODE, SpawnFailure
from .capture import BoundedCapture, normalize_newlines, sanitize_error_output, strip_ansi
from .sanitizer import assert_allowed_command, assert_allowed_root

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024
# Time allowed for pipes to drain once the program has exited or been killed
_DRAIN_GRACE_SECONDS = 1.0


@dataclass(frozen=True)
class ExecutionRequest:
    """Everything needed to run one external program once."""

    program: str
    args: tuple[str, ...] = ()
    cwd: Optional[str] = None
    stdin: Optional[str] = None
    timeout: Optional[float] = None
    max_output_bytes: Optional[int] = None
    max_output_lines: Optional[int] = None
    env: Optional[Mapping[str, str]] = field(default=None, hash=False)

    def __post_init__(self):
        # Accept any sequence but store a tuple so the request stays immutable
        object.__setattr__(self, "args", tuple(self.args))
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    @property
    def command_line(self) -> str:
        """Display form of the command. Never executed."""
        return " ".join(self.argv)


@dataclass(frozen=True)
class ExecutionResult:
    """Captured outcome of one ExecutionRequest."""

    stdout: str
    stderr: str
    exit_code: int
    truncated: bool = False
    timed_out: bool = False
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


def _check_policy(request: ExecutionRequest, config: ServerConfig) -> None:
    assert_allowed_command(request.program, config.allowed_commands)
    if request.cwd is not None:
        assert_allowed_root(request.cwd, config.allowed_roots)


async def _spawn(request: ExecutionRequest) -> asyncio.subprocess.Process:
    if request.cwd is not None and not os.path.isdir(request.cwd):
        raise SpawnFailure(
            request.program, f"Working directory does not exist: {request.cwd}"
        )

    env = None
    if request.env:
        env = {**os.environ, **request.env}

    try:
        return await asyncio.create_subprocess_exec(
            request.program,
            *request.args,
            cwd=request.cwd,
            env=env,
            stdin=asyncio.subprocess.PIPE if request.stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=sys.platform != "win32",
        )
    except FileNotFoundError as e:
        raise SpawnFailure(
            request.program,
            f'Command not found: "{request.program}". '
            "Ensure it is installed and available in your PATH.",
        ) from e
    except PermissionError as e:
        raise SpawnFailure(
            request.program, f'Permission denied executing "{request.program}": {e}'
        ) from e
    except OSError as e:
        raise SpawnFailure(request.program, f'Failed to start "{request.program}": {e}') from e


async def _pump(stream: Optional[asyncio.StreamReader], capture: BoundedCapture) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        capture.feed(chunk)


async def _feed_stdin(process: asyncio.subprocess.Process, payload: str) -> None:
    if process.stdin is None:
        return
    try:
        process.stdin.write(payload.encode("utf-8"))
        await process.stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # child exited or closed stdin without reading it all
        logger.debug("Child closed stdin before the payload was written")
    finally:
        process.stdin.close()


def kill_process_tree(pid: int) -> None:
    """Kill a process and every descendant it spawned."""
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    for child in children:
        with suppress(psutil.NoSuchProcess):
            child.kill()

    kill_process_group(pid)

    with suppress(psutil.NoSuchProcess):
        psutil.Process(pid).kill()


def kill_process_group(pgid: int) -> None:
    """Kill whatever is left in the session a spawned program leads.

    Safe after the leader has been reaped: the group id is not reused while
    any member is alive. A no-op on Windows.
    """
    if sys.platform != "win32":
        with suppress(ProcessLookupError, PermissionError):
            os.killpg(pgid, signal.SIGKILL)


def _exit_code(returncode: Optional[int]) -> int:
    if returncode is None:
        return 1
    if returncode < 0:
        # terminated by a signal; mirror the shell's 128 + N convention
        return 128 - returncode
    return returncode


async def run(
    request: ExecutionRequest, config: Optional[ServerConfig] = None
) -> ExecutionResult:
    """
    Execute one external program without a shell.

    A non-zero exit code is returned as data. A timeout kills the process
    tree and is reported with ``timed_out=True`` and exit code 124, along
    with whatever output arrived before the kill. Once the program exits,
    descendants that keep its output pipes open are given a short grace and
    then killed; the program's own exit code is reported.

    Raises:
        SpawnFailure: The program is missing/not executable or cwd is invalid
        PolicyViolation: The command or cwd is outside the configured policy
    """
    config = config or load_config_from_env()
    _check_policy(request, config)

    timeout = request.timeout if request.timeout is not None else config.default_timeout_seconds
    max_bytes = request.max_output_bytes
    if max_bytes is None and request.max_output_lines is None:
        max_bytes = config.max_output_bytes

    stdout_capture = BoundedCapture(max_bytes=max_bytes, max_lines=request.max_output_lines)
    stderr_capture = BoundedCapture(max_bytes=max_bytes, max_lines=request.max_output_lines)

    logger.debug(
        f"Spawning {request.command_line}",
        extra={"command": request.program},
    )
    started = time.monotonic()
    process = await _spawn(request)

    wait_task = asyncio.ensure_future(process.wait())
    io_tasks = [
        asyncio.ensure_future(_pump(process.stdout, stdout_capture)),
        asyncio.ensure_future(_pump(process.stderr, stderr_capture)),
    ]
    if request.stdin is not None:
        io_tasks.append(asyncio.ensure_future(_feed_stdin(process, request.stdin)))
    tasks = [wait_task, *io_tasks]

    timed_out = False
    try:
        # the deadline applies to the program itself, not to whoever holds its pipes
        done, _ = await asyncio.wait([wait_task], timeout=timeout)
        if wait_task not in done:
            timed_out = True
            logger.warning(
                f"{request.program} timed out after {timeout}s; killing process tree",
                extra={"command": request.program, "timed_out": True},
            )
            kill_process_tree(process.pid)
            _, still_pending = await asyncio.wait(tasks, timeout=_DRAIN_GRACE_SECONDS)
            for task in still_pending:
                task.cancel()
            with suppress(ProcessLookupError):
                process.kill()
            await process.wait()
        else:
            _, pending = await asyncio.wait(io_tasks, timeout=_DRAIN_GRACE_SECONDS)
            if pending:
                logger.debug(
                    f"{request.program} exited but descendants still hold its pipes; killing them",
                    extra={"command": request.program},
                )
                kill_process_group(process.pid)
                await asyncio.wait(pending, timeout=_DRAIN_GRACE_SECONDS)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()

    for task in tasks:
        if task.done() and not task.cancelled() and task.exception() is not None:
            raise task.exception()

    duration_ms = int((time.monotonic() - started) * 1000)
    exit_code = TIMEOUT_EXIT_CODE if timed_out else _exit_code(process.returncode)

    stdout = strip_ansi(normalize_newlines(stdout_capture.text()))
    stderr = sanitize_error_output(
        strip_ansi(normalize_newlines(stderr_capture.text())),
        broad=config.sanitize_all_paths,
    )

    result = ExecutionResult(
        stdout=stdout,
        stderr=stderr,
        exit_code=exit_code,
        truncated=stdout_capture.truncated or stderr_capture.truncated,
        timed_out=timed_out,
        duration_ms=duration_ms,
    )
    logger.debug(
        f"{request.program} exited with {exit_code}",
        extra={
            "command": request.program,
            "exit_code": exit_code,
            "duration_ms": duration_ms,
        },
    )
    return result
