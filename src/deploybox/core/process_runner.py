"""Shell command execution with live output streaming."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import re
import shlex
import signal
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from deploybox.core.errors import ProcessFailure

logger = logging.getLogger(__name__)

STREAM_LIMIT = 1024 * 1024
DEFAULT_STOP_TIMEOUT_SECONDS = 10.0
# Output still arriving after exit comes from orphaned children holding the pipes.
READER_DRAIN_SECONDS = 5.0

_ERROR_LINE_PATTERN = re.compile(r"error|fatal", re.IGNORECASE)


class OutputSink(Protocol):
    """Destination for process output chunks."""

    def append(self, text: str) -> None: ...


def classify_stderr_line(line: str) -> str:
    """Prefix stderr lines that mention an error.

    The prefix only helps a human skim the log; success is decided by exit code.
    """
    if _ERROR_LINE_PATTERN.search(line):
        return f"ERROR: {line}"
    return line


def build_command_line(command: str, args: Sequence[str] = ()) -> str:
    if not args:
        return command
    return " ".join([command, *(shlex.quote(arg) for arg in args)])


class ProcessHandle:
    """A started process, its output readers, and its exit notification."""

    def __init__(
        self,
        command: str,
        process: asyncio.subprocess.Process,
        sink: OutputSink,
        *,
        stop_timeout_seconds: float = DEFAULT_STOP_TIMEOUT_SECONDS,
    ) -> None:
        self.command = command
        self.stop_requested = False
        self._process = process
        self._stop_timeout_seconds = stop_timeout_seconds
        self._readers = [
            asyncio.create_task(_pump(command, process.stdout, sink, stderr=False)),
            asyncio.create_task(_pump(command, process.stderr, sink, stderr=True)),
        ]
        self._exited: asyncio.Task[int] = asyncio.create_task(self._supervise())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def running(self) -> bool:
        return not self._exited.done()

    @property
    def returncode(self) -> int | None:
        if not self._exited.done():
            return None
        return self._exited.result()

    async def wait(self) -> int:
        """Return the exit code once the process has exited and its output is drained."""
        return await asyncio.shield(self._exited)

    async def terminate(self) -> int:
        """Stop the process group: SIGTERM, then SIGKILL after the stop timeout."""
        self.stop_requested = True
        if self._exited.done():
            return self._exited.result()

        logger.info("Stopping `%s` (PID %d)", self.command, self.pid)
        self._signal(signal.SIGTERM)
        try:
            return await asyncio.wait_for(
                asyncio.shield(self._exited), timeout=self._stop_timeout_seconds
            )
        except TimeoutError:
            logger.warning("Sending SIGKILL to `%s` (PID %d)", self.command, self.pid)
            self._signal(signal.SIGKILL)
        return await asyncio.shield(self._exited)

    async def _supervise(self) -> int:
        returncode = await self._process.wait()
        _, pending = await asyncio.wait(self._readers, timeout=READER_DRAIN_SECONDS)
        for reader in pending:
            reader.cancel()
        logger.debug("`%s` exited with status %d", self.command, returncode)
        return returncode

    def _signal(self, signum: int) -> None:
        # Started in its own session, so the pid is also the process group id.
        with contextlib.suppress(ProcessLookupError):
            os.killpg(self._process.pid, signum)


class ProcessRunner:
    """Run shell commands, streaming stdout and stderr into a sink as they arrive."""

    def __init__(self, *, stop_timeout_seconds: float = DEFAULT_STOP_TIMEOUT_SECONDS) -> None:
        self._stop_timeout_seconds = stop_timeout_seconds

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        cwd: Path,
        sink: OutputSink,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Run a bounded command to completion.

        Raises:
            ProcessFailure: The command could not start or exited non-zero.
        """
        handle = await self.spawn(command, args, cwd=cwd, sink=sink, env=env)
        try:
            returncode = await handle.wait()
        except asyncio.CancelledError:
            await handle.terminate()
            raise
        if returncode != 0:
            sink.append(f"Exited with status {returncode}\n")
            raise ProcessFailure(handle.command, exit_code=returncode)

    async def spawn(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        cwd: Path,
        sink: OutputSink,
        env: Mapping[str, str] | None = None,
    ) -> ProcessHandle:
        """Start a command without waiting for it to exit."""
        command_line = build_command_line(command, args)
        process_env = {**os.environ, **env} if env else None
        logger.info("Starting `%s` in %s", command_line, cwd)
        try:
            process = await asyncio.create_subprocess_shell(
                command_line,
                cwd=cwd,
                env=process_env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
                limit=STREAM_LIMIT,
            )
        except OSError as exc:
            logger.warning("Could not start `%s`: %s", command_line, exc)
            raise ProcessFailure(command_line, start_error=str(exc)) from exc
        return ProcessHandle(
            command_line,
            process,
            sink,
            stop_timeout_seconds=self._stop_timeout_seconds,
        )


async def _pump(
    command: str,
    stream: asyncio.StreamReader | None,
    sink: OutputSink,
    *,
    stderr: bool,
) -> None:
    if stream is None:
        return
    while True:
        try:
            raw = await stream.readline()
        except ValueError:
            sink.append("[output line too long, skipped]\n")
            continue
        if not raw:
            return
        line = raw.decode("utf-8", errors="replace")
        logger.debug("[%s] %s", command, line.rstrip())
        sink.append(classify_stderr_line(line) if stderr else line)
