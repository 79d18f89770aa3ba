from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from deploybox.core.errors import ProcessFailure
from deploybox.core.process_runner import (
    ProcessRunner,
    build_command_line,
    classify_stderr_line,
)


class _ListSink:
    def __init__(self) -> None:
        self.chunks: list[str] = []

    def append(self, text: str) -> None:
        self.chunks.append(text)

    @property
    def text(self) -> str:
        return "".join(self.chunks)


def test_classify_stderr_line_tags_error_and_fatal() -> None:
    assert classify_stderr_line("npm ERR! Error: boom\n") == "ERROR: npm ERR! Error: boom\n"
    assert classify_stderr_line("FATAL: no space\n") == "ERROR: FATAL: no space\n"
    assert classify_stderr_line("Cloning into 'demo'...\n") == "Cloning into 'demo'...\n"


def test_build_command_line_quotes_arguments() -> None:
    assert build_command_line("git") == "git"
    assert (
        build_command_line("git", ["clone", "https://example/a b.git", "demo"])
        == "git clone 'https://example/a b.git' demo"
    )


@pytest.mark.asyncio
async def test_run_streams_stdout_and_stderr(tmp_path: Path) -> None:
    sink = _ListSink()
    runner = ProcessRunner()

    await runner.run(
        "echo one; echo two; echo 'warning: careful' >&2; echo 'error: bad' >&2",
        cwd=tmp_path,
        sink=sink,
    )

    stdout_lines = [chunk for chunk in sink.chunks if chunk in {"one\n", "two\n"}]
    assert stdout_lines == ["one\n", "two\n"]
    assert "warning: careful\n" in sink.chunks
    assert "ERROR: error: bad\n" in sink.chunks


@pytest.mark.asyncio
async def test_run_uses_working_directory(tmp_path: Path) -> None:
    sink = _ListSink()
    await ProcessRunner().run("pwd", cwd=tmp_path, sink=sink)
    assert sink.text.strip() == str(tmp_path.resolve())


@pytest.mark.asyncio
async def test_run_reports_non_zero_exit(tmp_path: Path) -> None:
    sink = _ListSink()

    with pytest.raises(ProcessFailure) as excinfo:
        await ProcessRunner().run("echo building; exit 3", cwd=tmp_path, sink=sink)

    assert excinfo.value.exit_code == 3
    assert str(excinfo.value) == "Exited with status 3"
    assert sink.chunks[-1] == "Exited with status 3\n"
    assert "building\n" in sink.chunks


@pytest.mark.asyncio
async def test_run_start_error_emits_no_output(tmp_path: Path) -> None:
    sink = _ListSink()

    with pytest.raises(ProcessFailure) as excinfo:
        await ProcessRunner().run("true", cwd=tmp_path / "missing", sink=sink)

    assert excinfo.value.start_error is not None
    assert excinfo.value.exit_code is None
    assert sink.chunks == []


@pytest.mark.asyncio
async def test_spawn_passes_environment_and_does_not_block(tmp_path: Path) -> None:
    sink = _ListSink()
    runner = ProcessRunner(stop_timeout_seconds=2.0)

    handle = await runner.spawn(
        'echo "port=$PORT"; sleep 30', cwd=tmp_path, sink=sink, env={"PORT": "4321"}
    )
    try:
        for _ in range(100):
            if "port=4321\n" in sink.chunks:
                break
            await asyncio.sleep(0.02)
        assert handle.running is True
        assert "port=4321\n" in sink.chunks
    finally:
        await handle.terminate()

    assert handle.running is False
    assert handle.stop_requested is True


@pytest.mark.asyncio
async def test_spawn_handle_reports_exit_code(tmp_path: Path) -> None:
    sink = _ListSink()
    handle = await ProcessRunner().spawn("exit 7", cwd=tmp_path, sink=sink)

    assert await handle.wait() == 7
    assert handle.returncode == 7
    assert handle.stop_requested is False


@pytest.mark.asyncio
async def test_terminate_kills_process_ignoring_sigterm(tmp_path: Path) -> None:
    sink = _ListSink()
    runner = ProcessRunner(stop_timeout_seconds=0.5)
    handle = await runner.spawn("trap '' TERM; sleep 30", cwd=tmp_path, sink=sink)
    await asyncio.sleep(0.2)

    returncode = await asyncio.wait_for(handle.terminate(), timeout=10)

    assert returncode != 0
    assert handle.running is False


@pytest.mark.asyncio
async def test_cancelled_run_terminates_process(tmp_path: Path) -> None:
    sink = _ListSink()
    marker = tmp_path / "finished"
    task = asyncio.create_task(
        ProcessRunner(stop_timeout_seconds=2.0).run(
            f"sleep 2; touch {marker}", cwd=tmp_path, sink=sink
        )
    )
    await asyncio.sleep(0.2)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    await asyncio.sleep(2.5)
    assert not marker.exists()
