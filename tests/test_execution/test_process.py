"""Tests for ProcessRunner and RunHandle (pants_runner.execution.process).

Tests cover:
- Captured runs: both sinks filled, exit status returned, nonzero is data
- run_sync blocking wrapper
- Spawn failures (missing executable, permission denied)
- Timeouts on the captured path
- Streamed runs: merged output, terminal statuses, cancellation, timeout
- Attached runs
- Cancelling the awaiting task kills the child
"""

from __future__ import annotations

import asyncio
import io
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from pants_runner.errors import ExecutionFailed, ProcessSpawnFailed, ProcessTimedOut
from pants_runner.execution.command import Invocation
from pants_runner.execution.process import ProcessRunner, RunOutcome
from pants_runner.execution.surface import BufferedSurface, RunStatus


async def _wait_for_output(surface: BufferedSurface, timeout: float = 10.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not surface.data:
        if loop.time() > deadline:
            raise AssertionError("no output arrived")
        await asyncio.sleep(0.05)


def _alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


async def _wait_for_pid(read_output, timeout: float = 10.0) -> int:
    """Poll *read_output* until the child has printed its pid."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not read_output().strip():
        if loop.time() > deadline:
            raise AssertionError("child never reported its pid")
        await asyncio.sleep(0.05)
    return int(read_output().split()[0])


PRINT_PID_AND_SLEEP = "import os, time; print(os.getpid(), flush=True); time.sleep(30)"


class TestCapturedRun:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_fills_both_sinks(self, python_invocation):
        invocation = python_invocation(
            "import sys; sys.stdout.write('out-line\\n'); sys.stderr.write('err-line\\n')"
        )
        stdout, stderr = io.BytesIO(), io.BytesIO()

        exit_code = await ProcessRunner().run(invocation, stdout, stderr)

        assert exit_code == 0
        assert stdout.getvalue() == b"out-line\n"
        assert stderr.getvalue() == b"err-line\n"
        assert invocation.exit_code == 0
        assert invocation.stdout == b"out-line\n"
        assert invocation.stderr == b"err-line\n"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_nonzero_exit_is_returned(self, python_invocation):
        invocation = python_invocation("import sys; sys.exit(3)")
        exit_code = await ProcessRunner().run(invocation, io.BytesIO(), io.BytesIO())
        assert exit_code == 3

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_runs_in_invocation_cwd(self, python_invocation, tmp_path: Path):
        invocation = python_invocation("import os; print(os.getcwd())")
        stdout = io.BytesIO()
        await ProcessRunner().run(invocation, stdout, io.BytesIO())
        assert Path(stdout.getvalue().decode().strip()).resolve() == tmp_path.resolve()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_large_output_on_both_streams(self, python_invocation):
        # Enough to fill a pipe buffer on each stream at once.
        invocation = python_invocation(
            "import sys; sys.stdout.write('o' * 200000); sys.stderr.write('e' * 200000)"
        )
        stdout, stderr = io.BytesIO(), io.BytesIO()
        exit_code = await ProcessRunner().run(invocation, stdout, stderr, timeout=30)
        assert exit_code == 0
        assert len(stdout.getvalue()) == 200000
        assert len(stderr.getvalue()) == 200000

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_timeout_kills_and_raises(self, python_invocation):
        invocation = python_invocation("print('started', flush=True); import time; time.sleep(30)")
        stdout = io.BytesIO()
        with pytest.raises(ProcessTimedOut, match="timed out after 0.5s"):
            await ProcessRunner().run(invocation, stdout, io.BytesIO(), timeout=0.5)
        assert invocation.exit_code is not None
        assert invocation.exit_code != 0

    @pytest.mark.integration
    def test_run_sync(self, python_invocation):
        invocation = python_invocation("print('hello')")
        stdout = io.BytesIO()
        assert ProcessRunner().run_sync(invocation, stdout, io.BytesIO()) == 0
        assert stdout.getvalue().strip() == b"hello"

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.skipif(os.name != "posix", reason="POSIX process probing")
    async def test_cancelling_caller_kills_process(self, python_invocation):
        invocation = python_invocation(PRINT_PID_AND_SLEEP)
        stdout = io.BytesIO()
        task = asyncio.create_task(ProcessRunner().run(invocation, stdout, io.BytesIO()))

        pid = await _wait_for_pid(stdout.getvalue)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not _alive(pid)
        assert invocation.exit_code is not None
        assert invocation.exit_code != 0


class TestSpawnFailure:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path: Path):
        invocation = Invocation(executable=str(tmp_path / "no-such-tool"), args=["list"], cwd=tmp_path)
        with pytest.raises(ProcessSpawnFailed, match="not found"):
            await ProcessRunner().run(invocation, io.BytesIO(), io.BytesIO())

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
    async def test_not_executable(self, tmp_path: Path):
        tool = tmp_path / "tool"
        tool.write_text("#!/bin/sh\necho hi\n", encoding="utf-8")
        tool.chmod(0o644)
        invocation = Invocation(executable=str(tool), args=[], cwd=tmp_path)
        with pytest.raises(ProcessSpawnFailed, match="permission denied"):
            await ProcessRunner().run(invocation, io.BytesIO(), io.BytesIO())

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_streaming_spawn_failure_leaves_surface_untouched(self, tmp_path: Path):
        surface = BufferedSurface()
        invocation = Invocation(executable="pants", args=[], cwd=tmp_path)
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("pants")):
            with pytest.raises(ProcessSpawnFailed):
                await ProcessRunner().run_streaming(invocation, surface)
        assert surface.title == ""
        assert surface.status is RunStatus.RUNNING


class TestStreamingRun:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_success(self, python_invocation):
        surface = BufferedSurface()
        invocation = python_invocation("print('one'); print('two')")

        handle = await ProcessRunner().run_streaming(invocation, surface)
        outcome = await handle.wait()

        assert outcome.status is RunStatus.SUCCEEDED
        assert outcome.exit_code == 0
        assert outcome.success
        assert surface.text.splitlines() == ["one", "two"]
        assert surface.status is RunStatus.SUCCEEDED
        assert surface.title == invocation.command_line
        assert invocation.stdout == surface.data

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stderr_is_merged(self, python_invocation):
        surface = BufferedSurface()
        invocation = python_invocation("import sys; sys.stderr.write('warning\\n')")
        outcome = await (await ProcessRunner().run_streaming(invocation, surface)).wait()
        assert outcome.success
        assert surface.text == "warning\n"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failure_status(self, python_invocation):
        surface = BufferedSurface()
        invocation = python_invocation("print('FAILED test_x'); import sys; sys.exit(1)")

        outcome = await (await ProcessRunner().run_streaming(invocation, surface)).wait()

        assert outcome.status is RunStatus.FAILED
        assert outcome.exit_code == 1
        assert surface.status is RunStatus.FAILED
        assert "FAILED test_x" in surface.text
        with pytest.raises(ExecutionFailed, match="exit code 1"):
            outcome.raise_for_status()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cancel_keeps_partial_output(self, python_invocation):
        surface = BufferedSurface()
        invocation = python_invocation(
            "print('before', flush=True); import time; time.sleep(30); print('after', flush=True)"
        )

        handle = await ProcessRunner().run_streaming(invocation, surface)
        await _wait_for_output(surface)
        handle.cancel()
        outcome = await asyncio.wait_for(handle.wait(), timeout=10)

        assert surface.data.replace(b"\r\n", b"\n") == b"before\n"
        assert outcome.status is RunStatus.KILLED
        assert surface.status is RunStatus.KILLED
        assert outcome.exit_code != 0
        assert not outcome.success
        assert handle.done

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cancel_after_finish_is_noop(self, python_invocation):
        surface = BufferedSurface()
        handle = await ProcessRunner().run_streaming(python_invocation("pass"), surface)
        outcome = await handle.wait()
        handle.cancel()
        assert outcome.status is RunStatus.SUCCEEDED
        assert surface.status is RunStatus.SUCCEEDED

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_timeout_status(self, python_invocation):
        surface = BufferedSurface()
        invocation = python_invocation("import time; time.sleep(30)")
        handle = await ProcessRunner().run_streaming(invocation, surface, timeout=0.5)
        outcome = await asyncio.wait_for(handle.wait(), timeout=10)
        assert outcome.status is RunStatus.TIMED_OUT
        assert surface.status is RunStatus.TIMED_OUT

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cancel_after_process_exit_keeps_real_status(self, python_invocation):
        surface = BufferedSurface()
        handle = await ProcessRunner().run_streaming(python_invocation("pass"), surface)

        await handle.process.wait()
        handle.cancel()
        outcome = await handle.wait()

        assert outcome.status is RunStatus.SUCCEEDED
        assert surface.status is RunStatus.SUCCEEDED

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.skipif(os.name != "posix", reason="POSIX process probing")
    async def test_cancelling_waiter_kills_process(self, python_invocation):
        surface = BufferedSurface()
        handle = await ProcessRunner().run_streaming(python_invocation(PRINT_PID_AND_SLEEP), surface)
        pid = await _wait_for_pid(lambda: surface.text)
        assert pid == handle.pid

        waiter = asyncio.create_task(handle.wait())
        await asyncio.sleep(0.1)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert not _alive(pid)
        assert handle.done
        assert surface.status is RunStatus.KILLED


class TestRunOutcome:
    @pytest.mark.unit
    def test_raise_for_status_passes_success(self):
        invocation = Invocation(executable="tool", args=[], cwd=Path("/"))
        outcome = RunOutcome(invocation=invocation, status=RunStatus.SUCCEEDED, exit_code=0)
        assert outcome.raise_for_status() is outcome

    @pytest.mark.unit
    def test_killed_is_not_success(self):
        invocation = Invocation(executable="tool", args=[], cwd=Path("/"))
        outcome = RunOutcome(invocation=invocation, status=RunStatus.KILLED, exit_code=-9)
        with pytest.raises(ExecutionFailed, match="killed"):
            outcome.raise_for_status()


class TestAttachedRun:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_returns_exit_code(self, python_invocation):
        invocation = python_invocation("import sys; sys.exit(4)")
        assert await ProcessRunner().run_attached(invocation) == 4
        assert invocation.exit_code == 4

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.skipif(os.name != "posix", reason="POSIX process probing")
    async def test_cancelling_caller_kills_process(self, python_invocation, tmp_path: Path):
        pid_file = tmp_path / "child.pid"
        invocation = python_invocation(
            f"import os, time; open({str(pid_file)!r}, 'w').write(str(os.getpid())); time.sleep(30)"
        )
        task = asyncio.create_task(ProcessRunner().run_attached(invocation))

        pid = await _wait_for_pid(lambda: pid_file.read_text() if pid_file.exists() else "")
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not _alive(pid)
