"""External process execution.

Spawns composed :class:`~pants_runner.execution.command.Invocation` objects
without a shell and relays their output:

- **Captured** -- :meth:`ProcessRunner.run` / :meth:`ProcessRunner.run_sync`
  drain stdout and stderr concurrently into two caller-supplied sinks and
  return the exit status. Used for target listing, where the caller needs
  the result before proceeding.
- **Streamed** -- :meth:`ProcessRunner.run_streaming` merges stderr into
  stdout, pumps chunks into a results surface as they arrive and returns a
  :class:`RunHandle` immediately.
- **Attached** -- :meth:`ProcessRunner.run_attached` inherits the terminal,
  for interactive goals such as ``repl``.

A nonzero exit status is data returned to the caller. Only a failure to
start the process at all raises (:class:`ProcessSpawnFailed`).
"""

from __future__ import annotations

import asyncio
import os
import signal
import time
from dataclasses import dataclass
from typing import BinaryIO, Optional

from ..errors import ExecutionFailed, ProcessSpawnFailed, ProcessTimedOut
from .command import Invocation
from .surface import ResultsSurface, RunStatus

CHUNK_SIZE = 4096


@dataclass
class RunOutcome:
    """Terminal result of a streamed invocation."""

    invocation: Invocation
    status: RunStatus
    exit_code: Optional[int]
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status is RunStatus.SUCCEEDED

    def raise_for_status(self) -> "RunOutcome":
        """Raise :class:`ExecutionFailed` unless the run succeeded."""
        if not self.success:
            raise ExecutionFailed(self)
        return self


def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill *process* (and its process group on POSIX) if still running.

    Only valid for processes spawned with ``new_session=True``, whose group id
    equals their pid.
    """
    if process.returncode is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        # Exited between the returncode check and the signal.
        pass


class RunHandle:
    """Live handle on a streamed invocation.

    Lets the caller await completion (:meth:`wait`) or terminate the process
    early (:meth:`cancel`). Output written before cancellation stays on the
    surface and the run is recorded as :attr:`RunStatus.KILLED`.
    """

    def __init__(
        self,
        invocation: Invocation,
        process: asyncio.subprocess.Process,
        surface: ResultsSurface,
        timeout: Optional[float] = None,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self.invocation = invocation
        self.process = process
        self.surface = surface
        self.timeout = timeout
        self.chunk_size = chunk_size
        self._chunks: list[bytes] = []
        self._killed = False
        self._timed_out = False
        self._started = time.monotonic()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._pump())
        if self.timeout is not None:
            self._timer = loop.call_later(self.timeout, self._expire)

    def cancel(self) -> None:
        """Kill the process. A no-op once the process has exited."""
        if self.done or self.process.returncode is not None:
            return
        self._killed = True
        _kill(self.process)

    def _expire(self) -> None:
        if not self.done and self.process.returncode is None:
            self._timed_out = True
            _kill(self.process)

    async def wait(self) -> RunOutcome:
        """Wait for the process to exit and return its outcome.

        Cancelling the waiting task kills the process and records the run
        as :attr:`RunStatus.KILLED`.
        """
        if self._task is None:
            raise RuntimeError("RunHandle.wait() called before start()")
        return await self._task

    async def _pump(self) -> RunOutcome:
        assert self.process.stdout is not None  # guaranteed by PIPE
        try:
            while True:
                chunk = await self.process.stdout.read(self.chunk_size)
                if not chunk:
                    break
                self._chunks.append(chunk)
                self.surface.write(chunk)
            exit_code = await self.process.wait()
        except asyncio.CancelledError:
            self.cancel()
            self._finish(await self.process.wait())
            raise
        return self._finish(exit_code)

    def _finish(self, exit_code: int) -> RunOutcome:
        if self._timer is not None:
            self._timer.cancel()
        duration = time.monotonic() - self._started

        if self._killed:
            status = RunStatus.KILLED
        elif self._timed_out:
            status = RunStatus.TIMED_OUT
        elif exit_code == 0:
            status = RunStatus.SUCCEEDED
        else:
            status = RunStatus.FAILED

        self.invocation.stdout = b"".join(self._chunks)
        self.invocation.exit_code = exit_code
        self.surface.finish(status, exit_code, duration)
        return RunOutcome(
            invocation=self.invocation,
            status=status,
            exit_code=exit_code,
            duration_seconds=duration,
        )


class ProcessRunner:
    """Run build tool invocations as child processes."""

    def __init__(self, chunk_size: int = CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size

    async def _spawn(
        self,
        invocation: Invocation,
        *,
        stdout: Optional[int],
        stderr: Optional[int],
        stdin: Optional[int] = None,
        new_session: bool = False,
    ) -> asyncio.subprocess.Process:
        kwargs = {}
        if new_session and os.name == "posix":
            kwargs["start_new_session"] = True
        try:
            return await asyncio.create_subprocess_exec(
                *invocation.argv,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                cwd=str(invocation.cwd),
                **kwargs,
            )
        except FileNotFoundError as exc:
            raise ProcessSpawnFailed(
                invocation.executable,
                f"not found (working directory {invocation.cwd})",
            ) from exc
        except PermissionError as exc:
            raise ProcessSpawnFailed(invocation.executable, "permission denied") from exc
        except OSError as exc:
            raise ProcessSpawnFailed(invocation.executable, str(exc)) from exc

    async def _drain(
        self,
        stream: asyncio.StreamReader,
        sink: BinaryIO,
        chunks: list[bytes],
    ) -> None:
        while True:
            chunk = await stream.read(self.chunk_size)
            if not chunk:
                return
            chunks.append(chunk)
            sink.write(chunk)

    async def run(
        self,
        invocation: Invocation,
        stdout_sink: BinaryIO,
        stderr_sink: BinaryIO,
        timeout: Optional[float] = None,
    ) -> int:
        """Run *invocation* to completion, capturing both output streams.

        Args:
            invocation: The command to run.
            stdout_sink: Receives stdout bytes as they arrive.
            stderr_sink: Receives stderr bytes as they arrive.
            timeout: Seconds before the process is killed (``None`` waits
                forever).

        Returns:
            The process exit status.

        Raises:
            ProcessSpawnFailed: If the executable cannot be started.
            ProcessTimedOut: If *timeout* elapsed first.
        """
        process = await self._spawn(
            invocation,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            new_session=True,
        )
        out_chunks: list[bytes] = []
        err_chunks: list[bytes] = []

        async def _communicate() -> int:
            assert process.stdout is not None and process.stderr is not None
            await asyncio.gather(
                self._drain(process.stdout, stdout_sink, out_chunks),
                self._drain(process.stderr, stderr_sink, err_chunks),
            )
            return await process.wait()

        try:
            exit_code = await asyncio.wait_for(_communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            _kill(process)
            await process.wait()
            invocation.stdout = b"".join(out_chunks)
            invocation.stderr = b"".join(err_chunks)
            invocation.exit_code = process.returncode
            raise ProcessTimedOut(invocation, timeout) from None
        except asyncio.CancelledError:
            # The child runs in its own session, so nothing else will stop it.
            _kill(process)
            await process.wait()
            invocation.exit_code = process.returncode
            raise

        invocation.stdout = b"".join(out_chunks)
        invocation.stderr = b"".join(err_chunks)
        invocation.exit_code = exit_code
        return exit_code

    def run_sync(
        self,
        invocation: Invocation,
        stdout_sink: BinaryIO,
        stderr_sink: BinaryIO,
        timeout: Optional[float] = None,
    ) -> int:
        """Blocking form of :meth:`run`.

        Runs a private event loop, so it must not be called from a coroutine;
        use ``asyncio.to_thread`` there instead.
        """
        return asyncio.run(self.run(invocation, stdout_sink, stderr_sink, timeout=timeout))

    async def run_streaming(
        self,
        invocation: Invocation,
        surface: ResultsSurface,
        timeout: Optional[float] = None,
    ) -> RunHandle:
        """Start *invocation* and stream its combined output into *surface*.

        Returns as soon as the process has been spawned.

        Raises:
            ProcessSpawnFailed: If the executable cannot be started.
        """
        process = await self._spawn(
            invocation,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            new_session=True,
        )
        surface.begin(invocation.command_line)
        handle = RunHandle(invocation, process, surface, timeout=timeout, chunk_size=self.chunk_size)
        handle.start()
        return handle

    async def run_attached(self, invocation: Invocation) -> int:
        """Run *invocation* with the terminal's stdin/stdout/stderr."""
        process = await self._spawn(invocation, stdout=None, stderr=None)
        try:
            exit_code = await process.wait()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
            await process.wait()
            raise
        invocation.exit_code = exit_code
        return exit_code
