"""Exceptions raised by pants-runner components.

Discovery and spawn failures propagate to the immediate caller. Execution
and format failures are normally reported through a results surface and only
become exceptions when a caller asks for it (``raise_for_status``).
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .execution.command import Invocation


class PantsRunnerError(Exception):
    """Base class for every error reported by pants-runner."""


class BuildFileNotFound(PantsRunnerError):
    """No build file exists in any ancestor directory before the boundary."""

    def __init__(self, start_path: str | Path, build_file_name: str) -> None:
        self.start_path = Path(start_path)
        self.build_file_name = build_file_name
        super().__init__(
            f"No {build_file_name} file found above {self.start_path}. "
            "Open a file inside a directory tree that has one."
        )


class ProcessSpawnFailed(PantsRunnerError):
    """The external executable could not be started."""

    def __init__(self, executable: str, reason: str) -> None:
        self.executable = executable
        self.reason = reason
        super().__init__(f"Could not start '{executable}': {reason}")


class ProcessTimedOut(PantsRunnerError):
    """A blocking invocation exceeded its timeout and was killed."""

    def __init__(self, invocation: "Invocation", timeout: float) -> None:
        self.invocation = invocation
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout}s: {invocation.command_line}")


class ListingFailed(PantsRunnerError):
    """Target listing exited nonzero and no cached targets were available."""

    def __init__(self, directory: str | Path, exit_code: int, stderr: str = "") -> None:
        self.directory = Path(directory)
        self.exit_code = exit_code
        self.stderr = stderr
        message = f"Listing targets in {self.directory} failed with exit code {exit_code}"
        if stderr.strip():
            message = f"{message}\n{stderr.strip()}"
        super().__init__(message)


class ExecutionFailed(PantsRunnerError):
    """A build/test/run invocation finished without success."""

    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        super().__init__(
            f"{outcome.invocation.command_line} finished with status "
            f"{outcome.status.value} (exit code {outcome.exit_code})"
        )


class FormatFailed(PantsRunnerError):
    """The build file formatter rejected the document."""

    def __init__(self, result: Any) -> None:
        self.result = result
        super().__init__(
            f"Formatting {result.document_name} failed with exit code {result.exit_code}\n"
            f"{result.diagnostics.strip()}"
        )
