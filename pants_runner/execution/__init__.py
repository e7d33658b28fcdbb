"""pants-runner execution module.

Composes build tool command lines, runs them as child processes and reports
their output and terminal status.

Key classes:
    CommandBuilder  - Invocation composition from configuration
    ProcessRunner   - Captured, streamed and attached process execution
    RunHandle       - Live handle on a streamed run (wait / cancel)
    ResultReporter  - Success/failure policy and build file formatting
    ConsoleSurface  - Rich console results surface
"""

from .command import CommandBuilder, Invocation, Subcommand
from .process import ProcessRunner, RunHandle, RunOutcome
from .reporter import FormatResult, ResultReporter
from .surface import BufferedSurface, ConsoleSurface, ResultsSurface, RunStatus

__all__ = [
    # Command composition
    "CommandBuilder",
    "Invocation",
    "Subcommand",
    # Process execution
    "ProcessRunner",
    "RunHandle",
    "RunOutcome",
    # Reporting
    "ResultReporter",
    "FormatResult",
    "ResultsSurface",
    "BufferedSurface",
    "ConsoleSurface",
    "RunStatus",
]
