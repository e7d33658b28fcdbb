"""Front-end facade over discovery, caching and execution.

Wires one instance of each component together from a single
:class:`~pants_runner.config.Config`:

    source path -> BuildFileLocator -> TargetCache -> Selector
                -> CommandBuilder -> ProcessRunner -> ResultReporter

Usage::

    frontend = PantsFrontend(Config(project_root="/repo"))
    targets = frontend.targets("/repo/src/app/main.py")
    outcome = asyncio.run(frontend.run("test", "/repo/src/app/main.py"))
"""

from __future__ import annotations

import asyncio
import io
from pathlib import Path
from typing import Optional

from .config import Config
from .discovery.cache import TargetCache, parse_targets
from .discovery.locator import BuildFileLocation, BuildFileLocator
from .errors import ListingFailed
from .execution.command import CommandBuilder, Subcommand
from .execution.process import ProcessRunner, RunOutcome
from .execution.reporter import FormatResult, ResultReporter, SurfaceFactory
from .execution.surface import ConsoleSurface, ResultsSurface
from .selection import PromptSelector, Selector
from .utils import print_success


class PantsFrontend:
    """Everything a host needs to discover targets and run tool goals.

    Attributes:
        config: Immutable front-end configuration.
        locator: Build file search.
        builder: Command composition.
        runner: Process execution.
        cache: Per-build-file target cache.
        reporter: Streamed execution and formatting.
        selector: Host-provided choice widget.
    """

    def __init__(
        self,
        config: Config,
        runner: ProcessRunner | None = None,
        selector: Selector | None = None,
        surface_factory: SurfaceFactory = ConsoleSurface,
    ) -> None:
        self.config = config
        self.runner = runner or ProcessRunner()
        self.locator = BuildFileLocator.from_config(config)
        self.builder = CommandBuilder(config)
        self.cache = TargetCache(config, self.runner, self.locator, self.builder)
        self.reporter = ResultReporter(config, self.runner, self.builder, surface_factory)
        self.selector = selector or PromptSelector()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def find_build_file(self, source_path: str | Path) -> BuildFileLocation:
        """Raises :class:`BuildFileNotFound` when there is none."""
        return self.locator.require(source_path)

    def targets(self, source_path: str | Path) -> list[str]:
        return self.cache.resolve(source_path)

    def choose_target(self, source_path: str | Path, prompt: str = "Target") -> str:
        return self.selector.select_one(prompt, self.targets(source_path))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(
        self,
        subcommand: Subcommand | str,
        source_path: str | Path,
        target: Optional[str] = None,
        surface: ResultsSurface | None = None,
    ) -> RunOutcome:
        """Run *subcommand* on *target*, asking the selector when omitted."""
        sub = Subcommand(subcommand)
        if target is None:
            # Target listing blocks; keep it off the event loop.
            target = await asyncio.to_thread(self.choose_target, source_path, f"{sub.value} target")
        return await self.reporter.execute(sub, target, surface)

    def file_dependencies(self, target: str) -> list[str]:
        """Source files *target* depends on, via the ``filedeps`` goal.

        Raises:
            ListingFailed: If the goal exits nonzero.
        """
        invocation = self.builder.build(Subcommand.FILEDEPS, target)
        stdout = io.BytesIO()
        stderr = io.BytesIO()
        exit_code = self.runner.run_sync(invocation, stdout, stderr, timeout=self.config.list_timeout)
        if exit_code != 0:
            raise ListingFailed(
                self.config.project_root,
                exit_code,
                stderr.getvalue().decode("utf-8", errors="replace"),
            )
        return parse_targets(stdout.getvalue().decode("utf-8", errors="replace"))

    async def repl(self, target: str) -> int:
        """Hand the terminal to an interactive ``repl`` on *target*."""
        invocation = self.builder.build(Subcommand.REPL, target)
        return await self.runner.run_attached(invocation)

    async def format_build_file(
        self,
        path: str | Path,
        surface: ResultsSurface | None = None,
    ) -> FormatResult:
        """Format a build file in place; it is only rewritten on success."""
        file_path = Path(path)
        content = file_path.read_text(encoding="utf-8")
        result = await self.reporter.execute_format(content, str(file_path), surface)
        if result.success and result.changed:
            file_path.write_text(result.content, encoding="utf-8")
            print_success(f"Formatted {file_path}")
        return result

    def sweep_cache(self) -> list[Path]:
        return self.cache.sweep()
