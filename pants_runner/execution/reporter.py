"""Result reporting for build, test, run and format operations.

Runs invocations through :class:`ProcessRunner`, sends their output to a
results surface and applies the success/failure policy: a clean exit may
auto-dismiss the surface; anything else leaves the output in place with a
terminal status.
"""

from __future__ import annotations

import asyncio
import io
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..config import Config
from ..errors import FormatFailed
from .command import CommandBuilder, Subcommand
from .process import ProcessRunner, RunHandle, RunOutcome
from .surface import ConsoleSurface, ResultsSurface, RunStatus

SurfaceFactory = Callable[[], ResultsSurface]


@dataclass
class FormatResult:
    """Outcome of formatting one document with the external formatter."""

    document_name: str
    success: bool
    content: str
    exit_code: Optional[int]
    diagnostics: str = ""
    changed: bool = False

    def raise_for_status(self) -> "FormatResult":
        """Raise :class:`FormatFailed` unless formatting succeeded."""
        if not self.success:
            raise FormatFailed(self)
        return self


def rewrite_paths(text: str, scratch: Path, document_name: str) -> str:
    """Point every reference to *scratch* in *text* at *document_name*."""
    variants = {str(scratch), str(scratch.resolve())}
    # Longest first so a resolved path is not half-replaced by its alias.
    for variant in sorted(variants, key=len, reverse=True):
        text = text.replace(variant, document_name)
    return text


class ResultReporter:
    """Execute tool goals and report their results on a surface."""

    def __init__(
        self,
        config: Config,
        runner: ProcessRunner | None = None,
        builder: CommandBuilder | None = None,
        surface_factory: SurfaceFactory = ConsoleSurface,
    ) -> None:
        self.config = config
        self.runner = runner or ProcessRunner()
        self.builder = builder or CommandBuilder(config)
        self.surface_factory = surface_factory

    async def start(
        self,
        subcommand: Subcommand | str,
        targets: str | Iterable[str],
        surface: ResultsSurface | None = None,
    ) -> RunHandle:
        """Spawn *subcommand* on *targets* and return the live handle.

        Raises:
            ProcessSpawnFailed: If the tool could not be started.
        """
        invocation = self.builder.build(subcommand, targets)
        return await self.runner.run_streaming(
            invocation,
            surface or self.surface_factory(),
            timeout=self.config.run_timeout,
        )

    async def execute(
        self,
        subcommand: Subcommand | str,
        targets: str | Iterable[str],
        surface: ResultsSurface | None = None,
    ) -> RunOutcome:
        """Run *subcommand* on *targets* to completion.

        A nonzero exit is reported through the surface's terminal status
        (and :attr:`RunOutcome.status`), not raised.
        """
        handle = await self.start(subcommand, targets, surface)
        try:
            outcome = await handle.wait()
        except asyncio.CancelledError:
            handle.cancel()
            raise
        self.complete(outcome, handle.surface)
        return outcome

    def complete(self, outcome: RunOutcome, surface: ResultsSurface) -> None:
        """Apply the auto-dismiss policy to a finished run."""
        if outcome.status is RunStatus.SUCCEEDED and self.config.auto_dismiss_on_success:
            surface.dismiss()

    async def execute_format(
        self,
        content: str,
        document_name: str,
        surface: ResultsSurface | None = None,
    ) -> FormatResult:
        """Format *content* with the configured formatter.

        The content is written to a scratch file that keeps the document's
        base name, since formatters pick their rules from it. On success the
        formatted text is returned. On failure the original text is returned
        and the diagnostics, with scratch paths rewritten to *document_name*,
        are written to the surface.

        Raises:
            ProcessSpawnFailed: If the formatter could not be started.
        """
        base_name = Path(document_name).name or self.config.build_file_name
        with tempfile.TemporaryDirectory(prefix="pants-runner-fmt-") as tmp:
            scratch = Path(tmp) / base_name
            scratch.write_text(content, encoding="utf-8")

            invocation = self.builder.formatter(scratch)
            stdout = io.BytesIO()
            stderr = io.BytesIO()
            exit_code = await self.runner.run(invocation, stdout, stderr, timeout=self.config.list_timeout)

            if exit_code == 0:
                formatted = scratch.read_text(encoding="utf-8")
                return FormatResult(
                    document_name=document_name,
                    success=True,
                    content=formatted,
                    exit_code=exit_code,
                    changed=formatted != content,
                )

            raw = (stderr.getvalue() + stdout.getvalue()).decode("utf-8", errors="replace")
            diagnostics = rewrite_paths(raw, scratch, document_name)

        target = surface or self.surface_factory()
        target.begin(f"{self.config.formatter} {document_name}")
        target.write(diagnostics.encode("utf-8"))
        target.finish(RunStatus.FAILED, exit_code)
        return FormatResult(
            document_name=document_name,
            success=False,
            content=content,
            exit_code=exit_code,
            diagnostics=diagnostics,
        )
