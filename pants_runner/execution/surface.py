"""Results surfaces: where streamed tool output and terminal status land.

A surface receives output chunks in arrival order, then exactly one terminal
status. The host decides how it is shown; :class:`BufferedSurface` keeps
everything in memory and :class:`ConsoleSurface` also echoes to the Rich
console.
"""

from __future__ import annotations

import codecs
from enum import Enum
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..utils import console as default_console
from ..utils import format_duration


class RunStatus(str, Enum):
    """Lifecycle state of a streamed invocation."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    KILLED = "killed"
    TIMED_OUT = "timed-out"

    @property
    def is_terminal(self) -> bool:
        return self is not RunStatus.RUNNING


class ResultsSurface:
    """Abstract results surface interface."""

    def begin(self, title: str) -> None:
        raise NotImplementedError

    def write(self, chunk: bytes) -> None:
        raise NotImplementedError

    def finish(self, status: RunStatus, exit_code: Optional[int], duration: float = 0.0) -> None:
        raise NotImplementedError

    def dismiss(self) -> None:
        raise NotImplementedError


class BufferedSurface(ResultsSurface):
    """In-memory surface that records output bytes and the terminal status."""

    def __init__(self) -> None:
        self.title = ""
        self._chunks: list[bytes] = []
        self.status = RunStatus.RUNNING
        self.exit_code: Optional[int] = None
        self.duration = 0.0
        self.dismissed = False

    @property
    def data(self) -> bytes:
        return b"".join(self._chunks)

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")

    def begin(self, title: str) -> None:
        self.title = title

    def write(self, chunk: bytes) -> None:
        if chunk:
            self._chunks.append(chunk)

    def finish(self, status: RunStatus, exit_code: Optional[int], duration: float = 0.0) -> None:
        self.status = status
        self.exit_code = exit_code
        self.duration = duration

    def dismiss(self) -> None:
        self.dismissed = True


_STATUS_STYLES = {
    RunStatus.SUCCEEDED: "green",
    RunStatus.FAILED: "red",
    RunStatus.KILLED: "yellow",
    RunStatus.TIMED_OUT: "yellow",
}


class ConsoleSurface(BufferedSurface):
    """Buffered surface that also echoes output live to a Rich console."""

    def __init__(self, console: Console | None = None) -> None:
        super().__init__()
        self.console = console or default_console
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def begin(self, title: str) -> None:
        super().begin(title)
        self.console.rule(f"[bold cyan]{escape(title)}[/bold cyan]", style="cyan")

    def write(self, chunk: bytes) -> None:
        super().write(chunk)
        text = self._decoder.decode(chunk)
        if text:
            self.console.out(text, end="", highlight=False)

    def finish(self, status: RunStatus, exit_code: Optional[int], duration: float = 0.0) -> None:
        super().finish(status, exit_code, duration)
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.console.out(tail, end="", highlight=False)

        style = _STATUS_STYLES.get(status, "white")
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="bold")
        table.add_column("Value")
        table.add_row("Status", f"[{style}]{status.value.upper()}[/{style}]")
        table.add_row("Exit Code", "-" if exit_code is None else str(exit_code))
        table.add_row("Duration", format_duration(duration))
        self.console.print(Panel(table, title=escape(self.title) or "Result", border_style=style))

    def dismiss(self) -> None:
        super().dismiss()
        self.console.print(f"[dim]{escape(self.title)}: done, output dismissed.[/dim]")
