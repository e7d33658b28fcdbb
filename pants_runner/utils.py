"""Shared utility functions for pants-runner.

Rich-based console reporting, duration formatting, directory helpers and
small text helpers used by the cache and the reporter.
"""

from __future__ import annotations

import os
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def ensure_dir(path: str | Path) -> Path:
    """``mkdir -p`` *path* and return it unchanged as a ``Path``."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def with_trailing_sep(path: str | Path) -> str:
    """Render a directory path as a string ending with the path separator."""
    text = str(path)
    return text if text.endswith(os.sep) else text + os.sep


def relative_posix(path: str | Path, root: str | Path) -> str:
    """Return *path* relative to *root* using forward slashes.

    The root itself maps to the empty string.

    Examples::

        relative_posix("/repo/src/app", "/repo") -> "src/app"
        relative_posix("/repo", "/repo")         -> ""
    """
    rel = os.path.relpath(str(path), str(root))
    if rel == os.curdir:
        return ""
    return Path(rel).as_posix()


def tail_lines(text: str, count: int = 10) -> str:
    """Return the last *count* non-empty lines of *text*."""
    lines = [line for line in text.splitlines() if line.strip()]
    return "\n".join(lines[-count:])


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Run duration for the summary panel: ``3.7s``, ``1m 5s``, ``1h 1m 1s``."""
    seconds = max(seconds, 0.0)
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_targets_table(targets: list[str], title: str = "Targets") -> None:
    """Print a numbered single-column table of targets."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", no_wrap=True, justify="right")
    table.add_column("Target")

    for index, target in enumerate(targets, 1):
        table.add_row(str(index), escape(target))

    console.print(table)


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")


def print_info(message: str) -> None:
    """Print a dim informational message."""
    console.print(f"[dim]{escape(message)}[/dim]")
