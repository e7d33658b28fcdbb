"""Command composition for the external build tool.

Turns configuration plus a subcommand and target list into an
:class:`Invocation`: an executable, an ordered argument vector and a working
directory. Arguments are passed to the process-spawn primitive directly, never
through a shell.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from ..config import Config


class Subcommand(str, Enum):
    """Build tool goals the front-end knows how to invoke."""

    BINARY = "binary"
    TEST = "test"
    RUN = "run"
    REPL = "repl"
    FMT = "fmt"
    LIST = "list"
    FILEDEPS = "filedeps"


@dataclass
class Invocation:
    """One composed external command and, once run, its captured result."""

    executable: str
    args: list[str]
    cwd: Path
    display: str = ""
    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: Optional[int] = None

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]

    @property
    def command_line(self) -> str:
        """Human-readable command string (never executed through a shell)."""
        return self.display or " ".join(shlex.quote(part) for part in self.argv)


def _as_list(targets: str | Iterable[str] | None) -> list[str]:
    if targets is None:
        return []
    if isinstance(targets, str):
        return [targets] if targets else []
    return [t for t in targets if t]


class CommandBuilder:
    """Assemble invocations of the build tool and the build file formatter.

    The argument order is fixed::

        <root>/<executable> <extra_args> --config-file=<root>/<config_file>
            <exec_args> <subcommand> <targets...>

    Building is pure: identical configuration and inputs always yield an
    identical :class:`Invocation`.
    """

    def __init__(self, config: Config) -> None:
        self.config = config

    def build(
        self,
        subcommand: Subcommand | str,
        targets: str | Iterable[str] | None = None,
    ) -> Invocation:
        """Compose an invocation of *subcommand* on *targets*.

        Raises:
            ValueError: If *subcommand* is not a known :class:`Subcommand`.
        """
        sub = Subcommand(subcommand)
        target_list = _as_list(targets)
        executable = str(self.config.executable_path)
        config_flag = f"--config-file={self.config.config_file_path}"

        args = [
            *shlex.split(self.config.extra_args),
            config_flag,
            *shlex.split(self.config.exec_args),
            sub.value,
            *target_list,
        ]
        display = " ".join(
            [executable, self.config.extra_args, config_flag, self.config.exec_args, sub.value, *target_list]
        )
        return Invocation(
            executable=executable,
            args=args,
            cwd=self.config.project_root,
            display=display,
        )

    def formatter(self, path: str | Path) -> Invocation:
        """Compose an in-place formatter run on the file at *path*."""
        args = [*shlex.split(self.config.formatter_args), str(path)]
        return Invocation(
            executable=self.config.formatter,
            args=args,
            cwd=self.config.project_root,
        )
