"""Build file discovery.

Walks a path's directory ancestry upward until it finds the nearest build
file, stopping at the filesystem root or at a configured boundary (a
directory containing a stop marker such as ``.git``, or one whose path
matches a stop regex).
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from ..config import Config
from ..errors import BuildFileNotFound
from ..utils import with_trailing_sep


@dataclass(frozen=True)
class BuildFileLocation:
    """A directory known to contain a build file, plus that file's mtime."""

    directory: Path
    build_file: Path
    mtime: float

    @property
    def directory_str(self) -> str:
        """Absolute directory path terminated by a path separator."""
        return with_trailing_sep(self.directory)


class BuildFileLocator:
    """Find the build file that owns a source path.

    Stateless: every call re-examines the filesystem.
    """

    def __init__(
        self,
        build_file_name: str = "BUILD",
        stop_markers: Iterable[str] = (".git",),
        stop_dir_pattern: Optional[str] = None,
    ) -> None:
        self.build_file_name = build_file_name
        self.stop_markers = tuple(stop_markers)
        self._stop_re = re.compile(stop_dir_pattern) if stop_dir_pattern else None

    @classmethod
    def from_config(cls, config: Config) -> "BuildFileLocator":
        """Locator using the build file name and boundaries in *config*."""
        return cls(
            build_file_name=config.build_file_name,
            stop_markers=config.stop_markers,
            stop_dir_pattern=config.stop_dir_pattern,
        )

    def _is_boundary(self, directory: Path) -> bool:
        if self._stop_re is not None and self._stop_re.search(with_trailing_sep(directory)):
            return True
        return any((directory / marker).exists() for marker in self.stop_markers)

    def locate(self, start_path: str | Path) -> Optional[BuildFileLocation]:
        """Return the nearest enclosing build file, or ``None``.

        The search starts at *start_path* itself when it is a directory and
        at its parent otherwise.
        """
        path = Path(os.path.abspath(Path(start_path).expanduser()))
        current = path if path.is_dir() else path.parent

        while True:
            candidate = current / self.build_file_name
            if candidate.is_file():
                return BuildFileLocation(
                    directory=current,
                    build_file=candidate,
                    mtime=candidate.stat().st_mtime,
                )
            parent = current.parent
            if parent == current or self._is_boundary(current):
                return None
            current = parent

    def require(self, start_path: str | Path) -> BuildFileLocation:
        """Like :meth:`locate` but raise :class:`BuildFileNotFound` on a miss."""
        location = self.locate(start_path)
        if location is None:
            raise BuildFileNotFound(start_path, self.build_file_name)
        return location
