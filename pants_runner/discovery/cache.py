"""Per-build-file target cache.

Maps a build file's directory to a flat text file of target addresses kept
under ``<cache_root>/<cache_dir_name>/<sha256(directory)>``. An entry is fresh
while its mtime is not older than the build file's; a stale or missing entry
is regenerated by running the tool's ``list`` goal.

Cache location: the system temp directory by default.
Invalidation: automatic, by build file mtime. Old entries are removed only by
an explicit :meth:`TargetCache.sweep`.
"""

from __future__ import annotations

import hashlib
import io
import os
import re
import time
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout

from ..config import Config
from ..errors import ListingFailed, ProcessTimedOut
from ..execution.command import CommandBuilder, Subcommand
from ..execution.process import ProcessRunner
from ..utils import ensure_dir, print_info, print_warning, relative_posix, tail_lines
from .locator import BuildFileLocation, BuildFileLocator

_KEY_RE = re.compile(r"^[0-9a-f]{64}$")

WILDCARD_SUFFIX = "::"


def cache_key(directory: str | Path | BuildFileLocation) -> str:
    """Stable storage name for a build file directory.

    The SHA-256 hex digest of the absolute, separator-terminated path, so a
    path given with or without a trailing slash maps to the same key.
    """
    if isinstance(directory, BuildFileLocation):
        text = directory.directory_str
    else:
        text = str(directory)
        if not text.endswith(os.sep):
            text += os.sep
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def parse_targets(text: str) -> list[str]:
    """Split listing output into target addresses, keeping file order."""
    return [line.strip() for line in text.splitlines() if line.strip()]


class TargetCache:
    """Resolve, cache and refresh the targets declared by build files."""

    def __init__(
        self,
        config: Config,
        runner: ProcessRunner | None = None,
        locator: BuildFileLocator | None = None,
        builder: CommandBuilder | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or ProcessRunner()
        self.locator = locator or BuildFileLocator.from_config(config)
        self.builder = builder or CommandBuilder(config)

    # ------------------------------------------------------------------
    # Paths and names
    # ------------------------------------------------------------------

    @property
    def cache_dir(self) -> Path:
        return self.config.cache_dir

    def entry_path_for(self, location: BuildFileLocation) -> Path:
        return self.cache_dir / cache_key(location)

    def entry_path(self, source_path: str | Path) -> Path:
        """Cache file that holds the targets for *source_path*'s build file."""
        return self.entry_path_for(self.locator.require(source_path))

    def relative_dir(self, location: BuildFileLocation) -> str:
        return relative_posix(location.directory, self.config.project_root)

    def wildcard_target(self, location: BuildFileLocation) -> str:
        """Synthetic target standing for everything under the build file."""
        return f"{self.relative_dir(location)}{WILDCARD_SUFFIX}"

    def listing_spec(self, location: BuildFileLocation) -> str:
        """Address spec passed to ``list``: every target in the directory."""
        return f"{self.relative_dir(location)}:"

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    @staticmethod
    def is_fresh(location: BuildFileLocation, entry: Path) -> bool:
        """True when *entry* exists and is not older than the build file."""
        try:
            return entry.stat().st_mtime >= location.mtime
        except FileNotFoundError:
            return False

    def resolve(self, source_path: str | Path) -> list[str]:
        """Return the targets of the build file owning *source_path*.

        The wildcard target always comes first, followed by the targets in
        the order the tool listed them.

        Raises:
            BuildFileNotFound: If no build file encloses *source_path*.
            ListingFailed: If listing failed and nothing was cached before.
            ProcessSpawnFailed: If the tool could not be started.
        """
        location = self.locator.require(source_path)
        entry = self.entry_path_for(location)
        if not self.is_fresh(location, entry):
            self._refresh(location, entry)
        return [self.wildcard_target(location), *self.read_entry(entry)]

    def read_entry(self, entry: Path) -> list[str]:
        return parse_targets(entry.read_text(encoding="utf-8"))

    @staticmethod
    def lock_for(entry: Path, timeout: float) -> FileLock:
        """Inter-process lock guarding writes and removal of *entry*."""
        return FileLock(str(ensure_dir(entry.parent) / f"{entry.name}.lock"), timeout=timeout)

    def _refresh(self, location: BuildFileLocation, entry: Path) -> None:
        lock = self.lock_for(entry, self.config.lock_timeout)
        try:
            with lock:
                # Another process may have regenerated while we waited.
                if not self.is_fresh(location, entry):
                    self.regenerate(location, entry)
        except Timeout:
            if not entry.exists():
                raise ListingFailed(location.directory, -1, "timed out waiting for the cache lock")
            print_warning(f"Cache for {location.directory_str} is locked; using the existing targets.")

    def regenerate(self, location: BuildFileLocation, entry: Path) -> bool:
        """Rerun ``list`` for *location* and overwrite *entry* on success.

        Returns:
            ``True`` if the entry was rewritten. On failure an existing entry
            is left byte-for-byte untouched and ``False`` is returned.

        Raises:
            ListingFailed: If listing failed and no entry exists yet.
        """
        invocation = self.builder.build(Subcommand.LIST, self.listing_spec(location))
        scratch = io.BytesIO()
        errors = io.BytesIO()
        print_info(f"Listing targets: {invocation.command_line}")
        try:
            exit_code = self.runner.run_sync(invocation, scratch, errors, timeout=self.config.list_timeout)
        except ProcessTimedOut as exc:
            exit_code = -1
            errors.write(str(exc).encode("utf-8"))

        if exit_code == 0:
            tmp = entry.with_name(entry.name + ".tmp")
            tmp.write_bytes(scratch.getvalue())
            tmp.replace(entry)
            return True

        stderr = errors.getvalue().decode("utf-8", errors="replace")
        if not entry.exists():
            raise ListingFailed(location.directory, exit_code, stderr)
        print_warning(
            f"Listing targets in {location.directory_str} failed with exit code {exit_code}; "
            "using previously cached targets."
        )
        if stderr.strip():
            print_info(tail_lines(stderr))
        return False

    def invalidate(self, source_path: str | Path) -> bool:
        """Delete the entry for *source_path*'s build file, if any."""
        entry = self.entry_path(source_path)
        if entry.exists():
            entry.unlink()
            return True
        return False

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def sweep(
        self,
        max_age_days: Optional[float] = None,
        max_entries: Optional[int] = None,
        now: Optional[float] = None,
    ) -> list[Path]:
        """Remove old cache entries and their lock files.

        Entries older than *max_age_days* go first; then, if more than
        *max_entries* remain, the least recently written are removed.
        Both limits default to the configured values. An entry whose lock is
        held by a regeneration in progress is skipped.

        Returns:
            The removed entry paths.
        """
        if not self.cache_dir.is_dir():
            return []
        max_age = self.config.cache_max_age_days if max_age_days is None else max_age_days
        limit = self.config.cache_max_entries if max_entries is None else max_entries
        now = time.time() if now is None else now

        entries: list[tuple[float, Path]] = []
        for path in self.cache_dir.iterdir():
            if path.is_file() and _KEY_RE.match(path.name):
                entries.append((path.stat().st_mtime, path))
        entries.sort(key=lambda item: item[0], reverse=True)

        cutoff = now - max_age * 86400
        keep = [(mtime, path) for mtime, path in entries if mtime >= cutoff]
        doomed = [path for mtime, path in entries if mtime < cutoff]
        doomed.extend(path for _, path in keep[limit:])

        removed: list[Path] = []
        for path in doomed:
            lock = self.lock_for(path, timeout=0)
            try:
                with lock:
                    path.unlink(missing_ok=True)
                    if os.name == "posix":
                        # Unlinking an open lock file is only allowed on POSIX.
                        Path(lock.lock_file).unlink(missing_ok=True)
            except Timeout:
                print_warning(f"Skipping cache entry {path.name}: it is being regenerated.")
                continue
            removed.append(path)
        return removed
