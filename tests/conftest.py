"""Shared pytest fixtures for the pants-runner test suite.

Provides reusable fixtures for:
- A temporary source tree with build files and a VCS boundary
- A configuration pointing at that tree and a private cache root
- A recording process runner standing in for the build tool
- Python one-liner invocations for real subprocess tests
"""

from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import BinaryIO, Optional

import pytest

from pants_runner.config import Config
from pants_runner.execution.command import Invocation
from pants_runner.execution.process import ProcessRunner


# ---------------------------------------------------------------------------
# Source tree
# ---------------------------------------------------------------------------

@pytest.fixture
def project_tree(tmp_path: Path) -> Path:
    """Temporary repository laid out like a small Pants project.

    repo/
      .git/
      pants
      pants.ini
      src/app/BUILD
      src/app/main.py
      src/app/sub/deep/util.py     (owned by src/app/BUILD)
      src/lib/BUILD
      src/lib/lib.py
      docs/readme.md               (no build file above it)
    """
    repo = tmp_path / "repo"
    (repo / ".git").mkdir(parents=True)
    (repo / "pants").write_text("#!/bin/sh\n", encoding="utf-8")
    (repo / "pants.ini").write_text("[GLOBAL]\n", encoding="utf-8")

    app = repo / "src" / "app"
    (app / "sub" / "deep").mkdir(parents=True)
    (app / "BUILD").write_text(
        textwrap.dedent("""\
            python_binary(name='app', source='main.py')
            python_tests(name='tests')
        """),
        encoding="utf-8",
    )
    (app / "main.py").write_text("print('hi')\n", encoding="utf-8")
    (app / "sub" / "deep" / "util.py").write_text("", encoding="utf-8")

    lib = repo / "src" / "lib"
    lib.mkdir(parents=True)
    (lib / "BUILD").write_text("python_library()\n", encoding="utf-8")
    (lib / "lib.py").write_text("", encoding="utf-8")

    (repo / "docs").mkdir()
    (repo / "docs" / "readme.md").write_text("# docs\n", encoding="utf-8")
    yield repo


@pytest.fixture
def config(project_tree: Path, tmp_path: Path) -> Config:
    """Configuration rooted at ``project_tree`` with a private cache root."""
    return Config(project_root=project_tree, cache_root=tmp_path / "cache")


# ---------------------------------------------------------------------------
# Process runner doubles
# ---------------------------------------------------------------------------

class RecordingRunner(ProcessRunner):
    """Process runner that records blocking invocations instead of spawning.

    Every ``run_sync`` call writes the configured bytes into the sinks and
    returns the configured exit code.
    """

    def __init__(self, stdout: bytes = b"", stderr: bytes = b"", exit_code: int = 0) -> None:
        super().__init__()
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        self.calls: list[Invocation] = []

    def run_sync(
        self,
        invocation: Invocation,
        stdout_sink: BinaryIO,
        stderr_sink: BinaryIO,
        timeout: Optional[float] = None,
    ) -> int:
        self.calls.append(invocation)
        stdout_sink.write(self.stdout)
        stderr_sink.write(self.stderr)
        invocation.stdout = self.stdout
        invocation.stderr = self.stderr
        invocation.exit_code = self.exit_code
        return self.exit_code


@pytest.fixture
def recording_runner():
    """Factory for :class:`RecordingRunner` instances.

    Usage:
        def test_listing(recording_runner):
            runner = recording_runner(stdout=b"a:a\\n", exit_code=0)
            ...
    """
    def factory(stdout: bytes = b"", stderr: bytes = b"", exit_code: int = 0) -> RecordingRunner:
        return RecordingRunner(stdout=stdout, stderr=stderr, exit_code=exit_code)

    return factory


@pytest.fixture
def python_invocation(tmp_path: Path):
    """Factory for invocations that run a Python one-liner in ``tmp_path``."""
    def factory(code: str) -> Invocation:
        return Invocation(executable=sys.executable, args=["-c", code], cwd=tmp_path)

    return factory
