"""pants-runner configuration.

A single, immutable configuration value built once at startup and passed to
every component constructor. Settings use a Pydantic v2 model so they are
validated at construction time and can be serialised to/from JSON or read
from environment variables.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _default_cache_root() -> Path:
    return Path(tempfile.gettempdir())


class Config(BaseModel):
    """Front-end configuration.

    Everything a component needs to locate build files, compose command
    lines and cache target listings. Instances are frozen: use
    ``model_copy(update=...)`` to derive a variant.
    """

    model_config = ConfigDict(frozen=True)

    project_root: Path = Field(..., description="Root of the source tree the build tool runs in")
    build_file_name: str = Field(default="BUILD", min_length=1)
    executable: str = Field(default="pants", min_length=1, description="Tool executable, relative to project_root")
    extra_args: str = Field(default="", description="Arguments placed before --config-file")
    config_file: str = Field(default="pants.ini", min_length=1, description="Tool config file, relative to project_root")
    exec_args: str = Field(default="--no-colors", description="Arguments placed after --config-file")

    # Upward search boundaries.
    stop_markers: tuple[str, ...] = Field(default=(".git",))
    stop_dir_pattern: Optional[str] = Field(default=None, description="Regex matched against directory paths")

    # Target cache.
    cache_root: Path = Field(default_factory=_default_cache_root)
    cache_dir_name: str = Field(default="pants-targets", min_length=1)
    lock_timeout: float = Field(default=30.0, gt=0)
    cache_max_age_days: float = Field(default=30.0, ge=0)
    cache_max_entries: int = Field(default=1000, ge=1)

    # Process execution.
    list_timeout: Optional[float] = Field(default=120.0, gt=0, description="Seconds before a listing is killed")
    run_timeout: Optional[float] = Field(default=None, gt=0, description="Seconds before a streamed run is killed")
    auto_dismiss_on_success: bool = Field(default=False)

    # Build file formatter.
    formatter: str = Field(default="buildifier", min_length=1)
    formatter_args: str = Field(default="")

    @field_validator("project_root", "cache_root")
    @classmethod
    def _absolute(cls, value: Path) -> Path:
        return Path(os.path.abspath(Path(value).expanduser()))

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def executable_path(self) -> Path:
        """Absolute path of the build tool executable."""
        return self.project_root / self.executable

    @property
    def config_file_path(self) -> Path:
        """Absolute path of the build tool's config file."""
        return self.project_root / self.config_file

    @property
    def cache_dir(self) -> Path:
        """Directory holding one target list per build file."""
        return self.cache_root / self.cache_dir_name

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Parent directories are created.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path, **overrides: Any) -> "Config":
        """Load a previously-saved configuration from JSON.

        Keyword ``overrides`` win over values stored in the file.
        """
        raw = Path(path).read_text(encoding="utf-8")
        config = cls.model_validate_json(raw)
        if overrides:
            return cls.model_validate({**config.model_dump(), **overrides})
        return config

    @classmethod
    def from_env(cls, **overrides: Any) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional unless no ``project_root``
        override is given):
            PANTS_RUNNER_PROJECT_ROOT, PANTS_RUNNER_BUILD_FILE,
            PANTS_RUNNER_EXECUTABLE, PANTS_RUNNER_EXTRA_ARGS,
            PANTS_RUNNER_CONFIG_FILE, PANTS_RUNNER_EXEC_ARGS,
            PANTS_RUNNER_STOP_MARKERS, PANTS_RUNNER_STOP_DIR_PATTERN,
            PANTS_RUNNER_CACHE_ROOT, PANTS_RUNNER_LIST_TIMEOUT,
            PANTS_RUNNER_RUN_TIMEOUT, PANTS_RUNNER_AUTO_DISMISS,
            PANTS_RUNNER_FORMATTER.
        """
        env = os.environ
        kwargs: dict[str, Any] = {}

        string_vars = {
            "PANTS_RUNNER_PROJECT_ROOT": "project_root",
            "PANTS_RUNNER_BUILD_FILE": "build_file_name",
            "PANTS_RUNNER_EXECUTABLE": "executable",
            "PANTS_RUNNER_CONFIG_FILE": "config_file",
            "PANTS_RUNNER_STOP_DIR_PATTERN": "stop_dir_pattern",
            "PANTS_RUNNER_CACHE_ROOT": "cache_root",
            "PANTS_RUNNER_FORMATTER": "formatter",
        }
        for var, name in string_vars.items():
            if env.get(var):
                kwargs[name] = env[var]

        # These may legitimately be set to an empty string.
        if "PANTS_RUNNER_EXTRA_ARGS" in env:
            kwargs["extra_args"] = env["PANTS_RUNNER_EXTRA_ARGS"]
        if "PANTS_RUNNER_EXEC_ARGS" in env:
            kwargs["exec_args"] = env["PANTS_RUNNER_EXEC_ARGS"]

        if "PANTS_RUNNER_STOP_MARKERS" in env:
            kwargs["stop_markers"] = tuple(
                m.strip() for m in env["PANTS_RUNNER_STOP_MARKERS"].split(",") if m.strip()
            )
        # Left as strings: pydantic coerces them and reports bad values.
        if env.get("PANTS_RUNNER_LIST_TIMEOUT"):
            kwargs["list_timeout"] = env["PANTS_RUNNER_LIST_TIMEOUT"]
        if env.get("PANTS_RUNNER_RUN_TIMEOUT"):
            kwargs["run_timeout"] = env["PANTS_RUNNER_RUN_TIMEOUT"]
        if env.get("PANTS_RUNNER_AUTO_DISMISS"):
            kwargs["auto_dismiss_on_success"] = env["PANTS_RUNNER_AUTO_DISMISS"].strip().lower() in (
                "1", "true", "yes", "on",
            )

        kwargs.update(overrides)
        return cls(**kwargs)
