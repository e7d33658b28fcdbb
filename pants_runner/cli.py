"""Command-line entry point for pants-runner.

Usage::

    pants-runner targets src/app/main.py
    pants-runner test src/app/main.py -t src/app:tests
    pants-runner --project-root ~/repo binary src/app/main.py
    pants-runner format-build src/app/BUILD
    pants-runner cache sweep --max-age-days 7
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from .config import Config
from .discovery.locator import BuildFileLocator
from .errors import FormatFailed, PantsRunnerError
from .execution.command import Subcommand
from .frontend import PantsFrontend
from .selection import SelectionCancelled
from .utils import console, print_error, print_info, print_success, print_targets_table

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ERROR = 2

_RUN_GOALS = (Subcommand.BINARY, Subcommand.TEST, Subcommand.RUN, Subcommand.FMT)


def discover_project_root(start: Path, executable: str = "pants") -> Optional[Path]:
    """Nearest ancestor of *start* containing the tool *executable*."""
    location = BuildFileLocator(build_file_name=executable, stop_markers=()).locate(start)
    return location.directory if location else None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pants-runner",
        description="Discover build targets and run build tool goals on them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  pants-runner targets src/app/main.py\n"
            "  pants-runner test src/app/main.py -t src/app:tests\n"
            "  pants-runner cache sweep\n"
        ),
    )
    parser.add_argument("--project-root", default=None, help="Source tree root (auto-detected if omitted)")
    parser.add_argument("--config", default=None, help="JSON configuration file")
    parser.add_argument("--executable", default=None, help="Build tool executable, relative to the project root")
    parser.add_argument(
        "--auto-dismiss",
        action="store_true",
        default=None,
        help="Hide the output of runs that succeed",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("targets", help="List the targets of the build file owning FILE")
    p.add_argument("file")

    p = sub.add_parser("build-file", help="Show the build file owning FILE")
    p.add_argument("file")

    for goal in (*_RUN_GOALS, Subcommand.REPL, Subcommand.FILEDEPS):
        p = sub.add_parser(goal.value, help=f"Run the '{goal.value}' goal on a target")
        p.add_argument("file")
        p.add_argument("--target", "-t", default=None, help="Target address (prompted for if omitted)")

    p = sub.add_parser("format-build", help="Format a build file with the configured formatter")
    p.add_argument("file")

    cache = sub.add_parser("cache", help="Inspect or clean the target cache")
    cache_sub = cache.add_subparsers(dest="cache_command", required=True)
    p = cache_sub.add_parser("path", help="Show the cache file for FILE's build file")
    p.add_argument("file")
    p = cache_sub.add_parser("sweep", help="Delete old cache entries")
    p.add_argument("--max-age-days", type=float, default=None)
    p.add_argument("--max-entries", type=int, default=None)

    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Assemble the configuration: file or environment, then CLI flags."""
    overrides: dict[str, Any] = {}
    if args.project_root:
        overrides["project_root"] = Path(args.project_root)
    if args.executable:
        overrides["executable"] = args.executable
    if args.auto_dismiss:
        overrides["auto_dismiss_on_success"] = True

    if args.config:
        return Config.load(Path(args.config), **overrides)

    if "project_root" not in overrides:
        try:
            return Config.from_env(**overrides)
        except ValidationError:
            start = Path(getattr(args, "file", None) or Path.cwd())
            root = discover_project_root(start, args.executable or "pants")
            if root is None:
                raise
            overrides["project_root"] = root
    return Config.from_env(**overrides)


def _exit_code(outcome) -> int:
    if outcome.success:
        return EXIT_OK
    if outcome.exit_code is not None and outcome.exit_code > 0:
        return outcome.exit_code
    return EXIT_FAILED


def _dispatch(args: argparse.Namespace, frontend: PantsFrontend) -> int:
    command = args.command

    if command == "targets":
        print_targets_table(frontend.targets(args.file))
        return EXIT_OK

    if command == "build-file":
        console.print(str(frontend.find_build_file(args.file).build_file), soft_wrap=True, highlight=False)
        return EXIT_OK

    if command in {goal.value for goal in _RUN_GOALS}:
        outcome = asyncio.run(frontend.run(command, args.file, args.target))
        return _exit_code(outcome)

    if command == Subcommand.REPL.value:
        target = args.target or frontend.choose_target(args.file, "repl target")
        return asyncio.run(frontend.repl(target))

    if command == Subcommand.FILEDEPS.value:
        target = args.target or frontend.choose_target(args.file, "filedeps target")
        for path in frontend.file_dependencies(target):
            console.print(path, soft_wrap=True, highlight=False)
        return EXIT_OK

    if command == "format-build":
        result = asyncio.run(frontend.format_build_file(args.file))
        result.raise_for_status()
        if not result.changed:
            print_info(f"{args.file} is already formatted")
        return EXIT_OK

    if command == "cache":
        if args.cache_command == "path":
            console.print(str(frontend.cache.entry_path(args.file)), soft_wrap=True, highlight=False)
            return EXIT_OK
        removed = frontend.cache.sweep(args.max_age_days, args.max_entries)
        print_success(f"Removed {len(removed)} cache entr{'y' if len(removed) == 1 else 'ies'}")
        return EXIT_OK

    raise ValueError(f"Unknown command: {command}")


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for ``pants-runner`` / ``python -m pants_runner``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except ValidationError as exc:
        print_error(f"Error: invalid configuration\n{exc}")
        sys.exit(EXIT_ERROR)

    frontend = PantsFrontend(config)
    try:
        code = _dispatch(args, frontend)
    except FormatFailed as exc:
        # Diagnostics were already shown on the results surface.
        print_error(f"Error: {str(exc).splitlines()[0]}")
        sys.exit(EXIT_FAILED)
    except SelectionCancelled as exc:
        print_error(f"Error: {exc}")
        sys.exit(EXIT_FAILED)
    except PantsRunnerError as exc:
        print_error(f"Error: {exc}")
        sys.exit(EXIT_ERROR)
    sys.exit(code)


if __name__ == "__main__":
    main()
