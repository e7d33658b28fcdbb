"""Unit tests for utility functions (pants_runner.utils).

Tests cover:
- ensure_dir
- with_trailing_sep / relative_posix
- tail_lines
- format_duration
- Rich output helpers (print_success, print_targets_table, etc.)
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from pants_runner.utils import (
    ensure_dir,
    format_duration,
    print_error,
    print_info,
    print_success,
    print_targets_table,
    print_warning,
    relative_posix,
    tail_lines,
    with_trailing_sep,
)


class TestEnsureDir:
    @pytest.mark.unit
    def test_creates_nested_directories(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "c"
        result = ensure_dir(target)
        assert target.is_dir()
        assert result == target

    @pytest.mark.unit
    def test_existing_directory_is_fine(self, tmp_path: Path):
        assert ensure_dir(str(tmp_path)) == tmp_path


class TestPathHelpers:
    @pytest.mark.unit
    def test_trailing_sep_added_once(self):
        assert with_trailing_sep("/repo/src") == "/repo/src" + os.sep
        assert with_trailing_sep("/repo/src" + os.sep) == "/repo/src" + os.sep

    @pytest.mark.unit
    def test_relative_posix(self, tmp_path: Path):
        assert relative_posix(tmp_path / "src" / "app", tmp_path) == "src/app"

    @pytest.mark.unit
    def test_relative_posix_root_is_empty(self, tmp_path: Path):
        assert relative_posix(tmp_path, tmp_path) == ""


class TestTailLines:
    @pytest.mark.unit
    def test_keeps_last_non_empty_lines(self):
        text = "one\n\ntwo\nthree\n\n"
        assert tail_lines(text, 2) == "two\nthree"

    @pytest.mark.unit
    def test_short_text_unchanged(self):
        assert tail_lines("only", 10) == "only"


class TestFormatDuration:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (3.7, "3.7s"),
            (65.2, "1m 5s"),
            (3661.0, "1h 1m 1s"),
            (-1, "0.0s"),
            (3600.0, "1h 0m 0s"),
        ],
    )
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


class TestRichHelpers:
    @pytest.mark.unit
    def test_print_helpers_use_console(self):
        with patch("pants_runner.utils.console") as mock_console:
            print_success("ok")
            print_error("bad")
            print_warning("careful")
            print_info("fyi")
        assert mock_console.print.call_count == 4
        assert "ok" in mock_console.print.call_args_list[0].args[0]

    @pytest.mark.unit
    def test_markup_in_messages_is_escaped(self):
        with patch("pants_runner.utils.console") as mock_console:
            print_error("failed [type=missing]")
        rendered = mock_console.print.call_args.args[0]
        assert "\\[type=missing]" in rendered

    @pytest.mark.unit
    def test_targets_table(self):
        with patch("pants_runner.utils.console") as mock_console:
            print_targets_table(["src/app::", "src/app:app"])
        table = mock_console.print.call_args.args[0]
        assert table.row_count == 2
