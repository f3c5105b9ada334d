"""
tests/test_utils.py
Unit tests for the file and indentation helpers in crudgen.utils.
"""

from __future__ import annotations

import pathlib

from crudgen.utils import (
    backup_path_for,
    count_lines,
    leading_whitespace,
    read_file,
    reindent_lines,
    write_file,
)


class TestWriteFile:
    def test_atomic_write_creates_parents(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "a" / "b" / "main.py"
        written = write_file(path, "print('ok')\n")
        assert written == len("print('ok')\n")
        assert read_file(path) == "print('ok')\n"
        assert [p.name for p in path.parent.iterdir()] == ["main.py"]

    def test_overwrites(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "main.py"
        write_file(path, "one\n")
        write_file(path, "two\n", atomic=False)
        assert read_file(path) == "two\n"

    def test_backup_path(self) -> None:
        assert backup_path_for(pathlib.Path("/srv/main.py")) == pathlib.Path("/srv/main.py.bak")


class TestTextHelpers:
    def test_leading_whitespace(self) -> None:
        assert leading_whitespace("    x = 1") == "    "
        assert leading_whitespace("x") == ""

    def test_reindent_lines(self) -> None:
        assert reindent_lines(["  a", "b", "", "      c"], "\t") == ["\ta", "\tb", "", "\tc"]

    def test_count_lines(self) -> None:
        assert count_lines("") == 0
        assert count_lines("a\nb\n") == 2
        assert count_lines("a\nb") == 2
