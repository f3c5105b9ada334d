# File: crudgen/utils.py
"""
crudgen - Utility Functions & Helpers
=====================================
Name normalisation, indentation and file I/O helpers used throughout the
generation pipeline.

- Name conversions are ``lru_cache``-d; they are called once per field per
  emitted template and are pure.
- File writes go through a temporary file plus ``os.replace`` so a crash
  never leaves a half-written service module behind.
"""

from __future__ import annotations

import functools
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Sequence

from crudgen.errors import FieldValidationError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns (compiled once at module load)
# ---------------------------------------------------------------------------

_NON_ALPHANUM_RUN_RE: re.Pattern[str] = re.compile(r"[^a-z0-9]+")
_CANONICAL_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[a-z][a-z0-9_]*$")


# ---------------------------------------------------------------------------
# Cached name transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def derive_table_identifier(project_name: str) -> str:
    """
    Normalise a free-form project name to the canonical table identifier.

    Lower-cases, collapses every run of non-alphanumeric characters into a
    single underscore and strips leading/trailing underscores.

    Examples:
        >>> derive_table_identifier("My-Cool_API")
        'my_cool_api'
        >>> derive_table_identifier("my_cool_api")
        'my_cool_api'
        >>> derive_table_identifier("  user  service ")
        'user_service'

    Raises:
        FieldValidationError: if nothing usable remains, or the result does
            not start with a letter.
    """
    result: str = _NON_ALPHANUM_RUN_RE.sub("_", project_name.lower()).strip("_")
    if not _CANONICAL_IDENTIFIER_RE.match(result):
        raise FieldValidationError(
            f"Cannot derive a table identifier from project name "
            f"{project_name!r}: it must contain letters and start with one."
        )
    return result


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert a snake_case identifier to PascalCase.

    Examples:
        >>> to_pascal_case("my_project")
        'MyProject'
        >>> to_pascal_case("actixtest")
        'Actixtest'
    """
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """Convert a snake_case identifier to kebab-case (distribution names)."""
    return name.replace("_", "-")


# ---------------------------------------------------------------------------
# Indentation helpers
# ---------------------------------------------------------------------------


def leading_whitespace(line: str) -> str:
    """Return the indentation prefix of *line*."""
    return line[: len(line) - len(line.lstrip())]


def reindent_lines(lines: Sequence[str], prefix: str) -> List[str]:
    """Strip each line's own indentation and apply *prefix* instead."""
    return [prefix + line.strip() if line.strip() else "" for line in lines]


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------


def ensure_directory(path: Path) -> None:
    """Create directory (and parents) if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Ensured directory exists: %s", path)


def write_file(path: Path, content: str, atomic: bool = True) -> int:
    """
    Write *content* to *path*.

    When *atomic* is True, writes to a temporary file in the same directory
    first and then renames it over the target.

    Returns the number of bytes written.
    """
    ensure_directory(path.parent)

    encoded: bytes = content.encode("utf-8")

    if atomic:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(encoded)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, str(path))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
    else:
        path.write_bytes(encoded)

    logger.debug("Wrote %d bytes to %s", len(encoded), path)
    return len(encoded)


def read_file(path: Path) -> str:
    """Read a file and return its content as a string."""
    return path.read_text(encoding="utf-8")


def backup_path_for(path: Path) -> Path:
    """``main.py`` -> ``main.py.bak``."""
    return path.with_name(path.name + ".bak")


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def count_lines(content: str) -> int:
    """Count the number of lines in a string. O(n)."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling pipeline steps.

    Usage:
        with Timer("splice source") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"
