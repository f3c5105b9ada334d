# File: crudgen/errors.py
"""
crudgen - Exception Hierarchy
=============================

Every error raised by the engine derives from ``CrudgenError`` so callers
(the CLI in particular) can map failures to exit codes without catching
unrelated exceptions.

Taxonomy::

    CrudgenError
    ├── FieldValidationError (also ValueError)  — bad field name / type
    │   └── InvalidTypeError                    — type token not recognised
    ├── AnchorNotFoundError                     — splice target missing
    └── DataLayerError                          — DDL executor failure
        └── TriggerCreationError                — table created, trigger not
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from crudgen.validators import ValidationResult


class CrudgenError(Exception):
    """Base class for all crudgen errors."""


class FieldValidationError(CrudgenError, ValueError):
    """A field name, type token or table identifier failed validation."""

    def __init__(
        self,
        message: str,
        result: Optional["ValidationResult"] = None,
    ) -> None:
        super().__init__(message)
        self.result: Optional["ValidationResult"] = result


class InvalidTypeError(FieldValidationError):
    """A logical type token is outside the supported closed set."""

    def __init__(self, token: object) -> None:
        super().__init__(
            f"Invalid type choice: {token!r}. "
            "Use 1-9 or one of: string, text, int, bigint, float, double, "
            "bool, date, json."
        )
        self.token: object = token


class AnchorNotFoundError(CrudgenError):
    """The source text has no entry-point line to splice against."""

    def __init__(self, pattern: str) -> None:
        super().__init__(
            f"Entry point not found: no line matching {pattern!r}. "
            "The source file does not look like a crudgen service module."
        )
        self.pattern: str = pattern


class DataLayerError(CrudgenError):
    """The database rejected a statement or could not be reached."""


class TriggerCreationError(DataLayerError):
    """The table exists but the changed_on trigger could not be installed."""
