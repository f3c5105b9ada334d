# File: crudgen/validators.py
"""
crudgen - Field & Table Validators
==================================
A **pure-function validation layer** on top of the pydantic models in
``crudgen.models``.

Pydantic enforces structure (identifier grammar, closed type set).  This
module adds the semantic checks that decide whether the *generated* code
will work: system-column clashes, duplicates, Python keywords, names that
pydantic would treat as private, and a handful of warnings.

Functions never raise on bad input; they return a ``ValidationResult`` so
the interactive collector can re-prompt and the CLI can print a report.
``validate_table_spec_or_raise`` is the one exception, used at the
generation boundary.
"""

from __future__ import annotations

import keyword
import logging
import re
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel

from crudgen.errors import FieldValidationError, InvalidTypeError
from crudgen.models import SYSTEM_COLUMNS, TableSpec
from crudgen.typemap import resolve_field_type

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight error descriptor (no pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()


class ValidationResult:
    """Accumulates ``ValidationError`` items produced by the checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def add_info(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def infos(self) -> List[ValidationError]:
        return [e for e in self._items if e.level == "info"]

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def has_warnings(self) -> bool:
        return any(e.is_warning for e in self._items)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary()]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            prefix: str = {"error": "✗", "warning": "!", "info": "i"}.get(item.level, "•")
            lines.append(f"  {prefix} [{item.code}] {item.message}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Regex patterns & word lists
# ---------------------------------------------------------------------------

_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_TABLE_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[a-z][a-z0-9_]*$")

# Reserved in PostgreSQL; legal only when quoted, and generated SQL never quotes.
_SQL_RESERVED_WORDS: FrozenSet[str] = frozenset(
    {
        "all", "analyse", "analyze", "and", "any", "array", "as", "asc",
        "asymmetric", "both", "case", "cast", "check", "collate", "column",
        "constraint", "create", "current_date", "current_role",
        "current_time", "current_timestamp", "current_user", "default",
        "deferrable", "desc", "distinct", "do", "else", "end", "except",
        "false", "fetch", "for", "foreign", "from", "grant", "group",
        "having", "in", "initially", "intersect", "into", "lateral",
        "leading", "limit", "localtime", "localtimestamp", "not", "null",
        "offset", "on", "only", "or", "order", "placing", "primary",
        "references", "returning", "select", "session_user", "some",
        "symmetric", "table", "then", "to", "trailing", "true", "union",
        "unique", "user", "using", "variadic", "when", "where", "window",
        "with",
    }
)

# get_pool / create_app and the /api/db, /api/name/{name} routes.
_RESERVED_TABLE_IDENTIFIERS: FrozenSet[str] = frozenset({"app", "db", "name", "pool"})

# Names evaluated inside the generated model class bodies.
_GENERATED_MODULE_NAMES: FrozenSet[str] = frozenset(
    {
        "Any", "AsyncIterator", "BaseModel", "Dict", "List", "Optional",
        "bool", "datetime", "float", "int", "str",
    }
)

# Attribute names a pydantic BaseModel subclass must not reuse.
_BASEMODEL_ATTRIBUTES: FrozenSet[str] = frozenset(
    name for name in dir(BaseModel) if not name.startswith("_")
)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_field_name(name: str, existing: Iterable[str] = ()) -> ValidationResult:
    """
    Validate one candidate field name.

    Errors (re-prompt):
        - INVALID_IDENTIFIER: not ``[A-Za-z_][A-Za-z0-9_]*``
        - SYSTEM_COLUMN: clashes with id / created_on / changed_on
        - DUPLICATE_FIELD: already present in *existing*
        - PYTHON_KEYWORD: would not compile as a model attribute
        - PRIVATE_NAME: leading underscore, ignored by pydantic as a field
        - MIXED_CASE: PostgreSQL stores the column lower-cased, so rows
          would not map back onto the model attribute
        - GENERATED_NAME_CLASH: rebinds a name the generated models use
          in their annotations
    Warnings:
        - SQL_RESERVED_WORD, MODEL_ATTRIBUTE_SHADOW, MODEL_NAMESPACE
    """
    result: ValidationResult = ValidationResult()
    ctx: Dict[str, Any] = {"field": name}

    if not _IDENTIFIER_RE.match(name or ""):
        result.add_error(
            "INVALID_IDENTIFIER",
            "Invalid field name. Use only letters, numbers, and underscores "
            "(must start with letter or underscore).",
            ctx,
        )
        return result

    lowered: str = name.lower()

    if lowered in SYSTEM_COLUMNS:
        result.add_error(
            "SYSTEM_COLUMN",
            f"'{name}' is created automatically; choose another name.",
            ctx,
        )

    if lowered in {e.lower() for e in existing}:
        result.add_error(
            "DUPLICATE_FIELD",
            f"Field '{name}' has already been added.",
            ctx,
        )

    if keyword.iskeyword(name):
        result.add_error(
            "PYTHON_KEYWORD",
            f"'{name}' is a Python keyword and cannot be a model field.",
            ctx,
        )

    if name.startswith("_"):
        result.add_error(
            "PRIVATE_NAME",
            f"'{name}' starts with an underscore; pydantic would treat it as "
            "a private attribute.",
            ctx,
        )

    if name != lowered:
        result.add_error(
            "MIXED_CASE",
            f"PostgreSQL folds unquoted identifiers to lower case; '{name}' "
            f"would be stored as '{lowered}'. Use '{lowered}' instead.",
            ctx,
        )

    if name in _GENERATED_MODULE_NAMES:
        result.add_error(
            "GENERATED_NAME_CLASH",
            f"'{name}' is used as a type in the generated models; a field of "
            "that name would shadow it.",
            ctx,
        )

    if lowered in _SQL_RESERVED_WORDS:
        result.add_warning(
            "SQL_RESERVED_WORD",
            f"'{name}' is a reserved word in PostgreSQL; the generated "
            "statements do not quote identifiers.",
            ctx,
        )

    if name in _BASEMODEL_ATTRIBUTES:
        result.add_warning(
            "MODEL_ATTRIBUTE_SHADOW",
            f"'{name}' shadows a pydantic BaseModel attribute.",
            ctx,
        )
    elif name.startswith("model_"):
        result.add_warning(
            "MODEL_NAMESPACE",
            f"'{name}' uses pydantic's protected 'model_' namespace.",
            ctx,
        )

    return result


def validate_type_token(token: str) -> ValidationResult:
    """Validate a type token (1-9 alias or canonical name)."""
    result: ValidationResult = ValidationResult()
    try:
        resolve_field_type(token)
    except InvalidTypeError as exc:
        result.add_error("INVALID_TYPE", str(exc), {"token": token})
    return result


def validate_table_identifier(name: str) -> ValidationResult:
    """Validate the canonical table identifier."""
    result: ValidationResult = ValidationResult()
    if not _TABLE_IDENTIFIER_RE.match(name or ""):
        result.add_error(
            "INVALID_TABLE_NAME",
            f"Table identifier {name!r} must be lower-case snake_case "
            "starting with a letter.",
            {"table": name},
        )
    elif name in _RESERVED_TABLE_IDENTIFIERS:
        result.add_error(
            "RESERVED_IDENTIFIER",
            f"Table identifier '{name}' collides with a built-in handler or "
            "route of the service module.",
            {"table": name},
        )
    elif name in _SQL_RESERVED_WORDS:
        result.add_warning(
            "SQL_RESERVED_WORD",
            f"Table identifier '{name}' is a reserved word in PostgreSQL.",
            {"table": name},
        )
    return result


def validate_table_spec(table: TableSpec) -> ValidationResult:
    """Validate the table identifier and every field, in order."""
    result: ValidationResult = validate_table_identifier(table.name)

    seen: List[str] = []
    for field in table.fields:
        result.merge(validate_field_name(field.name, seen))
        seen.append(field.name)

    if not table.fields:
        result.add_warning(
            "NO_FIELDS",
            f"Table '{table.table_name}' has no user fields; it will only "
            "contain id, created_on and changed_on.",
            {"table": table.table_name},
        )
        result.add_info(
            "DEFAULT_VALUES_ONLY",
            "Create will insert DEFAULT VALUES and update will only refresh "
            "changed_on.",
            {"table": table.table_name},
        )

    logger.debug("Validated %r: %s", table, result.summary())
    return result


def validate_table_spec_or_raise(table: TableSpec) -> ValidationResult:
    """Like ``validate_table_spec`` but raises on errors."""
    result: ValidationResult = validate_table_spec(table)
    if result.has_errors:
        raise FieldValidationError(
            f"Table '{table.table_name}' failed validation.\n{result.format_report()}",
            result,
        )
    return result
