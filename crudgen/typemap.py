# File: crudgen/typemap.py
"""
crudgen - Logical Type Mapping
==============================

Maps the small closed set of logical field-type tokens offered to the user
onto a ``(storage type, host type)`` pair:

- *storage type* — the PostgreSQL column type used in ``CREATE TABLE``.
- *host type* — the Python annotation used in the generated pydantic models.

A token may be given either as its canonical name (``"int"``) or as the
numeric alias shown in the interactive menu (``"3"``).  Both forms resolve
to the *identical* ``TypeMapping`` object.  Anything outside the closed set
raises ``InvalidTypeError``; there is no fallback type.
"""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from crudgen.errors import InvalidTypeError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.typemap")


class FieldType(str, Enum):
    """Logical field types, in menu order (alias 1..9)."""

    STRING = "string"
    TEXT = "text"
    INT = "int"
    BIGINT = "bigint"
    FLOAT = "float"
    DOUBLE = "double"
    BOOL = "bool"
    DATE = "date"
    JSON = "json"


class TypeMapping(BaseModel):
    """Storage/host type pair for one logical type."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    storage_type: str = Field(..., min_length=1, description="PostgreSQL column type.")
    host_type: str = Field(..., min_length=1, description="Python annotation text.")
    description: str = Field(default="", description="Menu help text.")


# ---------------------------------------------------------------------------
# The static table
# ---------------------------------------------------------------------------

TYPE_MAPPINGS: Mapping[FieldType, TypeMapping] = MappingProxyType({
    FieldType.STRING: TypeMapping(
        storage_type="VARCHAR(255)",
        host_type="str",
        description="for text up to 255 characters",
    ),
    FieldType.TEXT: TypeMapping(
        storage_type="TEXT",
        host_type="str",
        description="for longer text",
    ),
    FieldType.INT: TypeMapping(
        storage_type="INTEGER",
        host_type="int",
        description="for whole numbers",
    ),
    FieldType.BIGINT: TypeMapping(
        storage_type="BIGINT",
        host_type="int",
        description="for large whole numbers",
    ),
    FieldType.FLOAT: TypeMapping(
        storage_type="REAL",
        host_type="float",
        description="for decimal numbers",
    ),
    FieldType.DOUBLE: TypeMapping(
        storage_type="DOUBLE PRECISION",
        host_type="float",
        description="for high precision decimals",
    ),
    FieldType.BOOL: TypeMapping(
        storage_type="BOOLEAN",
        host_type="bool",
        description="for true/false values",
    ),
    FieldType.DATE: TypeMapping(
        storage_type="TIMESTAMP WITH TIME ZONE",
        host_type="datetime",
        description="for date and time",
    ),
    FieldType.JSON: TypeMapping(
        storage_type="JSONB",
        host_type="Any",
        description="for JSON data",
    ),
})

# "1" -> FieldType.STRING ... "9" -> FieldType.JSON
_ALIASES: Dict[str, FieldType] = {
    str(position): field_type
    for position, field_type in enumerate(FieldType, start=1)
}
_NAMES: Dict[str, FieldType] = {field_type.value: field_type for field_type in FieldType}


def resolve_field_type(token: Union[str, int, FieldType]) -> FieldType:
    """
    Resolve a numeric alias or canonical name to a ``FieldType``.

    Raises:
        InvalidTypeError: if *token* is not in the closed set.
    """
    if isinstance(token, FieldType):
        return token
    if isinstance(token, bool) or not isinstance(token, (str, int)):
        raise InvalidTypeError(token)

    key: str = str(token).strip().lower()
    field_type = _ALIASES.get(key) or _NAMES.get(key)
    if field_type is None:
        logger.debug("Rejected type token %r.", token)
        raise InvalidTypeError(token)
    return field_type


def map_type(token: Union[str, int, FieldType]) -> TypeMapping:
    """Return the ``TypeMapping`` for *token* (alias or canonical name)."""
    return TYPE_MAPPINGS[resolve_field_type(token)]


def type_menu() -> List[Tuple[str, FieldType, TypeMapping]]:
    """Return ``(alias, type, mapping)`` rows in menu order."""
    return [
        (alias, field_type, TYPE_MAPPINGS[field_type])
        for alias, field_type in _ALIASES.items()
    ]


def describe_types() -> str:
    """Human-readable type menu used by the interactive collector."""
    lines: List[str] = ["Available data types:"]
    for alias, field_type, mapping in type_menu():
        lines.append(
            f"  {alias}) {field_type.value:<7s} - {mapping.storage_type} - "
            f"{mapping.description}"
        )
    return "\n".join(lines)
