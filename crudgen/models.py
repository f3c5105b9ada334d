# File: crudgen/models.py
"""
crudgen - Core Data Models
==========================
Pydantic V2 models for the inputs of one generation run:

- ``FieldSpec``     — one user-defined column (name + logical type).
- ``TableSpec``     — the table identifier plus its ordered fields.
- ``ProjectConfig`` — settings of a scaffolded service skeleton.

``FieldSpec`` and ``TableSpec`` are frozen: once collected they are never
mutated, and every emitter derives its output from them alone.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence, Tuple
from urllib.parse import quote

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from crudgen.typemap import FieldType, TypeMapping, resolve_field_type, TYPE_MAPPINGS
from crudgen.utils import derive_table_identifier, to_kebab_case, to_pascal_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.models")

# ---------------------------------------------------------------------------
# Shared configuration
# ---------------------------------------------------------------------------

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    frozen=False,
    extra="forbid",
)

IDENTIFIER_PATTERN: str = r"^[A-Za-z_][A-Za-z0-9_]*$"
TABLE_IDENTIFIER_PATTERN: str = r"^[a-z][a-z0-9_]*$"

# Columns every generated table carries; never supplied by clients.
SYSTEM_COLUMNS: Tuple[str, ...] = ("id", "created_on", "changed_on")


# ---------------------------------------------------------------------------
# FieldSpec
# ---------------------------------------------------------------------------


class FieldSpec(BaseModel):
    """A single user-defined column."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., pattern=IDENTIFIER_PATTERN, description="Column name.")
    field_type: FieldType = Field(
        ...,
        alias="type",
        description="Logical type (canonical name or 1-9 alias).",
    )

    @field_validator("field_type", mode="before")
    @classmethod
    def _resolve_alias(cls, v: Any) -> FieldType:
        return resolve_field_type(v)

    @property
    def mapping(self) -> TypeMapping:
        return TYPE_MAPPINGS[self.field_type]

    @property
    def storage_type(self) -> str:
        return self.mapping.storage_type

    @property
    def host_type(self) -> str:
        return self.mapping.host_type

    @property
    def column_definition(self) -> str:
        """``name STORAGE_TYPE`` as it appears inside ``CREATE TABLE``."""
        return f"{self.name} {self.storage_type}"

    def __repr__(self) -> str:
        return f"<Field {self.name} {self.field_type.value}>"


# ---------------------------------------------------------------------------
# TableSpec
# ---------------------------------------------------------------------------


class TableSpec(BaseModel):
    """
    The single table one generation run produces.

    ``name`` is the canonical identifier (``my_cool_api``); it names the
    route path, the handler functions and the record classes.  The SQL table
    is ``name + table_suffix`` (``my_cool_api_table``).
    """

    model_config = _FROZEN_CONFIG

    name: str = Field(
        ...,
        pattern=TABLE_IDENTIFIER_PATTERN,
        description="Canonical table identifier.",
    )
    fields: Tuple[FieldSpec, ...] = Field(
        default=(),
        description="User-defined columns, in input order (may be empty).",
    )
    table_suffix: str = Field(
        default="_table",
        pattern=r"^[a-z0-9_]*$",
        description="Appended to name to form the SQL table name.",
    )

    @classmethod
    def from_project_name(
        cls,
        project_name: str,
        fields: Sequence[FieldSpec] = (),
        **kwargs: Any,
    ) -> "TableSpec":
        """Build a ``TableSpec`` whose name is derived from *project_name*."""
        return cls(name=derive_table_identifier(project_name), fields=tuple(fields), **kwargs)

    @model_validator(mode="after")
    def _no_duplicate_fields(self) -> "TableSpec":
        names: List[str] = [f.name for f in self.fields]
        dupes: List[str] = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate field names in table '{self.name}': {dupes}")
        return self

    # -- Derived names ------------------------------------------------------

    @computed_field  # type: ignore[misc]
    @property
    def table_name(self) -> str:
        return f"{self.name}{self.table_suffix}"

    @computed_field  # type: ignore[misc]
    @property
    def class_name(self) -> str:
        return f"{to_pascal_case(self.name)}Record"

    @computed_field  # type: ignore[misc]
    @property
    def request_class_name(self) -> str:
        return f"Create{self.class_name}Request"

    @computed_field  # type: ignore[misc]
    @property
    def route_path(self) -> str:
        return f"/{self.name}"

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def has_fields(self) -> bool:
        return bool(self.fields)

    def __repr__(self) -> str:
        return f"<TableSpec {self.table_name} ({len(self.fields)} fields)>"


# ---------------------------------------------------------------------------
# ProjectConfig
# ---------------------------------------------------------------------------


class ProjectConfig(BaseModel):
    """
    Settings of a scaffolded service.

    Unset names are derived from ``project_name``: ``<name>_user``,
    ``<name>_db``, ``<name-kebab>-postgres`` and ``<name-kebab>-apisecret``.
    """

    model_config = _SHARED_CONFIG

    project_name: str = Field(..., min_length=1, description="Free-form project name.")
    description: str = Field(default="", description="One-line project summary.")
    version: str = Field(default="0.1.0", description="Service version.")
    postgres_user: str = Field(default="", description="PostgreSQL role.")
    postgres_password: str = Field(..., min_length=1, description="PostgreSQL password.")
    postgres_host: str = Field(default="", description="PostgreSQL host name.")
    postgres_port: int = Field(default=5432, ge=1, le=65535)
    postgres_db: str = Field(default="", description="PostgreSQL database name.")
    service_port: int = Field(default=8080, ge=1, le=65535)
    api_key: str = Field(default="", description="Value expected in x-api-key.")
    python_version: str = Field(default="3.12", pattern=r"^3\.\d+$")

    @model_validator(mode="before")
    @classmethod
    def _derive_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not data.get("project_name"):
            return data
        ident: str = derive_table_identifier(str(data["project_name"]))
        kebab: str = to_kebab_case(ident)
        derived: Dict[str, str] = {
            "postgres_user": f"{ident}_user",
            "postgres_db": f"{ident}_db",
            "postgres_host": f"{kebab}-postgres",
            "api_key": f"{kebab}-apisecret",
        }
        data = dict(data)
        for key, value in derived.items():
            if not data.get(key):
                data[key] = value
        return data

    @property
    def package_name(self) -> str:
        return derive_table_identifier(self.project_name)

    @property
    def distribution_name(self) -> str:
        return to_kebab_case(self.package_name)

    @property
    def database_url(self) -> str:
        """asyncpg/libpq style URL used as the service default."""
        return (
            f"postgresql://{quote(self.postgres_user, safe='')}:"
            f"{quote(self.postgres_password, safe='')}@"
            f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    def __repr__(self) -> str:
        return f"<ProjectConfig {self.distribution_name} db={self.postgres_db}>"
