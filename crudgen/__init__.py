# File: crudgen/__init__.py
"""
crudgen - CRUD Endpoint Generator for FastAPI + PostgreSQL Services
===================================================================

Creates a PostgreSQL table (with an auto-maintained ``changed_on`` trigger)
and splices the matching pydantic models, asyncpg handlers and route
registrations into an existing service module.  Re-running for the same
table replaces the previous output instead of duplicating it.

Architecture overview::

    ┌──────────────┐     ┌───────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ CrudGenerator │────▶│ TemplateGenerator│
    │   (cli.py)   │     │ (generator.py)│     │  (templates.py)  │
    └──────────────┘     └───────┬───────┘     └──────────────────┘
                                 │
                ┌────────────┬───┴────────┬────────────┐
                ▼            ▼            ▼            ▼
         ┌──────────┐ ┌───────────┐ ┌──────────┐ ┌───────────┐
         │validators│ │  schema   │ │ splicer  │ │ database  │
         │  (.py)   │ │  (.py)    │ │  (.py)   │ │  (.py)    │
         └──────────┘ └───────────┘ └──────────┘ └───────────┘

Usage::

    # As a library
    from crudgen import CrudGenerator, FieldSpec, TableSpec
    table = TableSpec.from_project_name("My-Shop", [FieldSpec(name="title", type="string")])
    CrudGenerator().add_table(table, Path("main.py"))

    # From the command line
    crudgen add-table --source main.py --fields fields.yaml --skip-db
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from crudgen.errors import (
    AnchorNotFoundError,
    CrudgenError,
    DataLayerError,
    FieldValidationError,
    InvalidTypeError,
    TriggerCreationError,
)
from crudgen.typemap import FieldType, TYPE_MAPPINGS, TypeMapping, resolve_field_type
from crudgen.models import FieldSpec, ProjectConfig, TableSpec
from crudgen.validators import ValidationResult, validate_field_name, validate_table_spec
from crudgen.collector import FieldCollector, load_fields_file
from crudgen.schema import emit_create_table, emit_schema, emit_trigger
from crudgen.splicer import block_marker, parse_source, remove_block, splice, splice_routes
from crudgen.templates import TemplateGenerator
from crudgen.database import DDLExecutor
from crudgen.generator import CrudGenerator, GenerationReport, read_project_name
from crudgen.utils import derive_table_identifier

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Orchestrator
    "CrudGenerator",
    "GenerationReport",
    "read_project_name",
    # Models & types
    "FieldSpec",
    "FieldType",
    "ProjectConfig",
    "TableSpec",
    "TypeMapping",
    "TYPE_MAPPINGS",
    "resolve_field_type",
    "derive_table_identifier",
    # Input
    "FieldCollector",
    "load_fields_file",
    "ValidationResult",
    "validate_field_name",
    "validate_table_spec",
    # Emitters
    "emit_create_table",
    "emit_schema",
    "emit_trigger",
    "TemplateGenerator",
    # Source editing
    "block_marker",
    "parse_source",
    "remove_block",
    "splice",
    "splice_routes",
    # Database
    "DDLExecutor",
    # Errors
    "CrudgenError",
    "FieldValidationError",
    "InvalidTypeError",
    "AnchorNotFoundError",
    "DataLayerError",
    "TriggerCreationError",
]
