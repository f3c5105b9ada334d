# File: crudgen/schema.py
"""
crudgen - DDL Emitter
=====================
Turns a ``TableSpec`` into PostgreSQL DDL:

1. ``CREATE TABLE IF NOT EXISTS`` with the surrogate key, the two
   server-maintained timestamps and one column per field, in input order.
2. A shared ``update_changed_on_column()`` trigger function plus a
   ``BEFORE UPDATE`` row trigger on the table.  Because the trigger assigns
   ``NEW.changed_on`` unconditionally, a client-supplied value for that
   column is always overwritten.

All statements are idempotent (``IF NOT EXISTS`` / ``OR REPLACE`` /
``DROP ... IF EXISTS``), so re-running generation for the same table is
safe at the database level too.
"""

from __future__ import annotations

import logging
from typing import List

from crudgen.models import TableSpec

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.schema")

TIMESTAMP_TYPE: str = "TIMESTAMP WITH TIME ZONE"
TRIGGER_FUNCTION_NAME: str = "update_changed_on_column"

SYSTEM_COLUMN_DEFINITIONS: List[str] = [
    "id SERIAL PRIMARY KEY",
    f"created_on {TIMESTAMP_TYPE} DEFAULT CURRENT_TIMESTAMP",
    f"changed_on {TIMESTAMP_TYPE} DEFAULT CURRENT_TIMESTAMP",
]


def trigger_name(table: TableSpec) -> str:
    return f"update_{table.table_name}_changed_on"


def column_definitions(table: TableSpec) -> List[str]:
    """System columns first, then user fields in input order."""
    return SYSTEM_COLUMN_DEFINITIONS + [f.column_definition for f in table.fields]


def emit_create_table(table: TableSpec) -> str:
    columns: str = ",\n".join(f"    {col}" for col in column_definitions(table))
    return f"CREATE TABLE IF NOT EXISTS {table.table_name} (\n{columns}\n);"


def emit_trigger_function() -> str:
    return (
        f"CREATE OR REPLACE FUNCTION {TRIGGER_FUNCTION_NAME}()\n"
        "RETURNS TRIGGER AS $$\n"
        "BEGIN\n"
        "    NEW.changed_on = CURRENT_TIMESTAMP;\n"
        "    RETURN NEW;\n"
        "END;\n"
        "$$ LANGUAGE plpgsql;"
    )


def emit_trigger_statements(table: TableSpec) -> List[str]:
    """Function, drop and create statements for the changed_on trigger."""
    name: str = trigger_name(table)
    return [
        emit_trigger_function(),
        f"DROP TRIGGER IF EXISTS {name} ON {table.table_name};",
        (
            f"CREATE TRIGGER {name}\n"
            f"    BEFORE UPDATE ON {table.table_name}\n"
            "    FOR EACH ROW\n"
            f"    EXECUTE FUNCTION {TRIGGER_FUNCTION_NAME}();"
        ),
    ]


def emit_trigger(table: TableSpec) -> str:
    return "\n\n".join(emit_trigger_statements(table))


def emit_statements(table: TableSpec) -> List[str]:
    """Every statement, in execution order."""
    return [emit_create_table(table)] + emit_trigger_statements(table)


def emit_schema(table: TableSpec) -> str:
    """The complete DDL script for *table*."""
    logger.debug(
        "Emitting DDL for %s (%d user column(s)).",
        table.table_name,
        len(table.fields),
    )
    return "\n\n".join(emit_statements(table)) + "\n"
