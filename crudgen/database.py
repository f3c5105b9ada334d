# File: crudgen/database.py
"""
crudgen - DDL Executor
======================
Hands emitted DDL to PostgreSQL through a SQLAlchemy engine.

The engine is created with ``NullPool``: one generation run opens at most two
short transactions and exits, so pooling buys nothing.  Statements are sent
with ``exec_driver_sql`` so the DDL text reaches the server unchanged.

Failures are fatal for the run and surfaced as ``DataLayerError`` with the
driver exception chained.  There is no retry and no rollback of statements
already committed in an earlier transaction.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from crudgen.errors import DataLayerError, TriggerCreationError
from crudgen.models import TableSpec
from crudgen.schema import emit_create_table, emit_trigger_statements

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.database")


def normalise_url(url: str) -> str:
    """
    Accept the libpq-style URL the generated service uses.

    ``postgres://`` is an alias SQLAlchemy 2.x no longer understands.
    """
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


class DDLExecutor:
    """
    Executes DDL statements against one database.

    Usage::

        executor = DDLExecutor("postgresql://user:pw@localhost:5433/app_db")
        executor.execute_schema(table)
        executor.dispose()
    """

    def __init__(self, database_url: str, *, engine: Optional[Engine] = None) -> None:
        self._url: str = normalise_url(database_url)
        self._engine: Optional[Engine] = engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            try:
                self._engine = create_engine(self._url, poolclass=pool.NullPool, future=True)
            except (SQLAlchemyError, ImportError, ValueError) as exc:
                raise DataLayerError(f"Cannot create database engine: {exc}") from exc
        return self._engine

    def execute(self, statements: Sequence[str]) -> None:
        """Run *statements* in one transaction."""
        try:
            with self.engine.begin() as connection:
                for statement in statements:
                    logger.debug("Executing DDL:\n%s", statement)
                    connection.exec_driver_sql(statement)
        except SQLAlchemyError as exc:
            raise DataLayerError(f"Database error: {exc}") from exc

    def execute_schema(self, table: TableSpec) -> None:
        """
        Create the table, then install the changed_on trigger.

        Raises:
            DataLayerError: the table could not be created.
            TriggerCreationError: the table exists but the trigger failed.
        """
        self.execute([emit_create_table(table)])
        logger.info("Table '%s' created.", table.table_name)

        try:
            self.execute(emit_trigger_statements(table))
        except DataLayerError as exc:
            raise TriggerCreationError(
                f"Failed to create trigger on '{table.table_name}': {exc}"
            ) from exc
        logger.info("Trigger on '%s' created.", table.table_name)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
