# File: crudgen/templates.py
"""
crudgen - Code Template Engine
==============================
Pure-Python code generation for the scaffolded service:

    1. ``generate_service_module`` — the skeleton ``main.py`` (FastAPI app,
       asyncpg pool, API-key dependency, CORS, ``create_app()`` entry point).
    2. ``generate_pyproject``      — the service build manifest.
    3. ``generate_crud_block``     — per-table record/request models and the
       five CRUD handlers, headed by the sentinel marker line.
    4. ``generate_route_lines``    — the five ``api.add_api_route`` lines.

**Contracts:**
    - All string assembly uses ``List[str]`` + ``"\\n".join()``.
    - Template methods are stateless; one generator may be reused freely.
    - Every handler issues exactly one parameterised statement; the column
      order in the SQL text always equals the bind order.
    - Record fields use the column names verbatim so ``Record(**dict(row))``
      maps rows without aliasing.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional

from crudgen import __version__
from crudgen.models import ProjectConfig, TableSpec
from crudgen.splicer import ROUTER_VARIABLE, block_marker

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_INDENT: str = "    "  # 4-space indent
_DOUBLE_INDENT: str = "        "

SERVICE_DEPENDENCIES: List[str] = [
    "fastapi>=0.110",
    "uvicorn[standard]>=0.27",
    "asyncpg>=0.29",
    "pydantic>=2.5",
]


def _placeholders(start: int, count: int) -> List[str]:
    """``_placeholders(2, 3) -> ["$2", "$3", "$4"]``."""
    return [f"${position}" for position in range(start, start + count)]


class TemplateGenerator:
    """
    Stateless code-generation engine.

    Accepts ``TableSpec`` / ``ProjectConfig`` instances and produces Python
    source strings.  ``config`` is only needed for the service-level
    templates; per-table templates depend on the ``TableSpec`` alone.
    """

    def __init__(self, config: Optional[ProjectConfig] = None) -> None:
        self._config: Optional[ProjectConfig] = config

    def _require_config(self, config: Optional[ProjectConfig]) -> ProjectConfig:
        resolved = config or self._config
        if resolved is None:
            raise ValueError("A ProjectConfig is required for service templates.")
        return resolved

    # ===================================================================
    # 1. Per-table CRUD block
    # ===================================================================

    def generate_crud_block(self, table: TableSpec) -> str:
        """
        Generate the spliceable block for one table.

        The first line is the sentinel marker; the block never contains the
        ``create_app`` entry point, so it can be spliced repeatedly.
        """
        lines: List[str] = []
        lines.append(block_marker(table.table_name))
        lines.append(f"# Table: {table.table_name}")
        lines.append("")
        lines.append("")
        lines.extend(self._record_models(table))
        lines.append("")
        lines.append("")
        lines.extend(self._create_handler(table))
        lines.append("")
        lines.append("")
        lines.extend(self._get_handler(table))
        lines.append("")
        lines.append("")
        lines.extend(self._list_handler(table))
        lines.append("")
        lines.append("")
        lines.extend(self._update_handler(table))
        lines.append("")
        lines.append("")
        lines.extend(self._delete_handler(table))

        logger.debug(
            "Generated CRUD block for %s (%d lines).", table.table_name, len(lines)
        )
        return "\n".join(lines) + "\n"

    def _record_models(self, table: TableSpec) -> List[str]:
        lines: List[str] = []
        lines.append(f"class {table.class_name}(BaseModel):")
        lines.append(f"{_INDENT}id: int")
        lines.append(f"{_INDENT}created_on: datetime")
        lines.append(f"{_INDENT}changed_on: datetime")
        for field in table.fields:
            # Columns are nullable in the DDL, so rows may carry NULLs.
            if field.host_type == "Any":
                lines.append(f"{_INDENT}{field.name}: Any = None")
            else:
                lines.append(f"{_INDENT}{field.name}: Optional[{field.host_type}] = None")
        lines.append("")
        lines.append("")
        lines.append(f"class {table.request_class_name}(BaseModel):")
        if not table.fields:
            lines.append(f"{_INDENT}pass")
        for field in table.fields:
            lines.append(f"{_INDENT}{field.name}: {field.host_type}")
        return lines

    def _request_param(self, table: TableSpec) -> str:
        # Zero-field tables accept an empty or absent body.
        if table.has_fields:
            return f"{_INDENT}record: {table.request_class_name},"
        return f"{_INDENT}record: Optional[{table.request_class_name}] = None,"

    @staticmethod
    def _database_error(action: str) -> List[str]:
        return [
            f"{_INDENT}except asyncpg.PostgresError as exc:",
            f'{_DOUBLE_INDENT}logger.error("Database error: %s", exc)',
            f"{_DOUBLE_INDENT}raise HTTPException(",
            f'{_DOUBLE_INDENT}{_INDENT}status_code=500, detail="Failed to {action} record"',
            f"{_DOUBLE_INDENT}) from exc",
        ]

    @staticmethod
    def _bad_request() -> List[str]:
        return [
            f"{_INDENT}except asyncpg.DataError as exc:",
            f'{_DOUBLE_INDENT}raise HTTPException(status_code=400, detail="Invalid record data") from exc',
        ]

    @staticmethod
    def _not_found_guard() -> List[str]:
        return [
            f"{_INDENT}if row is None:",
            f'{_DOUBLE_INDENT}raise HTTPException(status_code=404, detail="Record not found")',
        ]

    def _create_handler(self, table: TableSpec) -> List[str]:
        name: str = table.name
        lines: List[str] = []
        lines.append(f"async def create_{name}(")
        lines.append(self._request_param(table))
        lines.append(f"{_INDENT}pool: asyncpg.Pool = Depends(get_pool),")
        lines.append(f") -> {table.class_name}:")
        lines.append(f'{_INDENT}"""Insert a {name} record and return the stored row."""')

        if table.has_fields:
            columns: str = ", ".join(table.field_names)
            values: str = ", ".join(_placeholders(1, len(table.fields)))
            binds: str = ", ".join(f"record.{f}" for f in table.field_names)
            lines.append(
                f'{_INDENT}query = "INSERT INTO {table.table_name} ({columns}) '
                f'VALUES ({values}) RETURNING *"'
            )
            fetch: str = f"await pool.fetchrow(query, {binds})"
        else:
            # An empty "() VALUES ()" list is invalid SQL.
            lines.append(
                f'{_INDENT}query = "INSERT INTO {table.table_name} DEFAULT VALUES RETURNING *"'
            )
            fetch = "await pool.fetchrow(query)"

        lines.append(f"{_INDENT}try:")
        lines.append(f"{_DOUBLE_INDENT}row = {fetch}")
        lines.extend(self._bad_request())
        lines.extend(self._database_error("create"))
        lines.append(f"{_INDENT}return {table.class_name}(**dict(row))")
        return lines

    def _get_handler(self, table: TableSpec) -> List[str]:
        name: str = table.name
        lines: List[str] = []
        lines.append(f"async def get_{name}(")
        lines.append(f"{_INDENT}id: int,")
        lines.append(f"{_INDENT}pool: asyncpg.Pool = Depends(get_pool),")
        lines.append(f") -> {table.class_name}:")
        lines.append(f'{_INDENT}"""Return one {name} record by id."""')
        lines.append(f'{_INDENT}query = "SELECT * FROM {table.table_name} WHERE id = $1"')
        lines.append(f"{_INDENT}try:")
        lines.append(f"{_DOUBLE_INDENT}row = await pool.fetchrow(query, id)")
        lines.extend(self._database_error("get"))
        lines.extend(self._not_found_guard())
        lines.append(f"{_INDENT}return {table.class_name}(**dict(row))")
        return lines

    def _list_handler(self, table: TableSpec) -> List[str]:
        name: str = table.name
        lines: List[str] = []
        lines.append(f"async def list_{name}(")
        lines.append(f"{_INDENT}pool: asyncpg.Pool = Depends(get_pool),")
        lines.append(f") -> List[{table.class_name}]:")
        lines.append(f'{_INDENT}"""Return every {name} record ordered by id."""')
        lines.append(f'{_INDENT}query = "SELECT * FROM {table.table_name} ORDER BY id"')
        lines.append(f"{_INDENT}try:")
        lines.append(f"{_DOUBLE_INDENT}rows = await pool.fetch(query)")
        lines.extend(self._database_error("list"))
        lines.append(f"{_INDENT}return [{table.class_name}(**dict(row)) for row in rows]")
        return lines

    def _update_handler(self, table: TableSpec) -> List[str]:
        name: str = table.name
        lines: List[str] = []
        lines.append(f"async def update_{name}(")
        lines.append(f"{_INDENT}id: int,")
        lines.append(self._request_param(table))
        lines.append(f"{_INDENT}pool: asyncpg.Pool = Depends(get_pool),")
        lines.append(f") -> {table.class_name}:")
        lines.append(f'{_INDENT}"""Update a {name} record; changed_on is set by the trigger."""')

        if table.has_fields:
            assignments: str = ", ".join(
                f"{column} = {placeholder}"
                for column, placeholder in zip(
                    table.field_names, _placeholders(2, len(table.fields))
                )
            )
            binds: str = ", ".join(f"record.{f}" for f in table.field_names)
            lines.append(
                f'{_INDENT}query = "UPDATE {table.table_name} SET {assignments} '
                f'WHERE id = $1 RETURNING *"'
            )
            fetch: str = f"await pool.fetchrow(query, id, {binds})"
        else:
            # No-op assignment so the changed_on trigger still fires.
            lines.append(
                f'{_INDENT}query = "UPDATE {table.table_name} SET id = id '
                f'WHERE id = $1 RETURNING *"'
            )
            fetch = "await pool.fetchrow(query, id)"

        lines.append(f"{_INDENT}try:")
        lines.append(f"{_DOUBLE_INDENT}row = {fetch}")
        lines.extend(self._bad_request())
        lines.extend(self._database_error("update"))
        lines.extend(self._not_found_guard())
        lines.append(f"{_INDENT}return {table.class_name}(**dict(row))")
        return lines

    def _delete_handler(self, table: TableSpec) -> List[str]:
        name: str = table.name
        lines: List[str] = []
        lines.append(f"async def delete_{name}(")
        lines.append(f"{_INDENT}id: int,")
        lines.append(f"{_INDENT}pool: asyncpg.Pool = Depends(get_pool),")
        lines.append(") -> Dict[str, str]:")
        lines.append(f'{_INDENT}"""Delete a {name} record by id."""')
        lines.append(f'{_INDENT}query = "DELETE FROM {table.table_name} WHERE id = $1"')
        lines.append(f"{_INDENT}try:")
        lines.append(f"{_DOUBLE_INDENT}status = await pool.execute(query, id)")
        lines.extend(self._database_error("delete"))
        lines.append(f"{_INDENT}# asyncpg returns the command tag, e.g. \"DELETE 1\".")
        lines.append(f"{_INDENT}if int(status.split()[-1]) > 0:")
        lines.append(f'{_DOUBLE_INDENT}return {{"message": "Record deleted"}}')
        lines.append(f'{_INDENT}raise HTTPException(status_code=404, detail="Record not found")')
        return lines

    # ===================================================================
    # 2. Route registration lines
    # ===================================================================

    def generate_route_lines(self, table: TableSpec) -> List[str]:
        """The five route registrations, indented for ``create_app``."""
        path: str = table.route_path
        item: str = f"{path}/{{id}}"
        name: str = table.name
        router: str = ROUTER_VARIABLE
        return [
            f'{_INDENT}{router}.add_api_route("{path}", create_{name}, methods=["POST"])',
            f'{_INDENT}{router}.add_api_route("{path}", list_{name}, methods=["GET"])',
            f'{_INDENT}{router}.add_api_route("{item}", get_{name}, methods=["GET"])',
            f'{_INDENT}{router}.add_api_route("{item}", update_{name}, methods=["PUT"])',
            f'{_INDENT}{router}.add_api_route("{item}", delete_{name}, methods=["DELETE"])',
        ]

    # ===================================================================
    # 3. Service skeleton (main.py)
    # ===================================================================

    def generate_service_module(self, config: Optional[ProjectConfig] = None) -> str:
        """Generate the skeleton ``main.py`` with no tables yet."""
        cfg: ProjectConfig = self._require_config(config)
        router: str = ROUTER_VARIABLE
        lines: List[str] = []

        # --- Header & imports ---
        lines.append('"""')
        lines.append(f"{cfg.distribution_name} - HTTP API service.")
        lines.append("")
        lines.append(f"Scaffolded by crudgen {__version__}.  Table handlers are added by")
        lines.append("``crudgen add-table``; blocks between its markers are regenerated.")
        lines.append('"""')
        lines.append("")
        lines.append("import json")
        lines.append("import logging")
        lines.append("import os")
        lines.append("from contextlib import asynccontextmanager")
        lines.append("from datetime import datetime")
        lines.append("from typing import Any, AsyncIterator, Dict, List, Optional")
        lines.append("")
        lines.append("import asyncpg")
        lines.append("import uvicorn")
        lines.append("from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request")
        lines.append("from fastapi.middleware.cors import CORSMiddleware")
        lines.append("from pydantic import BaseModel")
        lines.append("")
        lines.append(f'logger = logging.getLogger("{cfg.package_name}")')
        lines.append("")
        lines.append("# From within the compose network use the service name; from the host")
        lines.append("# machine override DATABASE_URL with localhost and the mapped port.")
        lines.append("DATABASE_URL = os.environ.get(")
        lines.append(f'{_INDENT}"DATABASE_URL",')
        lines.append(f"{_INDENT}{json.dumps(cfg.database_url)},")
        lines.append(")")
        lines.append(f'API_KEY = os.environ.get("API_KEY", {json.dumps(cfg.api_key)})')
        lines.append("")
        lines.append("")

        # --- Database plumbing ---
        lines.append("async def _init_connection(conn: asyncpg.Connection) -> None:")
        lines.append(f"{_INDENT}await conn.set_type_codec(")
        lines.append(f'{_DOUBLE_INDENT}"jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog"')
        lines.append(f"{_INDENT})")
        lines.append("")
        lines.append("")
        lines.append("@asynccontextmanager")
        lines.append("async def lifespan(app: FastAPI) -> AsyncIterator[None]:")
        lines.append(f"{_INDENT}pool = await asyncpg.create_pool(DATABASE_URL, init=_init_connection)")
        lines.append(f'{_INDENT}await pool.execute("SELECT 1")')
        lines.append(f'{_INDENT}logger.info("Database connection established")')
        lines.append(f"{_INDENT}app.state.pool = pool")
        lines.append(f"{_INDENT}try:")
        lines.append(f"{_DOUBLE_INDENT}yield")
        lines.append(f"{_INDENT}finally:")
        lines.append(f"{_DOUBLE_INDENT}await pool.close()")
        lines.append("")
        lines.append("")
        lines.append("def get_pool(request: Request) -> asyncpg.Pool:")
        lines.append(f"{_INDENT}return request.app.state.pool")
        lines.append("")
        lines.append("")
        lines.append("async def require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:")
        lines.append(f"{_INDENT}if x_api_key != API_KEY:")
        lines.append(
            f'{_DOUBLE_INDENT}raise HTTPException(status_code=401, '
            f'detail="Invalid or missing x-api-key header")'
        )
        lines.append("")
        lines.append("")

        # --- Built-in handlers ---
        lines.append("async def index() -> str:")
        lines.append(f'{_INDENT}return "Hello from FastAPI!"')
        lines.append("")
        lines.append("")
        lines.append("async def health() -> str:")
        lines.append(f'{_INDENT}return "OK"')
        lines.append("")
        lines.append("")
        lines.append("async def greet(name: str) -> str:")
        lines.append(f'{_INDENT}return f"Hello, {{name}}!"')
        lines.append("")
        lines.append("")
        lines.append("async def db_check(pool: asyncpg.Pool = Depends(get_pool)) -> str:")
        lines.append(f"{_INDENT}try:")
        lines.append(
            f'{_DOUBLE_INDENT}row = await pool.fetchrow('
            f'"SELECT NOW() AS current_time, version() AS pg_version")'
        )
        lines.append(f"{_INDENT}except asyncpg.PostgresError as exc:")
        lines.append(f'{_DOUBLE_INDENT}return f"Database error: {{exc}}"')
        lines.append(f"{_INDENT}return (")
        lines.append(f'{_DOUBLE_INDENT}"Database connected!\\n"')
        lines.append(f"{_DOUBLE_INDENT}f\"PostgreSQL version: {{row['pg_version']}}\\n\"")
        lines.append(f"{_DOUBLE_INDENT}f\"Current time: {{row['current_time']}}\"")
        lines.append(f"{_INDENT})")
        lines.append("")
        lines.append("")

        # --- Entry point ---
        lines.append("def create_app() -> FastAPI:")
        lines.append(f'{_INDENT}app = FastAPI(title={json.dumps(cfg.distribution_name)}, lifespan=lifespan)')
        lines.append(f"{_INDENT}app.add_middleware(")
        lines.append(f"{_DOUBLE_INDENT}CORSMiddleware,")
        lines.append(f'{_DOUBLE_INDENT}allow_origins=["*"],')
        lines.append(f'{_DOUBLE_INDENT}allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],')
        lines.append(f'{_DOUBLE_INDENT}allow_headers=["content-type", "x-api-key"],')
        lines.append(f"{_DOUBLE_INDENT}allow_credentials=True,")
        lines.append(f"{_DOUBLE_INDENT}max_age=3600,")
        lines.append(f"{_INDENT})")
        lines.append(
            f'{_INDENT}{router} = APIRouter(prefix="/api", '
            f"dependencies=[Depends(require_api_key)])"
        )
        lines.append(f'{_INDENT}{router}.add_api_route("/name/{{name}}", greet, methods=["GET"])')
        lines.append(f'{_INDENT}{router}.add_api_route("/db", db_check, methods=["GET"])')
        lines.append(f"{_INDENT}app.include_router({router})")
        lines.append(f'{_INDENT}app.add_api_route("/health", health, methods=["GET"])')
        lines.append(f'{_INDENT}app.add_api_route("/", index, methods=["GET"])')
        lines.append(f"{_INDENT}return app")
        lines.append("")
        lines.append("")
        lines.append("app = create_app()")
        lines.append("")
        lines.append("")
        lines.append('if __name__ == "__main__":')
        lines.append(f'{_INDENT}logging.basicConfig(level=logging.INFO)')
        lines.append(f"{_INDENT}print(\"===========================================\")")
        lines.append(f'{_INDENT}print(f"✓ x-api-key: {{API_KEY}}")')
        lines.append(f"{_INDENT}print(\"===========================================\")")
        lines.append(f'{_INDENT}uvicorn.run(app, host="0.0.0.0", port={cfg.service_port})')

        return "\n".join(lines) + "\n"

    # ===================================================================
    # 4. Build manifest (pyproject.toml)
    # ===================================================================

    def generate_pyproject(self, config: Optional[ProjectConfig] = None) -> str:
        """Generate the service's pyproject.toml."""
        cfg: ProjectConfig = self._require_config(config)
        lines: List[str] = []
        lines.append(f"# Generated by crudgen {__version__}")
        lines.append("[build-system]")
        lines.append('requires = ["setuptools>=68"]')
        lines.append('build-backend = "setuptools.build_meta"')
        lines.append("")
        lines.append("[project]")
        lines.append(f"name = {json.dumps(cfg.distribution_name)}")
        lines.append(f"version = {json.dumps(cfg.version)}")
        lines.append(f"description = {json.dumps(cfg.description)}")
        lines.append(f'requires-python = ">={cfg.python_version}"')
        lines.append("dependencies = [")
        for dep in SERVICE_DEPENDENCIES:
            lines.append(f"{_INDENT}{json.dumps(dep)},")
        lines.append("]")
        lines.append("")
        lines.append("[tool.setuptools]")
        lines.append('py-modules = ["main"]')
        return "\n".join(lines) + "\n"
