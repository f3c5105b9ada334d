"""
tests/conftest.py
Shared fixtures for the crudgen test suite.

No external mocking libraries are used; real file I/O is performed inside
temporary directories managed by pytest's tmp_path fixture, and the database
is replaced by a small recording executor.
"""

from __future__ import annotations

import pathlib
from typing import Any, Dict, List, Optional

import pytest
import yaml

from crudgen.errors import DataLayerError, TriggerCreationError
from crudgen.models import FieldSpec, ProjectConfig, TableSpec
from crudgen.templates import TemplateGenerator


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
FIELDS_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "fields_example.yaml"


# ---------------------------------------------------------------------------
# Field / table fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_fields_dict() -> Dict[str, Any]:
    """Load the reference fields_example.yaml once per session."""
    assert FIELDS_EXAMPLE_PATH.exists(), (
        f"Reference field list not found at {FIELDS_EXAMPLE_PATH}."
    )
    with open(FIELDS_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def users_fields() -> List[FieldSpec]:
    return [
        FieldSpec(name="name", field_type="string"),
        FieldSpec(name="age", field_type="int"),
    ]


@pytest.fixture()
def users_table(users_fields: List[FieldSpec]) -> TableSpec:
    """``users`` with a string and an int column."""
    return TableSpec(name="users", fields=tuple(users_fields))


@pytest.fixture()
def empty_table() -> TableSpec:
    """A table with only the system columns."""
    return TableSpec(name="audit_log")


@pytest.fixture()
def all_types_table() -> TableSpec:
    """One column of every logical type."""
    return TableSpec(
        name="everything",
        fields=tuple(
            FieldSpec(name=f"col_{alias}", field_type=alias)
            for alias in ("1", "2", "3", "4", "5", "6", "7", "8", "9")
        ),
    )


@pytest.fixture()
def project_config() -> ProjectConfig:
    return ProjectConfig(project_name="My-Cool_API", postgres_password="s3cret")


# ---------------------------------------------------------------------------
# Service module fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def skeleton_source(project_config: ProjectConfig) -> str:
    """A freshly scaffolded main.py."""
    return TemplateGenerator(project_config).generate_service_module()


@pytest.fixture()
def service_dir(
    tmp_path: pathlib.Path,
    project_config: ProjectConfig,
    skeleton_source: str,
) -> pathlib.Path:
    """A temporary service directory holding main.py and pyproject.toml."""
    (tmp_path / "main.py").write_text(skeleton_source, encoding="utf-8")
    (tmp_path / "pyproject.toml").write_text(
        TemplateGenerator(project_config).generate_pyproject(), encoding="utf-8"
    )
    return tmp_path


@pytest.fixture()
def minimal_source() -> str:
    """Smallest module the splicer accepts."""
    return (
        "from fastapi import APIRouter, FastAPI\n"
        "\n"
        "\n"
        "def create_app():\n"
        "    app = FastAPI()\n"
        '    api = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)])\n'
        '    api.add_api_route("/db", db_check, methods=["GET"])\n'
        "    app.include_router(api)\n"
        "    return app\n"
    )


# ---------------------------------------------------------------------------
# Database stand-in
# ---------------------------------------------------------------------------


class RecordingExecutor:
    """Stands in for ``DDLExecutor``; records tables and can fail on demand."""

    def __init__(self, fail_with: Optional[Exception] = None) -> None:
        self.fail_with: Optional[Exception] = fail_with
        self.tables: List[str] = []
        self.disposed: bool = False

    def execute_schema(self, table: TableSpec) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.tables.append(table.table_name)

    def dispose(self) -> None:
        self.disposed = True


@pytest.fixture()
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture()
def failing_executor() -> RecordingExecutor:
    return RecordingExecutor(fail_with=DataLayerError("connection refused"))


@pytest.fixture()
def trigger_failing_executor() -> RecordingExecutor:
    return RecordingExecutor(fail_with=TriggerCreationError("trigger failed"))
