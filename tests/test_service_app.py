"""
tests/test_service_app.py
Imports a generated service module with FastAPI and inspects the app.

Skipped when the service stack (fastapi, asyncpg, httpx) is not installed.
No database is needed: the lifespan that opens the pool is never entered.
"""

from __future__ import annotations

import importlib.util
import pathlib
import sys
from types import ModuleType

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("asyncpg")
pytest.importorskip("httpx")
pytest.importorskip("uvicorn")

from fastapi.testclient import TestClient  # noqa: E402

from crudgen.generator import CrudGenerator  # noqa: E402
from crudgen.models import ProjectConfig, TableSpec  # noqa: E402


def _load(path: pathlib.Path, name: str) -> ModuleType:
    spec = importlib.util.spec_from_file_location(name, path)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    finally:
        sys.modules.pop(name, None)
    return module


@pytest.fixture()
def generated_module(
    service_dir: pathlib.Path,
    users_table: TableSpec,
    empty_table: TableSpec,
    monkeypatch: pytest.MonkeyPatch,
) -> ModuleType:
    monkeypatch.delenv("API_KEY", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    generator = CrudGenerator()
    assert generator.add_table(users_table, service_dir / "main.py").success
    assert generator.add_table(empty_table, service_dir / "main.py").success
    return _load(service_dir / "main.py", "crudgen_generated_main")


class TestGeneratedApp:
    def test_routes_registered(self, generated_module: ModuleType) -> None:
        routes = {
            (route.path, method)
            for route in generated_module.app.routes
            for method in getattr(route, "methods", None) or ()
        }
        for expected in [
            ("/api/users", "POST"),
            ("/api/users", "GET"),
            ("/api/users/{id}", "GET"),
            ("/api/users/{id}", "PUT"),
            ("/api/users/{id}", "DELETE"),
            ("/api/audit_log", "POST"),
            ("/api/db", "GET"),
            ("/api/name/{name}", "GET"),
            ("/health", "GET"),
            ("/", "GET"),
        ]:
            assert expected in routes

    def test_record_models(self, generated_module: ModuleType) -> None:
        record = generated_module.UsersRecord(
            id=1,
            created_on="2024-01-01T00:00:00+00:00",
            changed_on="2024-01-01T00:00:00+00:00",
        )
        assert record.name is None
        request = generated_module.CreateUsersRecordRequest(name="Ada", age=36)
        assert request.age == 36

    def test_row_maps_onto_record(self, generated_module: ModuleType, users_table: TableSpec) -> None:
        # Keys as PostgreSQL returns them for the unquoted DDL columns.
        row = {
            "id": 7,
            "created_on": "2024-01-01T00:00:00+00:00",
            "changed_on": "2024-01-02T00:00:00+00:00",
        }
        row.update({name.lower(): value for name, value in zip(users_table.field_names, ["Ada", 36])})
        record = generated_module.UsersRecord(**row)
        assert record.name == "Ada"
        assert record.age == 36
        assert record.model_dump().keys() == row.keys()

    def test_health_without_database(self, generated_module: ModuleType) -> None:
        client = TestClient(generated_module.app)
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == "OK"

    def test_api_key_required(self, generated_module: ModuleType, project_config: ProjectConfig) -> None:
        client = TestClient(generated_module.app)
        assert client.get("/api/name/ada").status_code == 401
        response = client.get("/api/name/ada", headers={"x-api-key": project_config.api_key})
        assert response.status_code == 200
        assert response.json() == "Hello, ada!"
