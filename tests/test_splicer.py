"""
tests/test_splicer.py
Unit tests for crudgen.splicer.

Tests cover:
- Source layout parsing (entry point, decorators, block spans)
- Block splice: insertion, replacement, idempotence, other tables untouched
- Route splice: exact path segments, anchor priority, missing anchors
"""

from __future__ import annotations

import itertools
from typing import List

import pytest

from crudgen.errors import AnchorNotFoundError
from crudgen.models import FieldSpec, TableSpec
from crudgen.splicer import (
    RouteAnchor,
    block_marker,
    parse_source,
    remove_block,
    splice,
    splice_routes,
)
from crudgen.templates import TemplateGenerator

MARKER_A: str = block_marker("orders_table")
MARKER_B: str = block_marker("customers_table")


def _block(marker: str, *body: str) -> str:
    return "\n".join((marker,) + body) + "\n"


BLOCK_A1: str = _block(MARKER_A, "class OrdersRecord(BaseModel):", "    id: int")
BLOCK_A2: str = _block(MARKER_A, "class OrdersRecord(BaseModel):", "    id: int", "    total: float")
BLOCK_B: str = _block(MARKER_B, "class CustomersRecord(BaseModel):", "    id: int")

TEMPLATES: List[str] = [
    "def create_app():\n    return app\n",
    "import os\n\n\ndef create_app():\n    return app\n",
    "import os\n\n\n@decorate\n@another(1)\ndef create_app():\n    return app\n",
    "import os\n\nasync def create_app(settings=None):\n    return app\n",
    "import os\n\n\ndef create_app():\n    return app",
    "x = 1\ndef create_app() -> FastAPI:\n    pass\n\nif __name__ == '__main__':\n    main()\n",
]


# ===========================================================================
# Layout parsing
# ===========================================================================


class TestParseSource:
    def test_entry_point_found(self) -> None:
        layout = parse_source("import os\n\n\ndef create_app():\n    pass\n")
        assert layout.has_entry_point
        assert layout.entry_index == 3
        assert layout.insertion_index == 3

    def test_decorators_move_insertion_point(self) -> None:
        layout = parse_source("x = 1\n@one\n@two\ndef create_app():\n    pass\n")
        assert layout.entry_index == 3
        assert layout.insertion_index == 1

    def test_anchor_missing_state(self) -> None:
        layout = parse_source("def build_app():\n    pass\n")
        assert not layout.has_entry_point
        assert layout.insertion_index is None

    def test_nested_definition_not_an_entry_point(self) -> None:
        layout = parse_source("class Factory:\n    def create_app(self):\n        pass\n")
        assert not layout.has_entry_point

    def test_marker_missing_state(self, minimal_source: str) -> None:
        layout = parse_source(minimal_source)
        assert layout.has_entry_point
        assert not layout.has_marker(MARKER_A)
        assert layout.blocks == ()

    def test_block_spans(self) -> None:
        text = splice(splice(TEMPLATES[1], BLOCK_A1, MARKER_A), BLOCK_B, MARKER_B)
        layout = parse_source(text)
        assert [span.table_name for span in layout.blocks] == ["orders_table", "customers_table"]
        first, second = layout.blocks
        assert first.end == second.start
        assert second.end == layout.insertion_index

    def test_marker_after_entry_point_ignored(self) -> None:
        text = "def create_app():\n    pass\n" + BLOCK_A1
        layout = parse_source(text)
        assert not layout.has_marker(MARKER_A)

    def test_trailing_newline_recorded(self) -> None:
        assert parse_source("def create_app(): pass\n").trailing_newline
        assert not parse_source("def create_app(): pass").trailing_newline


# ===========================================================================
# Block splice
# ===========================================================================


class TestSplice:
    def test_inserts_before_entry_point(self) -> None:
        result = splice(TEMPLATES[1], BLOCK_A1, MARKER_A)
        assert result == (
            "import os\n\n\n" + BLOCK_A1 + "\n" + "def create_app():\n    return app\n"
        )

    def test_inserts_above_decorators(self) -> None:
        result = splice(TEMPLATES[2], BLOCK_A1, MARKER_A)
        assert result.index(MARKER_A) < result.index("@decorate")
        assert "    id: int\n\n@decorate\n@another(1)\ndef create_app():" in result

    def test_missing_entry_point_raises(self) -> None:
        with pytest.raises(AnchorNotFoundError) as excinfo:
            splice("import os\n", BLOCK_A1, MARKER_A)
        assert excinfo.value.pattern == "def create_app("

    def test_marker_prepended_when_absent(self) -> None:
        result = splice(TEMPLATES[0], "class X:\n    pass\n", MARKER_A)
        assert result.startswith(MARKER_A + "\nclass X:")

    def test_block_with_entry_point_rejected(self) -> None:
        with pytest.raises(ValueError):
            splice(TEMPLATES[0], _block(MARKER_A, "def create_app():", "    pass"), MARKER_A)

    def test_block_with_foreign_marker_rejected(self) -> None:
        with pytest.raises(ValueError):
            splice(TEMPLATES[0], BLOCK_A1 + MARKER_B + "\n", MARKER_A)

    def test_replaces_existing_block(self) -> None:
        once = splice(TEMPLATES[1], BLOCK_A1, MARKER_A)
        twice = splice(once, BLOCK_A2, MARKER_A)
        assert twice.count(MARKER_A) == 1
        assert "    total: float" in twice

    def test_other_tables_untouched(self) -> None:
        with_b = splice(TEMPLATES[1], BLOCK_B, MARKER_B)
        result = splice(splice(with_b, BLOCK_A1, MARKER_A), BLOCK_A2, MARKER_A)
        assert BLOCK_B in result
        assert result.count(MARKER_B) == 1

    def test_remove_block_restores_template(self) -> None:
        for template in TEMPLATES:
            assert remove_block(splice(template, BLOCK_A1, MARKER_A), MARKER_A) == template

    def test_remove_missing_block_is_noop(self) -> None:
        assert remove_block(TEMPLATES[1], MARKER_A) == TEMPLATES[1]

    @pytest.mark.parametrize(
        "template,first,second",
        [
            (template, first, second)
            for template in TEMPLATES
            for first, second in itertools.product([BLOCK_A1, BLOCK_A2], repeat=2)
        ],
    )
    def test_idempotence(self, template: str, first: str, second: str) -> None:
        assert splice(splice(template, first, MARKER_A), second, MARKER_A) == splice(
            template, second, MARKER_A
        )

    @pytest.mark.parametrize("template", TEMPLATES)
    def test_trailing_newline_preserved(self, template: str) -> None:
        result = splice(template, BLOCK_A1, MARKER_A)
        assert result.endswith("\n") == template.endswith("\n")

    @pytest.mark.parametrize("template", TEMPLATES)
    def test_idempotence_with_other_block_present(self, template: str) -> None:
        base = splice(template, BLOCK_B, MARKER_B)
        assert splice(splice(base, BLOCK_A1, MARKER_A), BLOCK_A2, MARKER_A) == splice(
            base, BLOCK_A2, MARKER_A
        )


# ===========================================================================
# Route splice
# ===========================================================================


def _routes(name: str) -> List[str]:
    return [
        f'    api.add_api_route("/{name}", create_{name}, methods=["POST"])',
        f'    api.add_api_route("/{name}/{{id}}", get_{name}, methods=["GET"])',
    ]


class TestSpliceRoutes:
    def test_inserted_after_db_route(self, minimal_source: str) -> None:
        result = splice_routes(minimal_source, _routes("orders"), "orders")
        assert result.anchor is RouteAnchor.DB_ROUTE
        assert result.warning is None
        lines = result.text.splitlines()
        db = next(i for i, line in enumerate(lines) if '"/db"' in line)
        assert lines[db + 1:db + 3] == _routes("orders")

    def test_reinsertion_does_not_duplicate(self, minimal_source: str) -> None:
        once = splice_routes(minimal_source, _routes("orders"), "orders").text
        twice = splice_routes(once, _routes("orders"), "orders").text
        assert once == twice
        assert twice.count('"/orders"') == 1

    def test_prefix_sharing_route_survives(self, minimal_source: str) -> None:
        text = splice_routes(minimal_source, _routes("orders_archive"), "orders_archive").text
        text = splice_routes(text, _routes("orders"), "orders").text
        text = splice_routes(text, _routes("orders"), "orders").text
        assert text.count('"/orders_archive"') == 1
        assert text.count('"/orders_archive/{id}"') == 1
        assert text.count('"/orders"') == 1
        assert text.count('"/orders/{id}"') == 1

    def test_prefix_sharing_generated_routes(self, minimal_source: str) -> None:
        templates = TemplateGenerator()
        archive = templates.generate_route_lines(TableSpec(name="orders_archive"))
        orders = templates.generate_route_lines(TableSpec(name="orders"))
        with_archive = splice_routes(minimal_source, archive, "orders_archive").text
        with_orders = splice_routes(with_archive, orders, "orders").text

        after = with_orders.splitlines()
        assert len(after) - len(with_archive.splitlines()) == 5
        assert [line for line in after if "orders_archive" in line] == archive
        assert [line for line in after if line in orders] == orders

    def test_app_level_route_with_same_path_kept(self, minimal_source: str) -> None:
        source = minimal_source.replace(
            "    return app\n",
            '    app.add_api_route("/health", health, methods=["GET"])\n    return app\n',
        )
        result = splice_routes(source, _routes("health"), "health")
        assert result.anchor is RouteAnchor.DB_ROUTE
        assert '    app.add_api_route("/health", health, methods=["GET"])' in result.text.splitlines()
        assert result.text.count('api.add_api_route("/health"') == 1

    def test_reindented_to_anchor(self) -> None:
        source = (
            "def create_app():\n"
            "        api = APIRouter()\n"
            '        api.add_api_route("/db", db_check)\n'
        )
        result = splice_routes(source, ['api.add_api_route("/x", f)'], "x")
        assert '        api.add_api_route("/x", f)' in result.text.splitlines()

    def test_router_declaration_anchor(self) -> None:
        source = (
            "def create_app():\n"
            '    api = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)])\n'
            "    return api\n"
        )
        result = splice_routes(source, _routes("orders"), "orders")
        assert result.anchor is RouteAnchor.ROUTER_DECLARATION
        assert result.text.splitlines()[2:4] == _routes("orders")

    def test_router_scope_anchor(self) -> None:
        source = (
            "def create_app():\n"
            "    api = APIRouter(\n"
            '        prefix="/api",\n'
            "    )\n"
            "    api.add_api_route(\n"
            '        "/ping", ping, methods=["GET"]\n'
            "    )\n"
            "    return api\n"
        )
        result = splice_routes(source, _routes("orders"), "orders")
        assert result.anchor is RouteAnchor.ROUTER_SCOPE
        lines = result.text.splitlines()
        assert lines[7:9] == _routes("orders")
        assert lines[-1] == "    return api"

    def test_no_anchor_returns_original_with_warning(self) -> None:
        source = 'def create_app():\n    api.add_api_route("/orders", old)\n    return app\n'
        result = splice_routes(source, _routes("orders"), "orders")
        assert result.text == source
        assert result.anchor is None
        assert result.warning is not None
        assert not result.ok

    def test_trailing_newline_preserved(self) -> None:
        source = 'def create_app():\n    api.add_api_route("/db", db_check)'
        result = splice_routes(source, _routes("orders"), "orders")
        assert not result.text.endswith("\n")


# ===========================================================================
# Full service module scenarios
# ===========================================================================


class TestServiceModuleScenarios:
    def _apply(self, source: str, table: TableSpec) -> str:
        templates = TemplateGenerator()
        text = splice(source, templates.generate_crud_block(table), block_marker(table.table_name))
        return splice_routes(text, templates.generate_route_lines(table), table.name).text

    def test_rerun_replaces_previous_output(self, skeleton_source: str) -> None:
        first = TableSpec(name="users", fields=(FieldSpec(name="name", type="string"),))
        second = TableSpec(
            name="users",
            fields=(FieldSpec(name="name", type="string"), FieldSpec(name="age", type="int")),
        )
        once = self._apply(skeleton_source, first)
        twice = self._apply(once, second)

        assert twice == self._apply(skeleton_source, second)
        assert twice.count(block_marker("users_table")) == 1
        assert twice.count("class UsersRecord(BaseModel):") == 1
        assert twice.count('api.add_api_route("/users", create_users') == 1
        assert "age: Optional[int] = None" in twice
        compile(twice, "main.py", "exec")

    def test_two_tables_coexist(self, skeleton_source: str, users_table: TableSpec, empty_table: TableSpec) -> None:
        text = self._apply(self._apply(skeleton_source, users_table), empty_table)
        text = self._apply(text, users_table)
        assert text.count("class UsersRecord(BaseModel):") == 1
        assert text.count("class AuditLogRecord(BaseModel):") == 1
        assert text.count('"/audit_log"') == 2
        compile(text, "main.py", "exec")

    def test_table_named_like_app_route(self, skeleton_source: str) -> None:
        table = TableSpec.from_project_name("health", [FieldSpec(name="x", type="int")])
        text = self._apply(skeleton_source, table)
        text = self._apply(text, table)
        assert 'app.add_api_route("/health", health, methods=["GET"])' in text
        assert text.count('api.add_api_route("/health", create_health') == 1
        compile(text, "main.py", "exec")
