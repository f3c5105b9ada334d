"""
tests/test_typemap.py
Unit tests for crudgen.typemap (closed type set, aliases, menu).
"""

from __future__ import annotations

import pytest

from crudgen.errors import InvalidTypeError
from crudgen.typemap import (
    TYPE_MAPPINGS,
    FieldType,
    describe_types,
    map_type,
    resolve_field_type,
    type_menu,
)


class TestResolveFieldType:
    """Alias and name resolution."""

    @pytest.mark.parametrize(
        "alias,expected",
        [
            ("1", FieldType.STRING),
            ("2", FieldType.TEXT),
            ("3", FieldType.INT),
            ("4", FieldType.BIGINT),
            ("5", FieldType.FLOAT),
            ("6", FieldType.DOUBLE),
            ("7", FieldType.BOOL),
            ("8", FieldType.DATE),
            ("9", FieldType.JSON),
        ],
    )
    def test_numeric_aliases(self, alias: str, expected: FieldType) -> None:
        assert resolve_field_type(alias) is expected

    def test_integer_alias(self) -> None:
        assert resolve_field_type(3) is FieldType.INT

    @pytest.mark.parametrize("name", [t.value for t in FieldType])
    def test_canonical_names(self, name: str) -> None:
        assert resolve_field_type(name).value == name

    def test_case_and_whitespace_ignored(self) -> None:
        assert resolve_field_type("  BigInt ") is FieldType.BIGINT

    def test_enum_passthrough(self) -> None:
        assert resolve_field_type(FieldType.JSON) is FieldType.JSON

    @pytest.mark.parametrize("token", ["", "0", "10", "varchar", "integer", "str", True, None, 1.5])
    def test_invalid_tokens_rejected(self, token: object) -> None:
        with pytest.raises(InvalidTypeError):
            resolve_field_type(token)  # type: ignore[arg-type]

    def test_invalid_type_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            resolve_field_type("nope")


class TestTypeMappings:
    """The static storage/host table."""

    def test_every_type_mapped(self) -> None:
        assert set(TYPE_MAPPINGS) == set(FieldType)

    @pytest.mark.parametrize(
        "token,storage,host",
        [
            ("string", "VARCHAR(255)", "str"),
            ("text", "TEXT", "str"),
            ("int", "INTEGER", "int"),
            ("bigint", "BIGINT", "int"),
            ("float", "REAL", "float"),
            ("double", "DOUBLE PRECISION", "float"),
            ("bool", "BOOLEAN", "bool"),
            ("date", "TIMESTAMP WITH TIME ZONE", "datetime"),
            ("json", "JSONB", "Any"),
        ],
    )
    def test_mapping_values(self, token: str, storage: str, host: str) -> None:
        mapping = map_type(token)
        assert mapping.storage_type == storage
        assert mapping.host_type == host

    def test_table_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            TYPE_MAPPINGS[FieldType.INT] = TYPE_MAPPINGS[FieldType.TEXT]  # type: ignore[index]


class TestTypeMenu:
    def test_menu_order_matches_aliases(self) -> None:
        aliases = [alias for alias, _, _ in type_menu()]
        assert aliases == [str(i) for i in range(1, 10)]

    def test_describe_types_lists_every_type(self) -> None:
        text = describe_types()
        assert text.startswith("Available data types:")
        for field_type in FieldType:
            assert field_type.value in text
        assert "JSONB" in text
