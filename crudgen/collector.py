# File: crudgen/collector.py
"""
crudgen - Field Collection
==========================

Two ways to obtain the ordered ``FieldSpec`` list for a run:

- ``FieldCollector`` — interactive loop.  I/O goes through injectable
  ``prompt`` / ``echo`` callables so the loop is testable without a TTY.
  Invalid input never aborts the run: a bad name re-prompts the name, a bad
  type token re-prompts the type.  The loop ends on an explicit "no" at the
  yes/no confirmation asked before every field; zero fields is legal.
- ``load_fields_file`` — non-interactive JSON/YAML field list.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import yaml
from pydantic import ValidationError as PydanticValidationError

from crudgen.errors import FieldValidationError, InvalidTypeError
from crudgen.models import FieldSpec
from crudgen.typemap import FieldType, describe_types, resolve_field_type
from crudgen.validators import ValidationResult, validate_field_name

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.collector")

PromptFn = Callable[[str], str]
EchoFn = Callable[[str], None]

_YES: frozenset = frozenset({"y", "yes"})


def ask_yes_no(prompt: PromptFn, question: str) -> bool:
    """Ask *question*; only ``y``/``yes`` (any case) counts as yes."""
    return prompt(f"{question} (y/n): ").strip().lower() in _YES


class FieldCollector:
    """
    Interactive field collection loop.

    Usage::

        fields = FieldCollector().collect()

        # in tests
        answers = iter(["y", "title", "1", "n"])
        fields = FieldCollector(prompt=lambda _: next(answers), echo=log.append).collect()
    """

    def __init__(
        self,
        prompt: PromptFn = input,
        echo: EchoFn = print,
    ) -> None:
        self._prompt: PromptFn = prompt
        self._echo: EchoFn = echo

    def collect(self) -> List[FieldSpec]:
        """Run the loop and return the collected fields in input order."""
        fields: List[FieldSpec] = []

        self._echo("Let's define the table fields!")
        self._echo("The table will automatically include:")
        self._echo("  - id field (SERIAL PRIMARY KEY)")
        self._echo("  - created_on field (TIMESTAMP WITH TIME ZONE, auto-set on creation)")
        self._echo("  - changed_on field (TIMESTAMP WITH TIME ZONE, auto-updated on changes)")
        self._echo("")

        question: str = "Add a field?"
        while ask_yes_no(self._prompt, question):
            question = "Add another field?"
            self._echo(f"Field #{len(fields) + 1}")
            name: str = self._ask_name([f.name for f in fields])
            field_type: FieldType = self._ask_type()
            field = FieldSpec(name=name, field_type=field_type)
            fields.append(field)
            self._echo(f"✓ Added field: {field.name} ({field.storage_type})")
            self._echo("")

        if not fields:
            self._echo("No fields added. Table will only have the system columns.")
        logger.info("Collected %d field(s).", len(fields))
        return fields

    # -----------------------------------------------------------------
    # Internal: single prompts
    # -----------------------------------------------------------------

    def _ask_name(self, existing: Sequence[str]) -> str:
        while True:
            name: str = self._prompt("Enter field name: ").strip()
            result: ValidationResult = validate_field_name(name, existing)
            for item in result.warnings:
                self._echo(f"Warning: {item.message}")
            if result.is_valid:
                return name
            for item in result.errors:
                self._echo(f"Error: {item.message}")

    def _ask_type(self) -> FieldType:
        self._echo("")
        self._echo(describe_types())
        self._echo("")
        while True:
            token: str = self._prompt("Enter field type (1-9 or type name): ")
            try:
                return resolve_field_type(token)
            except InvalidTypeError as exc:
                self._echo(f"Error: {exc}")


# ---------------------------------------------------------------------------
# Non-interactive: field list files
# ---------------------------------------------------------------------------


def _load_raw(path: Path) -> Any:
    text: str = path.read_text(encoding="utf-8")
    suffix: str = path.suffix.lower()
    try:
        if suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise FieldValidationError(f"Cannot parse field file {path}: {exc}") from exc


def parse_fields(raw: Any) -> List[FieldSpec]:
    """
    Parse field definitions from already-loaded data.

    Accepted shapes::

        {"fields": [{"name": "title", "type": "string"}, ...]}
        [{"name": "title", "type": "string"}, ...]
        {"fields": []}          # zero fields

    All problems are collected and raised together.
    """
    if isinstance(raw, dict):
        raw = raw.get("fields", [])
    if raw is None:
        raw = []
    if not isinstance(raw, list):
        raise FieldValidationError(
            f"Expected a list of fields, got {type(raw).__name__}."
        )

    result: ValidationResult = ValidationResult()
    fields: List[FieldSpec] = []
    for position, entry in enumerate(raw, start=1):
        if not isinstance(entry, dict) or "name" not in entry or "type" not in entry:
            result.add_error(
                "MALFORMED_FIELD",
                f"Field #{position} must be a mapping with 'name' and 'type'.",
            )
            continue
        name: str = str(entry["name"])
        name_result: ValidationResult = validate_field_name(name, [f.name for f in fields])
        result.merge(name_result)
        try:
            field_type: Optional[FieldType] = resolve_field_type(entry["type"])
        except InvalidTypeError as exc:
            result.add_error("INVALID_TYPE", f"Field '{name}': {exc}", {"field": name})
            field_type = None
        if name_result.is_valid and field_type is not None:
            try:
                fields.append(FieldSpec(name=name, field_type=field_type))
            except PydanticValidationError as exc:
                result.add_error("INVALID_FIELD", str(exc), {"field": name})

    if result.has_errors:
        raise FieldValidationError(
            f"Invalid field definitions.\n{result.format_report()}", result
        )
    for item in result.warnings:
        logger.warning("%s", item.message)
    return fields


def load_fields_file(path: Path) -> List[FieldSpec]:
    """Load and validate a JSON/YAML field list file."""
    if not path.is_file():
        raise FileNotFoundError(f"Field file not found: {path}")
    fields: List[FieldSpec] = parse_fields(_load_raw(path))
    logger.info("Loaded %d field(s) from %s.", len(fields), path)
    return fields


def fields_to_dict(fields: Sequence[FieldSpec]) -> Dict[str, Any]:
    """Inverse of ``parse_fields``; used to save an interactive session."""
    return {"fields": [{"name": f.name, "type": f.field_type.value} for f in fields]}
