# File: crudgen/generator.py
"""
crudgen - Generation Pipeline (Orchestrator)
============================================

Connects every phase of a run together::

    TableSpec → Validation → DDL execution → Block splice → Route splice → Write

``CrudGenerator`` backs both the programmatic API and the CLI.

Workflow of ``add_table``::

    1. Validate the table (strict: any error aborts before side effects).
    2. Read the service module and write ``<file>.bak``.
    3. Generate the CRUD block and route lines (templates.py) and thread the
       source text through ``splice`` then ``splice_routes`` (splicer.py).
       A missing entry point aborts here; the file is left untouched.
    4. Execute the DDL (database.py).  A failed CREATE TABLE is fatal; a
       failed trigger after the table exists is downgraded to a warning.
    5. Write the spliced module atomically.
    6. Drop the backup when the run finished without warnings.

Error handling strategy:
    - Nothing is swallowed: every failure lands in one of the report's error
      lists and the CLI maps the lists to an exit code.
    - Data-layer errors are not retried and cause no rollback.

Runs are synchronous and single-threaded.  Two runs against the same module
at once are unsupported; nothing is locked.
"""

from __future__ import annotations

import logging
import time
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from crudgen.database import DDLExecutor
from crudgen.errors import AnchorNotFoundError, DataLayerError, TriggerCreationError
from crudgen.models import ProjectConfig, TableSpec
from crudgen.schema import emit_statements
from crudgen.splicer import (
    RouteSpliceResult,
    block_marker,
    describe_layout,
    parse_source,
    splice,
    splice_routes,
)
from crudgen.templates import TemplateGenerator
from crudgen.utils import Timer, backup_path_for, count_lines, read_file, write_file
from crudgen.validators import ValidationResult, validate_table_spec

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.generator")

SERVICE_MODULE: str = "main.py"
SERVICE_MANIFEST: str = "pyproject.toml"


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Report produced by ``CrudGenerator.scaffold()`` and ``add_table()``.

    ``preview`` holds the would-be file contents of a dry run; ``manual_routes``
    lists route lines the user must add when no route anchor was found.
    """

    success: bool = False
    operation: str = ""
    project_name: str = ""
    table_name: str = ""
    target: str = ""
    dry_run: bool = False

    # Metrics
    files_written: List[str] = field(default_factory=list)
    total_bytes: int = 0
    total_lines: int = 0
    total_elapsed_seconds: float = 0.0

    # Sub-reports
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    input_errors: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    database_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    ddl: List[str] = field(default_factory=list)
    manual_routes: List[str] = field(default_factory=list)
    preview: Dict[str, str] = field(default_factory=dict)
    backup_path: Optional[str] = None

    @property
    def has_errors(self) -> bool:
        return bool(
            self.validation_errors
            or self.input_errors
            or self.generation_errors
            or self.database_errors
            or self.export_errors
        )

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        if self.success and self.warnings:
            status = "⚠ SUCCESS WITH WARNINGS"
        lines.append(f"{'='*60}")
        lines.append(f"  crudgen - {self.operation or 'generation'} report")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:           {status}")
        if self.project_name:
            lines.append(f"  Project:          {self.project_name}")
        if self.table_name:
            lines.append(f"  Table:            {self.table_name}")
        lines.append(f"  Target:           {self.target}")
        if self.dry_run:
            lines.append("  Mode:             dry run (nothing written)")
        lines.append(f"  Files written:    {len(self.files_written)}")
        lines.append(f"  Total lines:      {self.total_lines:,}")
        lines.append(f"  Total bytes:      {self.total_bytes:,}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        if self.backup_path:
            lines.append(f"  Backup kept:      {self.backup_path}")
        lines.append(f"{'─'*60}")

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<28s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        sections = (
            ("Validation Errors", self.validation_errors, "✗"),
            ("Validation Warnings", self.validation_warnings, "⚠"),
            ("Input Errors", self.input_errors, "✗"),
            ("Generation Errors", self.generation_errors, "✗"),
            ("Database Errors", self.database_errors, "✗"),
            ("Export Errors", self.export_errors, "✗"),
            ("Warnings", self.warnings, "⚠"),
        )
        for title, items, icon in sections:
            if not items:
                continue
            lines.append(f"{'─'*60}")
            lines.append(f"  {title} ({len(items)}):")
            for item in items:
                lines.append(f"    {icon} {item}")

        if self.manual_routes:
            lines.append(f"{'─'*60}")
            lines.append("  Add these routes to create_app() manually:")
            for route in self.manual_routes:
                lines.append(f"    {route.strip()}")

        lines.append(f"{'='*60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Manifest helpers
# ---------------------------------------------------------------------------


def read_project_name(pyproject_path: Path) -> str:
    """
    Read ``[project].name`` from a service manifest.

    Raises:
        FileNotFoundError: the manifest does not exist.
        ValueError: the manifest is not TOML or has no project name.
    """
    if not pyproject_path.is_file():
        raise FileNotFoundError(f"Manifest not found: {pyproject_path}")
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {pyproject_path}: {exc}") from exc

    name = data.get("project", {}).get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"No [project].name in {pyproject_path}.")
    logger.debug("Read project name %r from %s.", name, pyproject_path)
    return name


# ---------------------------------------------------------------------------
# CrudGenerator: pipeline orchestrator
# ---------------------------------------------------------------------------


class CrudGenerator:
    """
    Pipeline orchestrator.

    Usage::

        generator = CrudGenerator()

        # New service skeleton
        report = generator.scaffold(config, Path("./my_service"))

        # One table, spliced into an existing service
        table = TableSpec.from_project_name("My-Service", fields)
        report = generator.add_table(
            table,
            Path("./my_service/main.py"),
            executor=DDLExecutor(database_url),
        )

        print(report.summary())

    The generator is reusable; create once, call many times.
    """

    def __init__(
        self,
        *,
        templates: Optional[TemplateGenerator] = None,
        keep_backup: bool = False,
    ) -> None:
        self._templates: TemplateGenerator = templates or TemplateGenerator()
        self._keep_backup: bool = keep_backup

    # -----------------------------------------------------------------
    # Public: scaffold a service skeleton
    # -----------------------------------------------------------------

    def scaffold(
        self,
        config: ProjectConfig,
        output_dir: Path,
        force: bool = False,
        dry_run: bool = False,
    ) -> GenerationReport:
        """Write ``main.py`` and ``pyproject.toml`` into *output_dir*."""
        start: float = time.perf_counter()
        report: GenerationReport = GenerationReport(
            operation="init",
            project_name=config.project_name,
            target=str(output_dir),
            dry_run=dry_run,
        )

        with Timer("render_skeleton") as t_render:
            files: Dict[str, str] = {
                SERVICE_MODULE: self._templates.generate_service_module(config),
                SERVICE_MANIFEST: self._templates.generate_pyproject(config),
            }
        report.step_metrics.append(GenerationStepMetric(
            step_name="Render Skeleton",
            success=True,
            elapsed_seconds=t_render.elapsed,
            detail=f"{len(files)} files",
        ))

        if not force:
            existing: List[str] = [
                name for name in files if (output_dir / name).exists()
            ]
            if existing:
                report.export_errors.append(
                    f"Refusing to overwrite existing file(s) in {output_dir}: "
                    f"{', '.join(existing)} (use --force)."
                )
                return self._finalise_report(report, start)

        if dry_run:
            report.preview.update({str(output_dir / n): c for n, c in files.items()})
            return self._finalise_report(report, start)

        with Timer("write_skeleton") as t_write:
            for name, content in files.items():
                path: Path = output_dir / name
                try:
                    report.total_bytes += write_file(path, content)
                except OSError as exc:
                    report.export_errors.append(f"Cannot write {path}: {exc}")
                    logger.error("Cannot write %s: %s", path, exc)
                    break
                report.total_lines += count_lines(content)
                report.files_written.append(str(path))

        report.step_metrics.append(GenerationStepMetric(
            step_name="Write Skeleton",
            success=not report.export_errors,
            elapsed_seconds=t_write.elapsed,
            detail=f"{len(report.files_written)} files written",
        ))
        logger.info("Scaffolded %s into %s.", config.distribution_name, output_dir)
        return self._finalise_report(report, start)

    # -----------------------------------------------------------------
    # Public: add one table to an existing service
    # -----------------------------------------------------------------

    def add_table(
        self,
        table: TableSpec,
        source_path: Path,
        executor: Optional[DDLExecutor] = None,
        dry_run: bool = False,
    ) -> GenerationReport:
        """
        Run the full pipeline for *table* against *source_path*.

        *executor* may be ``None`` to skip the database step.
        """
        start: float = time.perf_counter()
        report: GenerationReport = GenerationReport(
            operation="add-table",
            table_name=table.table_name,
            target=str(source_path),
            dry_run=dry_run,
        )
        report.ddl = emit_statements(table)

        # --- Step: Validation ---
        if not self._step_validate(table, report):
            return self._finalise_report(report, start)

        # --- Step: Read source ---
        try:
            original: str = read_file(source_path)
        except (OSError, UnicodeDecodeError) as exc:
            report.input_errors.append(f"Cannot read service module {source_path}: {exc}")
            return self._finalise_report(report, start)
        logger.debug("Source layout: %s", describe_layout(parse_source(original)))

        backup: Path = backup_path_for(source_path)
        if not dry_run:
            try:
                write_file(backup, original)
            except OSError as exc:
                report.export_errors.append(f"Cannot write backup {backup}: {exc}")
                return self._finalise_report(report, start)
            report.backup_path = str(backup)
            logger.info("Backup written to %s.", backup)

        # --- Step: Splice ---
        spliced: Optional[str] = self._step_splice(table, original, report)
        if spliced is None:
            return self._finalise_report(report, start)

        if dry_run:
            report.preview[str(source_path)] = spliced
            logger.info("Dry run: %d DDL statement(s) not executed.", len(report.ddl))
            return self._finalise_report(report, start)

        # --- Step: Database ---
        if not self._step_database(table, executor, report):
            return self._finalise_report(report, start)

        # --- Step: Write ---
        with Timer("write_source") as t_write:
            try:
                report.total_bytes = write_file(source_path, spliced)
            except OSError as exc:
                report.export_errors.append(f"Cannot write {source_path}: {exc}")
                logger.error("Cannot write %s: %s", source_path, exc)
        if not report.export_errors:
            report.files_written.append(str(source_path))
            report.total_lines = count_lines(spliced)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Write Service Module",
            success=not report.export_errors,
            elapsed_seconds=t_write.elapsed,
            detail=f"{report.total_bytes:,} bytes",
        ))

        # --- Backup policy ---
        if not report.has_errors and not report.warnings and not self._keep_backup:
            backup.unlink(missing_ok=True)
            report.backup_path = None
            logger.debug("Removed backup %s.", backup)

        return self._finalise_report(report, start)

    # -----------------------------------------------------------------
    # Pipeline step: Validation
    # -----------------------------------------------------------------

    def _step_validate(self, table: TableSpec, report: GenerationReport) -> bool:
        with Timer("validation") as t:
            result: ValidationResult = validate_table_spec(table)

        report.validation_errors.extend(item.message for item in result.errors)
        report.validation_warnings.extend(item.message for item in result.warnings)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate Table",
            success=result.is_valid,
            elapsed_seconds=t.elapsed,
            detail=result.summary(),
        ))

        if result.has_errors:
            logger.error("Validation failed:\n%s", result.format_report())
            return False
        for item in result.warnings:
            logger.warning("  ⚠ %s", item.message)
        for item in result.infos:
            logger.info("  i %s", item.message)
        logger.info("Validated %s (%d field(s)).", table.table_name, len(table.fields))
        return True

    # -----------------------------------------------------------------
    # Pipeline step: Block + route splice
    # -----------------------------------------------------------------

    def _step_splice(
        self,
        table: TableSpec,
        original: str,
        report: GenerationReport,
    ) -> Optional[str]:
        with Timer("splice") as t:
            block: str = self._templates.generate_crud_block(table)
            route_lines: List[str] = self._templates.generate_route_lines(table)
            try:
                text: str = splice(original, block, block_marker(table.table_name))
            except AnchorNotFoundError as exc:
                report.generation_errors.append(
                    f"{exc} The service module was left unchanged."
                )
                logger.error("%s", exc)
                text = ""
            except ValueError as exc:
                report.generation_errors.append(f"Cannot splice generated block: {exc}")
                logger.error("Cannot splice generated block: %s", exc)
                text = ""

            routes: Optional[RouteSpliceResult] = None
            if text:
                routes = splice_routes(text, route_lines, table.name)
                text = routes.text

        if routes is not None and routes.warning:
            report.warnings.append(routes.warning)
            report.manual_routes.extend(route_lines)

        report.step_metrics.append(GenerationStepMetric(
            step_name="Splice Source",
            success=not report.generation_errors,
            elapsed_seconds=t.elapsed,
            detail=(
                f"routes at {routes.anchor.value}"
                if routes is not None and routes.anchor is not None
                else "routes not placed"
            ),
        ))
        return text or None

    # -----------------------------------------------------------------
    # Pipeline step: Database
    # -----------------------------------------------------------------

    def _step_database(
        self,
        table: TableSpec,
        executor: Optional[DDLExecutor],
        report: GenerationReport,
    ) -> bool:
        if executor is None:
            logger.info("Database step skipped.")
            report.step_metrics.append(GenerationStepMetric(
                step_name="Execute DDL",
                success=True,
                detail="skipped",
            ))
            return True

        with Timer("ddl") as t:
            detail: str = f"{len(report.ddl)} statement(s)"
            try:
                executor.execute_schema(table)
            except TriggerCreationError as exc:
                report.warnings.append(str(exc))
                logger.warning("%s", exc)
                detail = "table created, trigger failed"
            except DataLayerError as exc:
                report.database_errors.append(str(exc))
                logger.error("%s", exc)
                detail = "failed"

        report.step_metrics.append(GenerationStepMetric(
            step_name="Execute DDL",
            success=not report.database_errors,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))
        return not report.database_errors

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    def _finalise_report(self, report: GenerationReport, start: float) -> GenerationReport:
        """Set final status and timing on the report."""
        report.total_elapsed_seconds = time.perf_counter() - start
        report.success = not report.has_errors
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "CrudGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    "read_project_name",
]
