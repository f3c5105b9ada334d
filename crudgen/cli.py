# File: crudgen/cli.py
"""
crudgen - Command-Line Interface
================================

Built with the standard-library ``argparse`` module.

Usage examples::

    # Scaffold a new service
    crudgen init --project-name "My-Cool_API" --postgres-password s3cret -o ./svc

    # Add the table interactively, creating it in the database
    crudgen add-table --source ./svc/main.py --database-url postgresql://...

    # Non-interactive, code only, show what would change
    crudgen add-table --source ./svc/main.py --fields fields.yaml --skip-db --dry-run

    # List the supported field types
    crudgen types

Exit codes:
    0 - success
    1 - validation error
    2 - generation error (entry point missing, splice failed)
    3 - export / write error
    4 - input / argument error
    5 - database error
"""

from __future__ import annotations

import argparse
import difflib
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import yaml
from pydantic import ValidationError as PydanticValidationError

from crudgen import __version__
from crudgen.collector import FieldCollector, ask_yes_no, fields_to_dict, load_fields_file
from crudgen.database import DDLExecutor
from crudgen.errors import FieldValidationError
from crudgen.generator import (
    SERVICE_MANIFEST,
    CrudGenerator,
    GenerationReport,
    read_project_name,
)
from crudgen.models import FieldSpec, ProjectConfig, TableSpec
from crudgen.typemap import describe_types
from crudgen.utils import read_file, write_file

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4
EXIT_DATABASE_ERROR: int = 5


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root crudgen logger based on verbosity level.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("crudgen")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_verbosity(parser: argparse.ArgumentParser, top_level: bool = False) -> None:
    # Sub-command defaults would overwrite the values parsed before the command.
    group = parser.add_argument_group("verbosity")
    group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0 if top_level else argparse.SUPPRESS,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False if top_level else argparse.SUPPRESS,
        help="Suppress all log output.",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="crudgen",
        description=(
            "crudgen - CRUD endpoint generator for FastAPI + PostgreSQL services.\n\n"
            "Creates the table in PostgreSQL and splices models, handlers and "
            "routes for it into the service module."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s init --project-name shop --postgres-password pw -o ./shop\n"
            "  %(prog)s add-table --source ./shop/main.py --fields fields.yaml\n"
            "  %(prog)s types\n"
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"crudgen v{__version__}",
    )
    _add_verbosity(parser, top_level=True)

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    # --- init ---
    init = commands.add_parser("init", help="Scaffold a new service skeleton.")
    _add_verbosity(init)
    init.add_argument("--project-name", required=True, metavar="NAME",
                      help="Free-form project name (e.g. 'My-Cool_API').")
    init.add_argument("--postgres-password", required=True, metavar="PASSWORD",
                      help="PostgreSQL password baked into the default DATABASE_URL.")
    settings = init.add_argument_group("service settings")
    settings.add_argument("--description", default=None, metavar="TEXT")
    settings.add_argument("--project-version", default=None, metavar="VER")
    settings.add_argument("--postgres-user", default=None, metavar="USER")
    settings.add_argument("--postgres-host", default=None, metavar="HOST")
    settings.add_argument("--postgres-port", type=int, default=None, metavar="PORT")
    settings.add_argument("--postgres-db", default=None, metavar="DB")
    settings.add_argument("--service-port", type=int, default=None, metavar="PORT")
    settings.add_argument("--api-key", default=None, metavar="KEY")
    settings.add_argument("--python-version", default=None, metavar="X.Y")
    init.add_argument("-o", "--output", default=".", metavar="DIR",
                      help="Output directory (default: current directory).")
    init.add_argument("--force", action="store_true", default=False,
                      help="Overwrite existing main.py / pyproject.toml.")
    init.add_argument("--dry-run", action="store_true", default=False,
                      help="Render the skeleton without writing files.")

    # --- add-table ---
    add = commands.add_parser("add-table", help="Create the table and splice CRUD code.")
    _add_verbosity(add)
    add.add_argument("--source", default="main.py", metavar="PATH",
                     help="Service module to edit (default: main.py).")
    naming = add.add_mutually_exclusive_group()
    naming.add_argument("--project-name", default=None, metavar="NAME",
                        help="Project name the table identifier is derived from.")
    naming.add_argument("--manifest", default=None, metavar="PATH",
                        help="pyproject.toml to read [project].name from "
                             "(default: next to --source).")
    add.add_argument("--fields", default=None, metavar="FILE",
                     help="JSON/YAML field list; prompts interactively when omitted.")
    add.add_argument("--save-fields", default=None, metavar="FILE",
                     help="Save the collected field list as YAML.")
    database = add.add_argument_group("database")
    database.add_argument("--database-url", default=None, metavar="URL",
                          help="Target database (default: $DATABASE_URL).")
    database.add_argument("--skip-db", action="store_true", default=False,
                          help="Only edit the source; do not execute DDL.")
    behaviour = add.add_argument_group("behaviour flags")
    behaviour.add_argument("--dry-run", action="store_true", default=False,
                           help="Show the DDL and source diff; change nothing.")
    behaviour.add_argument("-y", "--yes", action="store_true", default=False,
                           help="Do not ask for confirmation.")
    behaviour.add_argument("--keep-backup", action="store_true", default=False,
                           help="Keep <source>.bak even after a clean run.")

    # --- types ---
    types = commands.add_parser("types", help="List the supported field types.")
    _add_verbosity(types)

    return parser


# ---------------------------------------------------------------------------
# Report -> exit code
# ---------------------------------------------------------------------------


def _exit_code_for(report: GenerationReport) -> int:
    if report.success:
        return EXIT_SUCCESS
    if report.validation_errors:
        return EXIT_VALIDATION_ERROR
    if report.input_errors:
        return EXIT_INPUT_ERROR
    if report.database_errors:
        return EXIT_DATABASE_ERROR
    if report.export_errors:
        return EXIT_EXPORT_ERROR
    return EXIT_GENERATION_ERROR


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


def _build_project_config(args: argparse.Namespace) -> ProjectConfig:
    """Build a ``ProjectConfig`` from CLI arguments; unset flags keep defaults."""
    overrides: Dict[str, object] = {
        "project_name": args.project_name,
        "postgres_password": args.postgres_password,
    }
    optional: Dict[str, Optional[object]] = {
        "description": args.description,
        "version": args.project_version,
        "postgres_user": args.postgres_user,
        "postgres_host": args.postgres_host,
        "postgres_port": args.postgres_port,
        "postgres_db": args.postgres_db,
        "service_port": args.service_port,
        "api_key": args.api_key,
        "python_version": args.python_version,
    }
    overrides.update({k: v for k, v in optional.items() if v is not None})
    return ProjectConfig.model_validate(overrides)


def _run_init(args: argparse.Namespace) -> int:
    try:
        config: ProjectConfig = _build_project_config(args)
    except (PydanticValidationError, FieldValidationError) as exc:
        logger.error("Invalid project settings: %s", exc)
        return EXIT_VALIDATION_ERROR

    report: GenerationReport = CrudGenerator().scaffold(
        config,
        Path(args.output).resolve(),
        force=args.force,
        dry_run=args.dry_run,
    )
    for path, content in report.preview.items():
        print(f"--- {path} ---")
        print(content)
    print(report.summary())
    return _exit_code_for(report)


# ---------------------------------------------------------------------------
# add-table
# ---------------------------------------------------------------------------


def _resolve_project_name(args: argparse.Namespace, source: Path) -> str:
    if args.project_name:
        return args.project_name
    manifest: Path = (
        Path(args.manifest).resolve() if args.manifest else source.parent / SERVICE_MANIFEST
    )
    return read_project_name(manifest)


def _collect_fields(
    args: argparse.Namespace,
    prompt: Callable[[str], str],
) -> List[FieldSpec]:
    if args.fields:
        return load_fields_file(Path(args.fields).resolve())
    return FieldCollector(prompt=prompt, echo=print).collect()


def _print_plan(table: TableSpec) -> None:
    print("")
    print(f"Table to create: {table.table_name}")
    print("Columns:")
    print("  - id (SERIAL PRIMARY KEY)")
    print("  - created_on (TIMESTAMP WITH TIME ZONE)")
    print("  - changed_on (TIMESTAMP WITH TIME ZONE)")
    for field in table.fields:
        print(f"  - {field.name} ({field.storage_type})")
    print(f"Routes: /api{table.route_path} and /api{table.route_path}/{{id}}")
    print("")


def _print_dry_run(report: GenerationReport, original: str) -> None:
    print("-- DDL --")
    for statement in report.ddl:
        print(statement)
        print("")
    for path, content in report.preview.items():
        diff = difflib.unified_diff(
            original.splitlines(keepends=True),
            content.splitlines(keepends=True),
            fromfile=path,
            tofile=f"{path} (generated)",
        )
        sys.stdout.writelines(diff)


def _run_add_table(
    args: argparse.Namespace,
    prompt: Optional[Callable[[str], str]] = None,
) -> int:
    prompt = prompt or input
    source: Path = Path(args.source).resolve()
    if not source.is_file():
        logger.error("Service module not found: %s", source)
        return EXIT_INPUT_ERROR

    try:
        project_name: str = _resolve_project_name(args, source)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Cannot determine the project name: %s", exc)
        return EXIT_INPUT_ERROR

    database_url: Optional[str] = args.database_url or os.environ.get("DATABASE_URL")
    if not (args.skip_db or args.dry_run or database_url):
        logger.error(
            "No database URL. Pass --database-url, set DATABASE_URL or use --skip-db."
        )
        return EXIT_INPUT_ERROR

    try:
        fields: List[FieldSpec] = _collect_fields(args, prompt)
        table: TableSpec = TableSpec.from_project_name(project_name, fields)
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR
    except (FieldValidationError, PydanticValidationError) as exc:
        logger.error("%s", exc)
        return EXIT_VALIDATION_ERROR
    except (EOFError, KeyboardInterrupt):
        print("\nAborted.")
        return EXIT_INPUT_ERROR

    if args.save_fields:
        content: str = yaml.safe_dump(fields_to_dict(fields), sort_keys=False)
        try:
            write_file(Path(args.save_fields).resolve(), content)
        except OSError as exc:
            logger.error("Cannot save field list: %s", exc)
            return EXIT_EXPORT_ERROR

    _print_plan(table)
    if not (args.yes or args.dry_run):
        try:
            if not ask_yes_no(prompt, "Proceed?"):
                print("Aborted.")
                return EXIT_SUCCESS
        except (EOFError, KeyboardInterrupt):
            print("\nAborted.")
            return EXIT_INPUT_ERROR

    original: str = read_file(source)
    executor: Optional[DDLExecutor] = None
    if database_url and not (args.skip_db or args.dry_run):
        executor = DDLExecutor(database_url)

    try:
        report: GenerationReport = CrudGenerator(keep_backup=args.keep_backup).add_table(
            table,
            source,
            executor=executor,
            dry_run=args.dry_run,
        )
    finally:
        if executor is not None:
            executor.dispose()

    if args.dry_run:
        _print_dry_run(report, original)
    print(report.summary())
    return _exit_code_for(report)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns the exit code; the console script passes it to ``sys.exit``.
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        logging.disable(logging.CRITICAL)
    else:
        logging.disable(logging.NOTSET)
    _setup_logging(args.verbose)

    if args.command == "types":
        print(describe_types())
        return EXIT_SUCCESS
    if args.command == "init":
        exit_code: int = _run_init(args)
    else:
        exit_code = _run_add_table(args)

    if exit_code == EXIT_SUCCESS:
        logger.info("%s completed successfully.", args.command)
    else:
        logger.error("%s failed with exit code %d.", args.command, exit_code)
    return exit_code


__all__: List[str] = [
    "main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
    "EXIT_DATABASE_ERROR",
]
