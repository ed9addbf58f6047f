"""climb_etl.import_climbs

Batch importer and unified CLI entrypoint.

Each row moves through build → validate → duplicate check → insert and ends
in exactly one state: Inserted, Skipped (duplicate), Rejected (validation)
or Failed (insert error / unexpected error).  A row's failure is recorded in
the ImportResult and never stops the remaining rows.

Modes (--mode):
  import  — parse a CSV/JSON climbing-log export and insert its climbs (default)
  export  — write a user's persisted climbs to a canonical CSV

Usage (import):
    python -m climb_etl.import_climbs \\
        --mode import \\
        --db-dsn "$DB_DSN" \\
        --file-path "exports/mountain_project_ticks.csv" \\
        --template mountainProject \\
        --user-id "$USER_ID" \\
        --rejects-path "artifacts/rejects/climb_rejects.csv"

Usage (export):
    python -m climb_etl.import_climbs \\
        --mode export \\
        --db-dsn "$DB_DSN" \\
        --user-id "$USER_ID" \\
        --output-path "artifacts/exports/climbs.csv"
"""

from __future__ import annotations

import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import click
import psycopg

from climb_etl.dedup import find_duplicate
from climb_etl.grades import GradeSystem
from climb_etl.mapping import (
    ColumnMapping,
    MappingFileError,
    apply_overrides,
    load_mapping_overrides,
)
from climb_etl.parser import ParsedFile, ParseError, read_file
from climb_etl.schema import REQUIRED_FIELDS, CsvClimb
from climb_etl.shared import (
    ExportCounters,
    ImportResult,
    RejectWriter,
    insert_climb,
    write_run_report,
)
from climb_etl.templates import (
    GENERIC_CSV_TEMPLATE,
    GENERIC_JSON_TEMPLATE,
    SOURCE_TYPES,
    ImportMappingTemplate,
    build_climb_record,
    get_template,
)
from climb_etl.validation import validate

log = logging.getLogger(__name__)

# First data row of a CSV with a header is spreadsheet row 2.
HEADER_ROW_OFFSET = 2

CONVERTIBLE_GRADE_SYSTEMS = (
    GradeSystem.YDS.value,
    GradeSystem.FRENCH.value,
    GradeSystem.VSCALE.value,
    GradeSystem.FONT.value,
)


# ---------------------------------------------------------------------------
# Per-row processing
# ---------------------------------------------------------------------------

def _reject(rejects: RejectWriter | None, record: CsvClimb, reason: str) -> None:
    if rejects is not None:
        rejects.write(record.to_dict(), reason)


def _import_row(
    conn: psycopg.Connection,
    user_id: str,
    record: CsvClimb,
    row_num: int,
    session_id: str | None,
    result: ImportResult,
    rejects: RejectWriter | None,
) -> None:
    violations = validate(record)
    if violations:
        msg = f"Row {row_num}: Validation failed - {', '.join(violations)}"
        log.error(msg)
        result.add_error(msg)
        result.rows_rejected_validation += 1
        _reject(rejects, record, msg)
        return

    try:
        existing_id = find_duplicate(conn, user_id, record, result)
    except Exception as exc:
        msg = (
            f'Row {row_num} (Climb: "{record.name}"): '
            f"Unexpected error during duplicate check: {exc}"
        )
        log.error(msg)
        result.add_error(msg)
        result.rows_failed_insert += 1
        _reject(rejects, record, msg)
        return

    if existing_id is not None:
        msg = f"Row {row_num}: Duplicate climb already exists - {record.name}"
        log.warning("%s (existing id=%s)", msg, existing_id)
        result.add_error(msg)
        result.rows_skipped_duplicate += 1
        _reject(rejects, record, msg)
        return

    try:
        with conn.transaction():
            insert_climb(conn, user_id, record, session_id)
    except psycopg.Error as exc:
        msg = f'Row {row_num}: Error inserting climb "{record.name}": {exc}'
    except Exception as exc:
        msg = (
            f'Row {row_num} (Climb: "{record.name}"): '
            f"Unexpected error during database insertion: {exc}"
        )
    else:
        result.success_count += 1
        return

    log.error(msg)
    result.add_error(msg)
    result.rows_failed_insert += 1
    _reject(rejects, record, msg)


def import_climbs(
    conn: psycopg.Connection,
    user_id: str,
    records: list[CsvClimb],
    row_numbers: list[int] | None = None,
    session_id: str | None = None,
    rejects: RejectWriter | None = None,
) -> ImportResult:
    """Validate, dedup-check and insert already-normalized records.

    Rows are processed strictly in order.  Without row_numbers, record i is
    reported as row i + 2 (CSV with a header row).  Each insert runs in its
    own conn.transaction() block.
    """
    result = ImportResult()
    for idx, record in enumerate(records):
        row_num = row_numbers[idx] if row_numbers else idx + HEADER_ROW_OFFSET
        result.rows_read += 1
        _import_row(conn, user_id, record, row_num, session_id, result, rejects)
    log.info(
        "import_climbs user_id=%s rows=%d success=%d errors=%d",
        user_id, result.rows_read, result.success_count, result.error_count,
    )
    return result


# ---------------------------------------------------------------------------
# File → records
# ---------------------------------------------------------------------------

def resolve_template(
    parsed: ParsedFile,
    template: ImportMappingTemplate | None,
) -> ImportMappingTemplate:
    """Fall back to the generic template matching the parsed file kind."""
    if template is not None and template.is_json == parsed.is_json:
        return template
    fallback = GENERIC_JSON_TEMPLATE if parsed.is_json else GENERIC_CSV_TEMPLATE
    if template is not None:
        log.info(
            "template_switched from=%s to=%s (file is %s)",
            template.source_type, fallback.source_type,
            "JSON" if parsed.is_json else "CSV",
        )
    return fallback


def build_climb_records(
    parsed: ParsedFile,
    mapping: dict[str, str | None],
    template: ImportMappingTemplate | None = None,
    target_grade_system: GradeSystem | None = None,
) -> list[CsvClimb]:
    return [
        build_climb_record(row, mapping, template, target_grade_system)
        for row in parsed.rows
    ]


def import_climbs_from_file(
    conn: psycopg.Connection,
    user_id: str,
    path: Path,
    template: ImportMappingTemplate | None = None,
    mime_type: str | None = None,
    overrides: dict[str, str | None] | None = None,
    target_grade_system: GradeSystem | None = None,
    session_id: str | None = None,
    rejects: RejectWriter | None = None,
) -> ImportResult:
    """Parse, map and import one file.

    A ParseError halts before any row is processed; its messages become the
    result's errors and no datastore call is made.
    """
    force_json = template is not None and template.is_json
    try:
        parsed = read_file(path, mime_type=mime_type, force_json=force_json)
    except ParseError as exc:
        log.error("parse_failed path=%s: %s", path, exc)
        result = ImportResult(parse_failed=True)
        for message in exc.messages:
            result.add_error(message)
        return result

    template = resolve_template(parsed, template)
    mapping = ColumnMapping(parsed.headers_or_keys, parsed.is_json, template)
    if overrides:
        apply_overrides(mapping, overrides)
    resolved = mapping.resolved()

    unmapped = mapping.unmapped_required(REQUIRED_FIELDS)
    if unmapped and template.transform is None:
        log.warning("required fields without a source column: %s", unmapped)

    records = build_climb_records(parsed, resolved, template, target_grade_system)
    return import_climbs(
        conn, user_id, records,
        row_numbers=parsed.row_numbers,
        session_id=session_id,
        rejects=rejects,
    )


# ---------------------------------------------------------------------------
# Flag validation
# ---------------------------------------------------------------------------

def _validate_import_flags(
    file_path: str | None,
    user_id: str | None,
    run_id: str,
) -> None:
    required = {
        "--file-path": file_path,
        "--user-id": user_id,
    }
    missing = [k for k, v in required.items() if v is None]
    if missing:
        click.echo(
            f"[{run_id}] FATAL: import mode requires: {', '.join(missing)}",
            err=True,
        )
        sys.exit(1)


def _validate_export_flags(
    user_id: str | None,
    output_path: str | None,
    run_id: str,
) -> None:
    required = {
        "--user-id": user_id,
        "--output-path": output_path,
    }
    missing = [k for k, v in required.items() if v is None]
    if missing:
        click.echo(
            f"[{run_id}] FATAL: export mode requires: {', '.join(missing)}",
            err=True,
        )
        sys.exit(1)


# ---------------------------------------------------------------------------
# Import mode
# ---------------------------------------------------------------------------

def _run_import(
    run_id: str,
    db_dsn: str,
    rejects: RejectWriter,
    file_path: str,
    user_id: str,
    session_id: str | None,
    template: ImportMappingTemplate | None,
    mime_type: str | None,
    overrides: dict[str, str | None] | None,
    target_grade_system: GradeSystem | None,
    dry_run: bool,
) -> ImportResult:
    conn = psycopg.connect(db_dsn, autocommit=False)
    result = ImportResult()
    try:
        with conn.transaction():
            result = import_climbs_from_file(
                conn, user_id, Path(file_path),
                template=template,
                mime_type=mime_type,
                overrides=overrides,
                target_grade_system=target_grade_system,
                session_id=session_id,
                rejects=rejects,
            )
            if dry_run:
                raise psycopg.Rollback()
    finally:
        conn.close()
        rejects.close()

    if dry_run:
        click.echo(f"[{run_id}] [dry-run] All changes rolled back.")
    else:
        click.echo(f"[{run_id}] Committed.")
    return result


def _echo_result(run_id: str, result: ImportResult) -> None:
    click.echo(
        f"[{run_id}] Import: {result.rows_read} rows read, "
        f"{result.success_count} inserted, {result.error_count} errors "
        f"({result.rows_rejected_validation} invalid, "
        f"{result.rows_skipped_duplicate} duplicate, "
        f"{result.rows_failed_insert} failed)"
    )
    for message in result.errors:
        click.echo(f"[{run_id}]   {message}")
    for warning in result.warnings:
        click.echo(f"[{run_id}] WARNING: {warning}", err=True)


# ---------------------------------------------------------------------------
# Unified CLI
# ---------------------------------------------------------------------------

@click.command()
@click.option(
    "--mode",
    default="import",
    type=click.Choice(["import", "export"]),
    show_default=True,
    help="Ingestion mode",
)
@click.option("--db-dsn", required=True, help="PostgreSQL DSN")
@click.option("--user-id", default=None, help="Owner of the imported/exported climbs")
# import
@click.option("--file-path", default=None, type=click.Path(), help="[import] CSV or JSON climbing-log export")
@click.option("--file-type", default=None, help="[import] Declared MIME type, e.g. application/json")
@click.option("--session-id", default=None, help="[import] Attach inserted climbs to this session")
@click.option(
    "--template",
    "template_key",
    default=None,
    type=click.Choice(list(SOURCE_TYPES)),
    help="[import] Source template; omitted → generic template for the file kind",
)
@click.option("--mapping-file", default=None, type=click.Path(), help="[import] YAML header → field overrides")
@click.option(
    "--normalize-grades-to",
    default=None,
    type=click.Choice(list(CONVERTIBLE_GRADE_SYSTEMS)),
    help="[import] Convert grades to this system (off by default)",
)
# export
@click.option("--output-path", default=None, type=click.Path(), help="[export] Output CSV")
# shared flags
@click.option("--dry-run", is_flag=True, default=False)
@click.option(
    "--rejects-path",
    default="./artifacts/rejects/climb_rejects.csv",
    show_default=True,
)
@click.option("--run-id", default=None, help="Override UUID for log correlation")
def main(
    mode: str,
    db_dsn: str,
    user_id: str | None,
    # import
    file_path: str | None,
    file_type: str | None,
    session_id: str | None,
    template_key: str | None,
    mapping_file: str | None,
    normalize_grades_to: str | None,
    # export
    output_path: str | None,
    # shared
    dry_run: bool,
    rejects_path: str,
    run_id: str | None,
) -> None:
    """Unified climbing-log ingestion CLI."""
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.now(timezone.utc).isoformat()

    click.echo(f"[{run_id}] Starting {mode} run (dry_run={dry_run})")

    if mode == "export":
        _validate_export_flags(user_id, output_path, run_id)
        from climb_etl.export_climbs import run_export
        counters = ExportCounters()
        out = run_export(
            db_dsn, user_id, Path(output_path), counters,  # type: ignore[arg-type]
        )
        click.echo(f"[{run_id}] Export: {counters.climbs_exported} climbs → {out}")
        report_path = write_run_report(
            run_id, started_at, mode, dry_run,
            {"user_id": user_id, "output_path": output_path},
            counters,
        )
        click.echo(f"[{run_id}] Run report: {report_path}")
        return

    _validate_import_flags(file_path, user_id, run_id)

    overrides: dict[str, str | None] | None = None
    if mapping_file:
        try:
            overrides = load_mapping_overrides(Path(mapping_file))
        except (MappingFileError, FileNotFoundError) as exc:
            click.echo(f"[{run_id}] FATAL: mapping file {mapping_file}: {exc}", err=True)
            sys.exit(1)

    template = get_template(template_key) if template_key else None
    target = GradeSystem(normalize_grades_to) if normalize_grades_to else None
    rejects = RejectWriter(Path(rejects_path))

    result = _run_import(
        run_id, db_dsn, rejects,
        file_path=file_path,  # type: ignore[arg-type]
        user_id=user_id,  # type: ignore[arg-type]
        session_id=session_id,
        template=template,
        mime_type=file_type,
        overrides=overrides,
        target_grade_system=target,
        dry_run=dry_run,
    )
    _echo_result(run_id, result)
    if rejects.opened:
        click.echo(f"[{run_id}] Rejects: {rejects.path}")

    source: dict[str, Any] = {
        "file_path": file_path,
        "template": template.source_type if template else None,
        "mapping_file": mapping_file,
        "normalize_grades_to": normalize_grades_to,
    }
    report_path = write_run_report(run_id, started_at, mode, dry_run, source, result)
    click.echo(f"[{run_id}] Run report: {report_path}")

    if result.parse_failed:
        click.echo(f"[{run_id}] FATAL: file could not be parsed; nothing imported", err=True)
        sys.exit(1)
    if result.rows_failed_insert > 0 and not dry_run:
        click.echo(
            f"[{run_id}] {result.rows_failed_insert} rows failed to insert — exiting non-zero",
            err=True,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
