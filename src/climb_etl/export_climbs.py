"""climb_etl.export_climbs

Export a user's persisted climbs as a canonical-header CSV.

The header row uses the canonical field names, list fields are
comma-joined and duration is written in seconds, so the file re-imports
through the generic CSV template without a mapping file.
"""

from __future__ import annotations

import csv
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import psycopg

from climb_etl.schema import CANONICAL_FIELDS, LIST_FIELDS
from climb_etl.shared import ExportCounters, fetch_climbs_for_user

EXPORT_FIELDS: tuple[str, ...] = CANONICAL_FIELDS + ("stiffness_note",)


def _format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (Decimal, float)):
        if value == int(value):
            return str(int(value))
        return str(value)
    return str(value)


def climb_row_to_csv(row: dict[str, Any]) -> dict[str, str]:
    out: dict[str, str] = {}
    for field_name in EXPORT_FIELDS:
        value = row.get(field_name)
        if field_name in LIST_FIELDS:
            out[field_name] = ", ".join(value) if value else ""
        else:
            out[field_name] = _format_cell(value)
    return out


def write_climbs_csv(rows: list[dict[str, Any]], output_path: Path) -> int:
    """Write rows to output_path; returns the number of climbs written."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=list(EXPORT_FIELDS))
        writer.writeheader()
        for row in rows:
            writer.writerow(climb_row_to_csv(row))
    return len(rows)


def export_climbs(
    conn: psycopg.Connection,
    user_id: str,
    output_path: Path,
    counters: ExportCounters,
) -> Path:
    rows = fetch_climbs_for_user(conn, user_id)
    if not rows:
        counters.warnings.append(f"no climbs found for user_id={user_id}")
    counters.climbs_exported += write_climbs_csv(rows, output_path)
    return output_path


def run_export(
    db_dsn: str,
    user_id: str,
    output_path: Path,
    counters: ExportCounters,
) -> Path:
    conn = psycopg.connect(db_dsn, autocommit=False)
    try:
        with conn.transaction():
            return export_climbs(conn, user_id, output_path, counters)
    finally:
        conn.close()
