"""climb_etl.shared

Shared utilities used by the import and export modes.
Includes ImportResult, RejectWriter, the climbs-table DB helpers, and
report-writing support.
"""

from __future__ import annotations

import csv
import json
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import psycopg

from climb_etl.normalize import parse_duration_seconds, strict_number
from climb_etl.schema import CsvClimb


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

class RejectWriter:
    """Lazy-open CSV writer for rejected rows."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh = None
        self._writer = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def opened(self) -> bool:
        return self._fh is not None

    def write(self, row: dict[str, Any], reason: str) -> None:
        if self._fh is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self._path, "w", newline="", encoding="utf-8")
            fieldnames = list(row.keys()) + ["_reject_reason"]
            self._writer = csv.DictWriter(
                self._fh, fieldnames=fieldnames, extrasaction="ignore"
            )
            self._writer.writeheader()
        out = {k: _reject_cell(v) for k, v in row.items()}
        out["_reject_reason"] = reason
        self._writer.writerow(out)
        self._fh.flush()

    def close(self) -> None:
        if self._fh:
            self._fh.close()


def _reject_cell(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return value


# ---------------------------------------------------------------------------
# ImportResult
# ---------------------------------------------------------------------------

@dataclass
class ImportResult:
    success_count: int = 0
    error_count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    rows_read: int = 0
    rows_rejected_validation: int = 0
    rows_skipped_duplicate: int = 0
    rows_failed_insert: int = 0
    duplicate_check_failures: int = 0
    parse_failed: bool = False

    def add_error(self, message: str) -> None:
        self.error_count += 1
        self.errors.append(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success_count": self.success_count,
            "error_count": self.error_count,
            "rows_read": self.rows_read,
            "rows_rejected_validation": self.rows_rejected_validation,
            "rows_skipped_duplicate": self.rows_skipped_duplicate,
            "rows_failed_insert": self.rows_failed_insert,
            "duplicate_check_failures": self.duplicate_check_failures,
            "parse_failed": self.parse_failed,
            "errors": self.errors,
            "warnings": self.warnings,
        }


@dataclass
class ExportCounters:
    climbs_exported: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "climbs_exported": self.climbs_exported,
            "warnings": self.warnings,
        }


# ---------------------------------------------------------------------------
# Shared DB helpers: climbs
# ---------------------------------------------------------------------------

# Columns written on insert and read back on export, in table order.
CLIMB_COLUMNS: tuple[str, ...] = (
    "name", "grade", "type", "send_type", "date", "location",
    "attempts", "rating", "notes", "duration", "elevation_gain",
    "color", "gym", "country", "skills", "stiffness", "stiffness_note",
    "physical_skills", "technical_skills",
)
_SELECT_COLUMNS = ", ".join(CLIMB_COLUMNS)


def select_duplicate_climb(
    conn: psycopg.Connection,
    user_id: str,
    name: str,
    grade: str,
    climb_date: date | str,
    location: str,
) -> str | None:
    row = conn.execute(
        """
        SELECT id FROM climbs
        WHERE user_id = %s
          AND name = %s
          AND grade = %s
          AND date = %s
          AND location = %s
        ORDER BY created_at ASC, id ASC
        LIMIT 1
        """,
        (user_id, name, grade, climb_date, location),
    ).fetchone()
    return str(row[0]) if row else None


def climb_insert_values(record: CsvClimb) -> dict[str, Any]:
    """Coerce a validated record into column values.

    duration → whole seconds, rounded up; attempts defaults to 1; list
    fields stay lists (native text[]); stiffness is numeric.
    """
    duration = parse_duration_seconds(record.duration) if record.duration is not None else None
    return {
        "name": record.name.strip(),
        "grade": record.grade.strip(),
        "type": record.type,
        "send_type": record.send_type,
        "date": date.fromisoformat(record.date),
        "location": record.location.strip(),
        "attempts": int(record.attempts) if record.attempts is not None else 1,
        "rating": record.rating,
        "notes": record.notes,
        "duration": math.ceil(duration) if duration is not None else None,
        "elevation_gain": record.elevation_gain,
        "color": record.color,
        "gym": record.gym,
        "country": record.country,
        "skills": list(record.skills) if record.skills else None,
        "stiffness": strict_number(record.stiffness) if record.stiffness is not None else None,
        "stiffness_note": record.stiffness_note,
        "physical_skills": list(record.physical_skills) if record.physical_skills else None,
        "technical_skills": list(record.technical_skills) if record.technical_skills else None,
    }


def insert_climb(
    conn: psycopg.Connection,
    user_id: str,
    record: CsvClimb,
    session_id: str | None = None,
) -> str:
    values = climb_insert_values(record)
    columns = ("user_id", "session_id") + CLIMB_COLUMNS
    params = (user_id, session_id) + tuple(values[c] for c in CLIMB_COLUMNS)
    column_list = ", ".join(columns)
    placeholders = ", ".join(["%s"] * len(columns))
    row = conn.execute(
        f"""
        INSERT INTO climbs ({column_list})
        VALUES ({placeholders})
        RETURNING id
        """,
        params,
    ).fetchone()
    return str(row[0])


def fetch_climbs_for_user(
    conn: psycopg.Connection,
    user_id: str,
) -> list[dict[str, Any]]:
    rows = conn.execute(
        f"""
        SELECT {_SELECT_COLUMNS}
        FROM climbs
        WHERE user_id = %s
        ORDER BY date ASC, created_at ASC, id ASC
        """,
        (user_id,),
    ).fetchall()
    return [dict(zip(CLIMB_COLUMNS, row)) for row in rows]


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    mode: str,
    dry_run: bool,
    source_paths: dict[str, Any],
    counters: ImportResult | ExportCounters,
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "dry_run": dry_run,
        **source_paths,
        "counters": counters.to_dict(),
    }
    report_path = Path(f"./artifacts/reports/{run_id}.json")
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
