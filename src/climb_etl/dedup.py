"""climb_etl.dedup

Duplicate checker: has this user already persisted a climb with the same
(name, grade, date, location)?

Two conditions resolve to "no duplicate" for the caller but are logged and
counted separately so they can be told apart from a clean miss:
  - duplicate_check_missing_fields  the candidate lacks part of the key
  - duplicate_check_query_failed    the SELECT raised psycopg.Error

Only persisted state is consulted.  Rows inserted earlier in the same batch
are visible because they share the connection's transaction.
"""

from __future__ import annotations

import logging
from datetime import date

import psycopg

from climb_etl.normalize import parse_iso_date
from climb_etl.schema import DEDUP_KEY_FIELDS, CsvClimb
from climb_etl.shared import ImportResult, select_duplicate_climb

log = logging.getLogger(__name__)


def dedup_key(candidate: CsvClimb) -> tuple[str, str, date, str] | None:
    """Return (name, grade, date, location) or None when any part is missing."""
    name = (candidate.name or "").strip()
    grade = (candidate.grade or "").strip()
    location = (candidate.location or "").strip()
    climb_date = parse_iso_date(candidate.date)
    if not name or not grade or not location or climb_date is None:
        return None
    return name, grade, climb_date, location


def find_duplicate(
    conn: psycopg.Connection,
    user_id: str,
    candidate: CsvClimb,
    result: ImportResult | None = None,
) -> str | None:
    """Return the id of an existing matching climb, or None.

    Exceptions other than psycopg.Error propagate to the caller.
    """
    key = dedup_key(candidate)
    if key is None:
        missing = [f for f in DEDUP_KEY_FIELDS if not str(getattr(candidate, f) or "").strip()]
        log.error(
            "duplicate_check_missing_fields user_id=%s name=%r missing=%s",
            user_id, candidate.name, missing or ["date"],
        )
        if result is not None:
            result.duplicate_check_failures += 1
            result.warnings.append(
                f"duplicate_check_missing_fields: {candidate.name!r} missing {missing or ['date']}"
            )
        return None

    name, grade, climb_date, location = key
    try:
        with conn.transaction():
            return select_duplicate_climb(conn, user_id, name, grade, climb_date, location)
    except psycopg.Error as exc:
        log.error(
            "duplicate_check_query_failed user_id=%s name=%r: %s",
            user_id, name, exc,
        )
        if result is not None:
            result.duplicate_check_failures += 1
            result.warnings.append(f"duplicate_check_query_failed: {name!r}: {exc}")
        return None
