"""climb_etl.validation

Record validator: one canonical record → ordered list of violation strings.
An empty list means the record is importable.  Never mutates the record.
"""

from __future__ import annotations

from typing import Any

from climb_etl.normalize import (
    is_number,
    parse_duration_seconds,
    parse_iso_date,
    strict_number,
)
from climb_etl.schema import CLIMB_TYPE_VALUES, SEND_TYPE_VALUES, CsvClimb

# (field, label used in the message)
_REQUIRED_LABELS: tuple[tuple[str, str], ...] = (
    ("name", "Name"),
    ("grade", "Grade"),
    ("type", "Type"),
    ("send_type", "Send type"),
    ("date", "Date"),
    ("location", "Location"),
)


def _missing(value: Any) -> bool:
    if value is None:
        return True
    return not str(value).strip()


def _is_non_negative_integer(value: Any) -> bool:
    return is_number(value) and float(value).is_integer() and value >= 0


def _is_positive_number(value: Any) -> bool:
    return is_number(value) and value > 0


def is_valid_date(value: Any) -> bool:
    """Strict YYYY-MM-DD whose calendar date round-trips exactly."""
    return parse_iso_date(value) is not None


def validate(record: CsvClimb) -> list[str]:
    errors: list[str] = []

    for field_name, label in _REQUIRED_LABELS:
        if _missing(getattr(record, field_name)):
            errors.append(f"{label} is required and cannot be empty.")

    if not _missing(record.date) and not is_valid_date(record.date):
        errors.append("Date must be in YYYY-MM-DD format.")

    if not _missing(record.type) and record.type not in CLIMB_TYPE_VALUES:
        errors.append(
            f"Invalid climb type: {record.type}. "
            f"Allowed values are: {', '.join(CLIMB_TYPE_VALUES)}."
        )

    if not _missing(record.send_type) and record.send_type not in SEND_TYPE_VALUES:
        errors.append(
            f"Invalid send type: {record.send_type}. "
            f"Allowed values are: {', '.join(SEND_TYPE_VALUES)}."
        )

    # Optional fields: only checked when present.
    if record.attempts is not None and not _is_non_negative_integer(record.attempts):
        errors.append("Attempts must be a non-negative integer.")

    if record.rating is not None:
        if not is_number(record.rating) or not (1 <= record.rating <= 5):
            errors.append("Rating must be a number between 1 and 5.")

    if record.duration is not None:
        seconds = parse_duration_seconds(record.duration)
        if seconds is None or seconds <= 0:
            errors.append(
                "Duration must be a positive number (e.g., seconds or HH:MM:SS)."
            )

    if record.elevation_gain is not None and not _is_positive_number(record.elevation_gain):
        errors.append("Elevation gain must be a positive number.")

    # Descriptive stiffness belongs in stiffness_note; this field is numeric.
    if record.stiffness is not None and strict_number(record.stiffness) is None:
        errors.append("Stiffness must be a number if present.")

    return errors
