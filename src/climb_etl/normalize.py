"""Normalization functions for climb-log ingestion.

All functions accept raw cell values (usually str, sometimes already-typed
JSON values) and return the appropriate type or None.  None of them raise on
bad input.
"""

from __future__ import annotations

import math
import re
from datetime import date
from typing import Any

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_HEADER_STRIP_RE = re.compile(r"[\s_-]+")


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 2: normalize_header_key
# ---------------------------------------------------------------------------

def normalize_header_key(value: str | None) -> str:
    """Lowercase and drop whitespace, '_' and '-'.

    "Route Name", "route_name" and "routename" all normalize to "routename".
    """
    if value is None:
        return ""
    return _HEADER_STRIP_RE.sub("", value.lower())


# ---------------------------------------------------------------------------
# Rule 3: is_blank
# ---------------------------------------------------------------------------

def is_blank(value: Any) -> bool:
    """True for None and for strings that are empty after trimming."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def as_text(value: Any) -> str | None:
    """Render a raw cell as trimmed text, or None when blank."""
    if is_blank(value):
        return None
    return trim(str(value))


# ---------------------------------------------------------------------------
# Rule 4: parse_number  (tolerant, never raises)
# ---------------------------------------------------------------------------

_LEADING_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def parse_number(value: Any) -> float | None:
    """Parse the leading number of a raw value, or None.

    Mirrors the lenient prefix parse most spreadsheet exports assume:
    "12m" → 12.0, "3 tries" → 3.0, "abc" → None.  Booleans, NaN and
    infinities are rejected.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = float(value)
        return f if math.isfinite(f) else None
    v = trim(str(value))
    if v is None:
        return None
    m = _LEADING_NUMBER_RE.match(v)
    if not m:
        return None
    f = float(m.group(0))
    return f if math.isfinite(f) else None


def parse_int(value: Any) -> int | None:
    """Parse the leading integer of a raw value, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    v = trim(str(value))
    if v is None:
        return None
    m = re.match(r"^[+-]?\d+", v)
    return int(m.group(0)) if m else None


def is_number(value: Any) -> bool:
    """True for real ints/floats (bool excluded)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(float(value))
    return False


def strict_number(value: Any) -> float | None:
    """Return value as float only when the whole value is numeric.

    Unlike parse_number, "12m" → None.  Numbers pass through.
    """
    if is_number(value):
        return float(value)
    if not isinstance(value, str):
        return None
    v = trim(value)
    if v is None:
        return None
    try:
        f = float(v)
    except ValueError:
        return None
    return f if math.isfinite(f) else None


# ---------------------------------------------------------------------------
# Rule 5: split_list
# ---------------------------------------------------------------------------

def split_list(value: Any) -> list[str]:
    """Accept a list or a comma-separated string; return trimmed, non-empty items."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value if v is not None]
    else:
        items = str(value).split(",")
    return [i.strip() for i in items if i.strip()]


# ---------------------------------------------------------------------------
# Rule 6: parse_duration_seconds
# ---------------------------------------------------------------------------

def parse_duration_seconds(value: Any) -> float | None:
    """Resolve a duration to seconds.

    Accepts a number (seconds), a numeric string ("600") or "HH:MM:SS".
    Returns None when the value cannot be resolved.
    """
    if is_number(value):
        return float(value)
    if not isinstance(value, str):
        return None
    v = trim(value)
    if v is None:
        return None
    parts = v.split(":")
    if len(parts) == 3:
        try:
            h, m, s = (int(p) for p in parts)
        except ValueError:
            return None
        return float(h * 3600 + m * 60 + s)
    if len(parts) == 1:
        return strict_number(v)
    return None


# ---------------------------------------------------------------------------
# Rule 7: parse_iso_date
# ---------------------------------------------------------------------------

def parse_iso_date(value: str | None) -> date | None:
    """Parse a strict 'YYYY-MM-DD' string.

    The calendar date must exist: '2023-02-30' → None rather than being
    rolled forward into March.  Surrounding whitespace is not tolerated.
    """
    if not isinstance(value, str):
        return None
    m = _ISO_DATE_RE.fullmatch(value)
    if not m:
        return None
    year, month, day = (int(g) for g in m.groups())
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None
    if (parsed.year, parsed.month, parsed.day) != (year, month, day):
        return None
    return parsed
