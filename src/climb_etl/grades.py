"""climb_etl.grades

Grade-system detection and table-driven conversion.

Only two conversion axes exist: YDS <-> French for routes and
V-Scale <-> Font for boulders.  Every other pairing (including cross-category
ones such as YDS -> Font) returns the input unchanged.  Conversion never
raises; a grade that cannot be converted comes back as-is.

Usage:
    from climb_etl.grades import GradeSystem, normalize_grade

    normalize_grade("5.10a", GradeSystem.YDS, GradeSystem.FRENCH)   # "6a"
    normalize_grade("V5", None, GradeSystem.FONT, is_boulder=True)  # "6C"
"""

from __future__ import annotations

import re
from enum import Enum


class GradeSystem(str, Enum):
    YDS = "YDS"
    FRENCH = "French"
    VSCALE = "V-Scale"
    FONT = "Font"
    UIAA = "UIAA"
    AUSTRALIAN = "Australian"


# ---------------------------------------------------------------------------
# Conversion tables
# ---------------------------------------------------------------------------

# Each table must stay one-to-one: the inverse is derived automatically and a
# collision would break the round trip for the shadowed grade.
YDS_TO_FRENCH: dict[str, str] = {
    "5.6": "4c",
    "5.7": "5a",
    "5.8": "5b",
    "5.9": "5c",
    "5.10a": "6a",
    "5.10b": "6a+",
    "5.10c": "6b",
    "5.10d": "6b+",
    "5.11a": "6c",
    "5.11b": "6c/6c+",
    "5.11c": "6c+",
    "5.11d": "7a",
    "5.12a": "7a+",
    "5.12b": "7b",
    "5.12c": "7b+",
    "5.12d": "7c",
    "5.13a": "7c+",
    "5.13b": "8a",
    "5.13c": "8a+",
    "5.13d": "8b",
    "5.14a": "8b+",
    "5.14b": "8c",
    "5.14c": "8c+",
    "5.14d": "9a",
    "5.15a": "9a+",
}

FRENCH_TO_YDS: dict[str, str] = {fr: yds for yds, fr in YDS_TO_FRENCH.items()}

VSCALE_TO_FONT: dict[str, str] = {
    "VB": "3",
    "V0": "4",
    "V1": "5",
    "V2": "5+",
    "V3": "6A",
    "V4": "6B",
    "V5": "6C",
    "V6": "7A",
    "V7": "7A+",
    "V8": "7B",
    "V9": "7B+",
    "V10": "7C+",
    "V11": "8A",
    "V12": "8A+",
    "V13": "8B",
    "V14": "8B+",
    "V15": "8C",
    "V16": "8C+",
    "V17": "9A",
}

FONT_TO_VSCALE: dict[str, str] = {font: v for v, font in VSCALE_TO_FONT.items()}

# (source, target) -> (table, key normalizer)
_CONVERSIONS = {
    (GradeSystem.YDS, GradeSystem.FRENCH): (YDS_TO_FRENCH, str.lower),
    (GradeSystem.FRENCH, GradeSystem.YDS): (FRENCH_TO_YDS, str.lower),
    (GradeSystem.VSCALE, GradeSystem.FONT): (VSCALE_TO_FONT, str.upper),
    (GradeSystem.FONT, GradeSystem.VSCALE): (FONT_TO_VSCALE, str.upper),
}


# ---------------------------------------------------------------------------
# Grade lists (for pickers and sanity checks)
# ---------------------------------------------------------------------------

YDS_GRADES: tuple[str, ...] = (
    "5.0", "5.1", "5.2", "5.3", "5.4", "5.5", "5.6", "5.7", "5.8", "5.9",
    "5.10a", "5.10b", "5.10c", "5.10d",
    "5.11a", "5.11b", "5.11c", "5.11d",
    "5.12a", "5.12b", "5.12c", "5.12d",
    "5.13a", "5.13b", "5.13c", "5.13d",
    "5.14a", "5.14b", "5.14c", "5.14d",
    "5.15a", "5.15b", "5.15c", "5.15d",
)

VSCALE_GRADES: tuple[str, ...] = (
    "VB", "V0", "V1", "V2", "V3", "V4", "V5", "V6", "V7", "V8",
    "V9", "V10", "V11", "V12", "V13", "V14", "V15", "V16", "V17",
)

_GRADE_LISTS = {
    GradeSystem.YDS: YDS_GRADES,
    GradeSystem.VSCALE: VSCALE_GRADES,
}


def grade_system_for_climb_type(climb_type: str | None) -> GradeSystem:
    """Boulders are graded on the V-Scale; everything else defaults to YDS."""
    if climb_type and climb_type.strip().lower() == "boulder":
        return GradeSystem.VSCALE
    return GradeSystem.YDS


def grades_for_system(system: GradeSystem) -> tuple[str, ...]:
    """Ordered grade list for a system; unknown systems fall back to YDS."""
    return _GRADE_LISTS.get(system, YDS_GRADES)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

_BARE_NUMBER_RE = re.compile(r"^[3-9]\+?$")
_LETTER_UPPER_RE = re.compile(r"^[3-9][ABC]\+?$")
_LETTER_LOWER_RE = re.compile(r"^[3-9][abc]\+?$")


def detect_grade_system(grade: str | None, is_boulder: bool | None = None) -> GradeSystem | None:
    """Guess the grading system of a grade string, or None when unsure.

    Cascade:
      1. "5." prefix                   → YDS
      2. "V"/"v" prefix                → V-Scale
      3. digit + a/b/c (+)             → French if lowercase, Font if uppercase,
                                         unless a boulder/route hint overrides
      4. bare digit (+)                → needs the hint; otherwise None
    """
    if grade is None:
        return None
    g = grade.strip()
    if not g:
        return None

    if g.startswith("5."):
        return GradeSystem.YDS
    if g[0] in "Vv":
        return GradeSystem.VSCALE

    if _LETTER_LOWER_RE.match(g) or _LETTER_UPPER_RE.match(g):
        if is_boulder is True:
            return GradeSystem.FONT
        if is_boulder is False:
            return GradeSystem.FRENCH
        return GradeSystem.FRENCH if _LETTER_LOWER_RE.match(g) else GradeSystem.FONT

    if _BARE_NUMBER_RE.match(g):
        if is_boulder is True:
            return GradeSystem.FONT
        if is_boulder is False:
            return GradeSystem.FRENCH
        return None

    return None


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

def default_target_system(is_boulder: bool = False) -> GradeSystem:
    return GradeSystem.VSCALE if is_boulder else GradeSystem.YDS


def normalize_grade(
    grade: str,
    original_system: GradeSystem | None = None,
    target_system: GradeSystem | None = None,
    is_boulder: bool = False,
) -> str:
    """Convert a grade to target_system, or return it unchanged.

    - original_system is detected when omitted (using is_boulder as a hint);
      an undetectable grade is returned unchanged.
    - target_system defaults to YDS for routes and V-Scale for boulders.
    - original == target is the identity.
    - Tokens missing from the lookup table are returned unchanged.
    """
    if original_system is not None and original_system == target_system:
        return grade
    if grade is None or not grade.strip():
        return grade

    source = original_system or detect_grade_system(grade, is_boulder)
    target = target_system or default_target_system(is_boulder)

    if source is None or source == target:
        return grade

    conversion = _CONVERSIONS.get((source, target))
    if conversion is None:
        return grade
    table, key_fn = conversion
    return table.get(key_fn(grade.strip()), grade)
