"""climb_etl.templates

Source template registry.

Each template describes one external platform's export schema:
  - source_type            stable identifier used by the CLI and callers
  - header_to_field        default source header → canonical field mapping
  - transform              optional per-source semantics (style strings,
                           composite locations, notes enrichment)
  - is_json                whether the source exports JSON rather than CSV
  - source_grade_system    grading system the source is assumed to use
  - default_climb_type     'route' or 'boulder' hint for grade handling

A transform receives one raw row and the current column mapping and returns
a partial canonical record (dict of canonical field → value).  Every
transform starts from map_generic_fields() so fields it does not handle
explicitly still follow the mapping.

Free-text style columns are classified with ordered (keywords, value) rules
evaluated top to bottom; the first rule with a keyword contained in the
lower-cased text wins.  Unmatched text leaves the field unset.  This is a
best-effort heuristic, not an exhaustive parser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable

from climb_etl.grades import GradeSystem, detect_grade_system, normalize_grade
from climb_etl.normalize import (
    as_text,
    is_blank,
    is_number,
    normalize_header_key,
    parse_int,
    parse_number,
    split_list,
)
from climb_etl.schema import (
    CANONICAL_FIELDS,
    CsvClimb,
    ClimbType,
    LIST_FIELDS,
    NUMERIC_FIELDS,
    SendType,
)

Mapping = dict[str, "str | None"]
Partial = dict[str, Any]
Rule = tuple[tuple[str, ...], str]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class UnknownTemplateError(KeyError):
    """Raised when a source_type is not in the registry."""


# ---------------------------------------------------------------------------
# Template dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImportMappingTemplate:
    source_type: str
    name: str
    header_to_field: dict[str, str | None] = field(default_factory=dict)
    transform: Callable[[dict[str, Any], Mapping], Partial] | None = None
    is_json: bool = False
    source_grade_system: GradeSystem | None = None
    default_climb_type: str | None = None

    @property
    def is_generic(self) -> bool:
        """Generic templates carry no header mapping; columns are guessed."""
        return not self.header_to_field


# ---------------------------------------------------------------------------
# Generic field coercion
# ---------------------------------------------------------------------------

def _enum_token(value: Any) -> str:
    return re.sub(r"[\s-]+", "_", str(value).strip().lower())


def set_field(partial: Partial, field_name: str, raw: Any) -> None:
    """Coerce one raw value into partial[field_name].

    Blank values are ignored.  Numeric fields use the tolerant parser and are
    dropped when nothing numeric is found; a non-numeric stiffness is kept as
    free text in stiffness_note.
    """
    if is_blank(raw):
        return
    if field_name in NUMERIC_FIELDS:
        number = parse_number(raw)
        if number is not None:
            partial[field_name] = number
        elif field_name == "stiffness":
            partial["stiffness_note"] = as_text(raw)
    elif field_name == "type" or field_name == "send_type":
        partial[field_name] = _enum_token(raw)
    elif field_name in LIST_FIELDS:
        items = split_list(raw)
        if items:
            partial[field_name] = items
    elif field_name == "duration":
        # JSON numbers are seconds already; anything else stays text.
        partial["duration"] = raw if is_number(raw) else as_text(raw)
    elif field_name in CANONICAL_FIELDS:
        partial[field_name] = as_text(raw)


def map_generic_fields(raw_row: dict[str, Any], mappings: Mapping) -> Partial:
    """Apply a column mapping to one raw row.

    When several source keys map to one field, the first non-blank value in
    mapping order is kept.
    """
    partial: Partial = {}
    for source_key, field_name in mappings.items():
        if not field_name or source_key not in raw_row or field_name in partial:
            continue
        set_field(partial, field_name, raw_row[source_key])
    return partial


# ---------------------------------------------------------------------------
# Free-text classification
# ---------------------------------------------------------------------------

def classify(text: Any, rules: tuple[Rule, ...]) -> str | None:
    """Return the value of the first rule whose keyword appears in text."""
    v = as_text(text)
    if v is None:
        return None
    lowered = v.lower()
    for keywords, value in rules:
        if any(k in lowered for k in keywords):
            return value
    return None


def _get(raw_row: dict[str, Any], header: str) -> Any:
    """Header lookup using the same normalized comparison as the mapper."""
    if header in raw_row:
        return raw_row[header]
    wanted = normalize_header_key(header)
    for k, v in raw_row.items():
        if normalize_header_key(k) == wanted:
            return v
    return None


def _prefix_note(partial: Partial, prefix: str) -> None:
    existing = partial.get("notes")
    partial["notes"] = f"{prefix} {existing}" if existing else prefix


# ---------------------------------------------------------------------------
# Mountain Project
# ---------------------------------------------------------------------------

MOUNTAIN_PROJECT_STYLE_RULES: tuple[Rule, ...] = (
    (("sport",), ClimbType.SPORT.value),
    (("trad",), ClimbType.TRAD.value),
    (("boulder",), ClimbType.BOULDER.value),
    (("tr", "top rope"), ClimbType.TOP_ROPE.value),
    (("alpine",), ClimbType.ALPINE.value),
)

MOUNTAIN_PROJECT_LEAD_STYLE_RULES: tuple[Rule, ...] = (
    (("onsight",), SendType.ONSIGHT.value),
    (("flash",), SendType.FLASH.value),
    (("redpoint", "send"), SendType.SEND.value),
    (("pinkpoint",), SendType.SEND.value),
    (("fell", "hung", "attempt"), SendType.ATTEMPT.value),
    (("project", "working"), SendType.PROJECT.value),
)

_ATTEMPTS_PHRASE_RE = re.compile(r"(\d+)\s*(try|tries|go|goes|attempts)")


def _mountain_project_attempts(
    partial: Partial,
    attempts_raw: str | None,
    lead_style: str | None,
) -> None:
    source = attempts_raw or lead_style
    if not source:
        return
    m = _ATTEMPTS_PHRASE_RE.search(source.lower())
    if m:
        partial["attempts"] = int(m.group(1))
        return
    n = parse_int(source)
    if n is None or "attempts" in partial:
        return
    bare_number = bool(attempts_raw) or (lead_style is not None and not re.search(r"[a-zA-Z]", lead_style))
    if 0 < n < 1000 and bare_number:
        partial["attempts"] = n


def transform_mountain_project(raw_row: dict[str, Any], mappings: Mapping) -> Partial:
    partial = map_generic_fields(raw_row, mappings)

    climb_type = classify(_get(raw_row, "Style"), MOUNTAIN_PROJECT_STYLE_RULES)
    if climb_type:
        partial["type"] = climb_type

    lead_style = as_text(_get(raw_row, "Lead Style"))
    send_type = classify(lead_style, MOUNTAIN_PROJECT_LEAD_STYLE_RULES)
    if send_type:
        partial["send_type"] = send_type

    _mountain_project_attempts(partial, as_text(_get(raw_row, "Attempts")), lead_style)

    pitches = parse_int(_get(raw_row, "Pitches"))
    if pitches is not None and pitches > 1:
        _prefix_note(partial, f"Pitches: {pitches}.")
    return partial


# ---------------------------------------------------------------------------
# 8a.nu
# ---------------------------------------------------------------------------

EIGHT_A_TYPE_RULES: tuple[Rule, ...] = (
    (("sport climbing",), ClimbType.SPORT.value),
    (("boulder",), ClimbType.BOULDER.value),
    (("trad",), ClimbType.TRAD.value),
    (("top rope", "toprope"), ClimbType.TOP_ROPE.value),
    (("alpine",), ClimbType.ALPINE.value),
)

EIGHT_A_ASCENT_RULES: tuple[Rule, ...] = (
    (("onsight",), SendType.ONSIGHT.value),
    (("flash",), SendType.FLASH.value),
    (("redpoint", "send"), SendType.SEND.value),
    (("toprope", "top rope"), SendType.ATTEMPT.value),
    (("attempt",), SendType.ATTEMPT.value),
    (("project", "working"), SendType.PROJECT.value),
)


def transform_eight_a_nu(raw_row: dict[str, Any], mappings: Mapping) -> Partial:
    partial = map_generic_fields(raw_row, mappings)

    climb_type = classify(_get(raw_row, "Type"), EIGHT_A_TYPE_RULES)
    if climb_type:
        partial["type"] = climb_type

    send_type = classify(_get(raw_row, "Ascent type"), EIGHT_A_ASCENT_RULES)
    if send_type:
        partial["send_type"] = send_type

    recommend = as_text(_get(raw_row, "Recommend"))
    if recommend and recommend.lower() == "yes":
        _prefix_note(partial, "Recommended.")
    return partial


# ---------------------------------------------------------------------------
# theCrag
# ---------------------------------------------------------------------------

THE_CRAG_ROUTE_STYLE_RULES: tuple[Rule, ...] = (
    (("sport",), ClimbType.SPORT.value),
    (("trad",), ClimbType.TRAD.value),
    (("boulder",), ClimbType.BOULDER.value),
    (("top rope",), ClimbType.TOP_ROPE.value),
    (("alpine",), ClimbType.ALPINE.value),
)

# Top rope with rests is an attempt, so it precedes the send rules.
THE_CRAG_TICK_RULES: tuple[Rule, ...] = (
    (("onsight",), SendType.ONSIGHT.value),
    (("flash",), SendType.FLASH.value),
    (("top rope with rests",), SendType.ATTEMPT.value),
    (("redpoint", "clean"), SendType.SEND.value),
    (("attempt", "working"), SendType.ATTEMPT.value),
    (("project",), SendType.PROJECT.value),
)


def transform_the_crag(raw_row: dict[str, Any], mappings: Mapping) -> Partial:
    partial = map_generic_fields(raw_row, mappings)

    if not partial.get("grade"):
        guidebook = as_text(_get(raw_row, "Guidebook Grade"))
        if guidebook:
            partial["grade"] = guidebook

    logged = partial.get("date")
    if logged:
        partial["date"] = re.split(r"[ T]", logged, maxsplit=1)[0]

    climb_type = classify(_get(raw_row, "Route Style"), THE_CRAG_ROUTE_STYLE_RULES)
    if climb_type:
        partial["type"] = climb_type

    send_type = classify(_get(raw_row, "Tick Type"), THE_CRAG_TICK_RULES)
    if send_type:
        partial["send_type"] = send_type

    pitches = parse_int(_get(raw_row, "Pitches Climbed"))
    if pitches is not None and pitches > 1:
        _prefix_note(partial, f"Pitches: {pitches}.")
    return partial


# ---------------------------------------------------------------------------
# Vertical Life
# ---------------------------------------------------------------------------

VERTICAL_LIFE_CLIMB_TYPE_RULES: tuple[Rule, ...] = (
    (("sport",), ClimbType.SPORT.value),
    (("boulder",), ClimbType.BOULDER.value),
    (("trad",), ClimbType.TRAD.value),
    (("toprope", "top rope"), ClimbType.TOP_ROPE.value),
    (("alpine",), ClimbType.ALPINE.value),
)

VERTICAL_LIFE_ASCENT_RULES: tuple[Rule, ...] = (
    (("onsight",), SendType.ONSIGHT.value),
    (("flash",), SendType.FLASH.value),
    (("redpoint", "send", "lead"), SendType.SEND.value),
    (("toprope", "top rope"), SendType.SEND.value),
    (("attempt",), SendType.ATTEMPT.value),
    (("project", "working"), SendType.PROJECT.value),
)

GYM_KEYWORDS: tuple[str, ...] = ("gym", "climbing hall", "boulderhalle", "kletterzentrum")


def transform_vertical_life(raw_row: dict[str, Any], mappings: Mapping) -> Partial:
    partial = map_generic_fields(raw_row, mappings)

    crag = as_text(_get(raw_row, "Crag"))
    sector = as_text(_get(raw_row, "Sector"))
    if crag and sector:
        partial["location"] = f"{crag} - {sector}"
    elif crag:
        partial["location"] = crag

    style = _get(raw_row, "Climb Type")
    if is_blank(style):
        style = _get(raw_row, "Style")
    climb_type = classify(style, VERTICAL_LIFE_CLIMB_TYPE_RULES)
    if climb_type:
        partial["type"] = climb_type

    send_type = classify(_get(raw_row, "Ascent Type"), VERTICAL_LIFE_ASCENT_RULES)
    if send_type:
        partial["send_type"] = send_type

    location = (partial.get("location") or "").lower()
    if any(k in location for k in GYM_KEYWORDS):
        partial["gym"] = partial["location"]
    return partial


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

GENERIC_CSV_TEMPLATE = ImportMappingTemplate(
    source_type="generic",
    name="Generic CSV",
)

MOUNTAIN_PROJECT_TEMPLATE = ImportMappingTemplate(
    source_type="mountainProject",
    name="Mountain Project",
    header_to_field={
        "Route": "name",
        "Your Rating": "grade",
        "Date": "date",
        "Location": "location",
        "Description": "notes",
        "Pitches": None,
        "Style": None,
        "Lead Style": None,
        "Attempts": "attempts",
    },
    transform=transform_mountain_project,
    source_grade_system=GradeSystem.YDS,
    default_climb_type="route",
)

EIGHT_A_NU_TEMPLATE = ImportMappingTemplate(
    source_type="eightANu",
    name="8a.nu",
    header_to_field={
        "Name": "name",
        "Grade": "grade",
        "Date": "date",
        "Comment": "notes",
        "Crag": "location",
        "Country": "country",
        "Rating": "rating",
        "Attempts": "attempts",
        "Type": None,
        "Ascent type": None,
    },
    transform=transform_eight_a_nu,
    source_grade_system=GradeSystem.FRENCH,
    default_climb_type="route",
)

THE_CRAG_TEMPLATE = ImportMappingTemplate(
    source_type="theCrag",
    name="theCrag.com",
    header_to_field={
        "Route Name": "name",
        "Your Grade": "grade",
        "Date Logged": "date",
        "Comment": "notes",
        "Crag Name": "location",
        "Country": "country",
        "Your Rating": "rating",
        "Attempts": "attempts",
        "Tick Type": None,
        "Route Style": None,
    },
    transform=transform_the_crag,
    source_grade_system=GradeSystem.AUSTRALIAN,
    default_climb_type="route",
)

VERTICAL_LIFE_TEMPLATE = ImportMappingTemplate(
    source_type="verticalLife",
    name="Vertical Life",
    header_to_field={
        "Date": "date",
        "Route Name": "name",
        "Grade": "grade",
        "Ascent Type": None,
        "Rating": "rating",
        "Comment": "notes",
        "Crag": "location",
        "Sector": None,
        "Country": "country",
        "Attempts": "attempts",
        "Climb Type": None,
    },
    transform=transform_vertical_life,
    source_grade_system=GradeSystem.FRENCH,
    default_climb_type="route",
)

GENERIC_JSON_TEMPLATE = ImportMappingTemplate(
    source_type="genericJson",
    name="Generic JSON",
    is_json=True,
)

ALL_IMPORT_TEMPLATES: tuple[ImportMappingTemplate, ...] = (
    GENERIC_CSV_TEMPLATE,
    MOUNTAIN_PROJECT_TEMPLATE,
    EIGHT_A_NU_TEMPLATE,
    THE_CRAG_TEMPLATE,
    VERTICAL_LIFE_TEMPLATE,
    GENERIC_JSON_TEMPLATE,
)

SOURCE_TYPES: tuple[str, ...] = tuple(t.source_type for t in ALL_IMPORT_TEMPLATES)


def get_template(source_type: str) -> ImportMappingTemplate:
    """Return the template registered under source_type."""
    for template in ALL_IMPORT_TEMPLATES:
        if template.source_type == source_type:
            return template
    raise UnknownTemplateError(
        f"Unknown source_type {source_type!r}. Must be one of {list(SOURCE_TYPES)}."
    )


# ---------------------------------------------------------------------------
# Record construction
# ---------------------------------------------------------------------------

def build_partial(
    raw_row: dict[str, Any],
    mappings: Mapping,
    template: ImportMappingTemplate | None = None,
) -> Partial:
    """Template transform when there is one, otherwise the generic mapping pass."""
    if template is not None and template.transform is not None:
        return template.transform(raw_row, mappings)
    return map_generic_fields(raw_row, mappings)


def _convert_grade(
    partial: Partial,
    template: ImportMappingTemplate | None,
    target_system: GradeSystem,
) -> None:
    grade = partial.get("grade")
    if not grade:
        return
    climb_type = partial.get("type")
    if climb_type:
        is_boulder = climb_type == ClimbType.BOULDER.value
    else:
        is_boulder = template is not None and template.default_climb_type == "boulder"
    source = detect_grade_system(grade, is_boulder if climb_type else None)
    if source is None and template is not None:
        source = template.source_grade_system
    if source is None:
        return
    partial["grade"] = normalize_grade(grade, source, target_system, is_boulder)


def build_climb_record(
    raw_row: dict[str, Any],
    mappings: Mapping,
    template: ImportMappingTemplate | None = None,
    target_grade_system: GradeSystem | None = None,
) -> CsvClimb:
    """Turn one raw row into a canonical record.

    Grade conversion only happens when target_grade_system is given.
    """
    partial = build_partial(raw_row, mappings, template)
    if target_grade_system is not None:
        _convert_grade(partial, template, target_grade_system)
    return CsvClimb.from_partial(partial)
