"""climb_etl.mapping

Column mapper: source header/key → canonical field.

Responsibilities:
  - Apply a template's declared mapping using normalized header comparison
  - Guess a mapping heuristically for generic files (synonyms, then
    substring containment against the canonical field names)
  - Track user overrides across template changes (ColumnMapping)
  - Load override files from YAML

Usage:
    from climb_etl.mapping import guess_mapping

    guess_mapping(["Climb Name", "Grade"])
    # {"Climb Name": "name", "Grade": "grade"}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from climb_etl.normalize import normalize_header_key
from climb_etl.schema import CANONICAL_FIELDS
from climb_etl.templates import ImportMappingTemplate

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Synonym table (normalized keys)
# ---------------------------------------------------------------------------

FIELD_SYNONYMS: dict[str, frozenset[str]] = {
    "name": frozenset({
        "name", "title", "route", "climb", "problem", "boulder",
        "routename", "routetitle", "climbname", "climbtitle",
        "problemname", "bouldername",
    }),
    "grade": frozenset({
        "grade", "routegrade", "climbgrade", "difficulty", "yourrating",
    }),
    "type": frozenset({
        "type", "climbtype", "routetype", "styletype", "style",
        "discipline", "category", "routestyle",
    }),
    "send_type": frozenset({
        "sendtype", "ticktype", "ascenttype", "leadstyle", "tickstyle",
        "status", "result",
    }),
    "date": frozenset({
        "date", "climbdate", "senddate", "tickdate", "logdate", "ascentdate",
        "when", "logged", "datelogged",
    }),
    "location": frozenset({
        "location", "climblocation", "area", "crag", "cragname", "sector",
        "wall", "venue", "site", "where", "place", "climbingarea",
        "climbingcrag",
    }),
    "attempts": frozenset({
        "attempts", "numattempts", "numberattempts", "numberofattempts",
        "tries", "goes",
    }),
    "rating": frozenset({
        "rating", "starrating", "qualityrating", "stars", "quality", "score",
    }),
    "notes": frozenset({
        "notes", "climbnotes", "comment", "comments", "description", "memo",
        "beta", "feedback",
    }),
    "duration": frozenset({
        "duration", "climbduration", "climbtime", "climblength",
        "timeduration", "timeonwall",
    }),
    "elevation_gain": frozenset({
        "elevationgain", "elevation", "height", "vertical",
    }),
    "color": frozenset({
        "color", "colour", "routecolor", "routecolour", "holdcolor",
        "holdcolour", "tape",
    }),
    "gym": frozenset({
        "gym", "gymname", "climbinggym", "center", "climbingcenter",
        "facility",
    }),
    "country": frozenset({"country", "nation", "region"}),
    "skills": frozenset({
        "skill", "skills", "techniques", "styletag", "styletags",
    }),
    "stiffness": frozenset({
        "stiffness", "gradestiffness", "feel", "feels", "felt", "sandbag",
        "sandbagged",
    }),
    "physical_skills": frozenset({
        "physicalskill", "physicalskills", "strength", "power",
    }),
    "technical_skills": frozenset({
        "technicalskill", "technicalskills", "technique", "footwork",
    }),
}

_FIELD_KEYS: tuple[tuple[str, str], ...] = tuple(
    (f, normalize_header_key(f)) for f in CANONICAL_FIELDS
)

# Shorter keys ("a", "no") would contain-match almost anything.
_MIN_CONTAINMENT_LEN = 3


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class MappingFileError(ValueError):
    """Raised when a YAML mapping-override file fails validation."""


# ---------------------------------------------------------------------------
# Heuristic guessing
# ---------------------------------------------------------------------------

def _direct_match(norm: str) -> str | None:
    for field_name, field_norm in _FIELD_KEYS:
        if norm == field_norm:
            return field_name
    for field_name in CANONICAL_FIELDS:
        if norm in FIELD_SYNONYMS[field_name]:
            return field_name
    return None


def _contained_match(norm: str, claimed: set[str]) -> str | None:
    for field_name, field_norm in _FIELD_KEYS:
        if field_name in claimed:
            continue
        if field_norm in norm:
            return field_name
        if len(norm) >= _MIN_CONTAINMENT_LEN and norm in field_norm:
            return field_name
    return None


def guess_field(key: str) -> str | None:
    """Guess the canonical field for one source key, or None.

    Order: exact canonical name, synonym table, then substring containment
    in either direction over the canonical fields in display order.
    """
    norm = normalize_header_key(key)
    if not norm:
        return None
    return _direct_match(norm) or _contained_match(norm, set())


def guess_generic_mapping(keys: list[str]) -> dict[str, str | None]:
    """Guess a mapping for a whole header row.

    Exact and synonym matches are resolved for every key first.  Containment
    only fills fields nothing else has claimed, one key per field, so
    "grade_system" cannot shadow a "climb_grade" column.
    """
    norms = {k: normalize_header_key(k) for k in keys}
    mapping: dict[str, str | None] = {
        k: _direct_match(norm) if norm else None for k, norm in norms.items()
    }
    claimed = {f for f in mapping.values() if f}
    for k, norm in norms.items():
        if mapping[k] is not None or not norm:
            continue
        field_name = _contained_match(norm, claimed)
        if field_name:
            mapping[k] = field_name
            claimed.add(field_name)
    return mapping


def template_mapping(
    keys: list[str],
    template: ImportMappingTemplate,
) -> dict[str, str | None]:
    """Apply a template's declared mapping by normalized header comparison."""
    by_norm = {
        normalize_header_key(header): field_name
        for header, field_name in template.header_to_field.items()
    }
    return {k: by_norm.get(normalize_header_key(k)) for k in keys}


def guess_mapping(
    keys: list[str],
    template: ImportMappingTemplate | None = None,
    is_json: bool = False,
) -> dict[str, str | None]:
    """Produce a mapping for the parsed keys.

    - No template, or a generic template matching the file kind → heuristic.
    - A specific template matching the file kind → its declared mapping.
    - A template whose JSON/CSV kind differs from the file → every key
      unmapped; the caller must pick a compatible template or re-map.
    """
    if template is None:
        return guess_generic_mapping(keys)
    if template.is_json != is_json:
        return {k: None for k in keys}
    if template.is_generic:
        return guess_generic_mapping(keys)
    return template_mapping(keys, template)


# ---------------------------------------------------------------------------
# ColumnMapping (guess + user overrides)
# ---------------------------------------------------------------------------

class ColumnMapping:
    """Current mapping for one parsed file: guessed entries plus overrides.

    Overrides survive a template change as long as the new template reads
    the same kind of file; switching to an incompatible template resets the
    mapping to empty until reguess() is called.
    """

    def __init__(
        self,
        keys: list[str],
        is_json: bool = False,
        template: ImportMappingTemplate | None = None,
    ) -> None:
        self.keys = list(keys)
        self.is_json = is_json
        self.template = template
        self._guessed = guess_mapping(self.keys, template, is_json)
        self._overrides: dict[str, str | None] = {}

    def override(self, key: str, field_name: str | None) -> None:
        if field_name is not None and field_name not in CANONICAL_FIELDS:
            raise ValueError(f"Unknown canonical field {field_name!r}.")
        if key not in self.keys:
            raise KeyError(key)
        self._overrides[key] = field_name

    def select_template(self, template: ImportMappingTemplate | None) -> None:
        self.template = template
        if template is not None and template.is_json != self.is_json:
            self._overrides.clear()
            self._guessed = {k: None for k in self.keys}
            return
        self._guessed = guess_mapping(self.keys, template, self.is_json)

    def reguess(self) -> None:
        """Recompute the guessed part; overrides are kept."""
        self._guessed = guess_mapping(self.keys, self.template, self.is_json)

    @property
    def overrides(self) -> dict[str, str | None]:
        return dict(self._overrides)

    def resolved(self) -> dict[str, str | None]:
        out = dict(self._guessed)
        out.update(self._overrides)
        return out

    def unmapped_required(self, required: tuple[str, ...]) -> list[str]:
        """Required canonical fields no source column is mapped to."""
        mapped = {f for f in self.resolved().values() if f}
        return [f for f in required if f not in mapped]


# ---------------------------------------------------------------------------
# YAML override files
# ---------------------------------------------------------------------------

def validate_mapping_overrides(data: Any) -> dict[str, str | None]:
    """Raise MappingFileError unless data is a header → field|null mapping."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MappingFileError("Mapping file root must be a mapping of header → field.")
    out: dict[str, str | None] = {}
    for header, field_name in data.items():
        if not isinstance(header, str) or not header.strip():
            raise MappingFileError(f"Invalid header key {header!r}.")
        if field_name in (None, ""):
            out[header] = None
            continue
        if field_name not in CANONICAL_FIELDS:
            raise MappingFileError(
                f"Header '{header}' maps to unknown field '{field_name}'. "
                f"Must be one of {list(CANONICAL_FIELDS)}."
            )
        out[header] = field_name
    return out


def load_mapping_overrides(yaml_path: Path) -> dict[str, str | None]:
    """Load and validate a YAML override file.

    Raises:
        MappingFileError: If the file content is not a valid override mapping.
        FileNotFoundError: If the YAML file does not exist.
    """
    raw = yaml_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise MappingFileError(f"Mapping file is not valid YAML: {exc}") from exc
    return validate_mapping_overrides(data)


def apply_overrides(
    mapping: ColumnMapping,
    overrides: dict[str, str | None],
) -> list[str]:
    """Apply overrides whose header is present in the file.

    Returns the override headers that matched no source column.
    """
    by_norm = {normalize_header_key(k): k for k in mapping.keys}
    unmatched: list[str] = []
    for header, field_name in overrides.items():
        key = header if header in mapping.keys else by_norm.get(normalize_header_key(header))
        if key is None:
            log.warning("mapping_override_unmatched header=%r", header)
            unmatched.append(header)
            continue
        mapping.override(key, field_name)
    return unmatched
