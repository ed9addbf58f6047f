"""climb_etl.schema

The canonical climb record every import pathway converges to, plus the
closed enumerations and field groups the rest of the pipeline keys off.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any


class ClimbType(str, Enum):
    SPORT = "sport"
    TRAD = "trad"
    BOULDER = "boulder"
    TOP_ROPE = "top_rope"
    ALPINE = "alpine"


class SendType(str, Enum):
    SEND = "send"
    ATTEMPT = "attempt"
    FLASH = "flash"
    ONSIGHT = "onsight"
    PROJECT = "project"


CLIMB_TYPE_VALUES: tuple[str, ...] = tuple(t.value for t in ClimbType)
SEND_TYPE_VALUES: tuple[str, ...] = tuple(s.value for s in SendType)


# ---------------------------------------------------------------------------
# Field groups
# ---------------------------------------------------------------------------

REQUIRED_FIELDS: tuple[str, ...] = (
    "name", "grade", "type", "send_type", "date", "location",
)

# Ordered as shown to users when mapping columns.
CANONICAL_FIELDS: tuple[str, ...] = REQUIRED_FIELDS + (
    "attempts", "rating", "notes", "duration", "elevation_gain",
    "color", "gym", "country", "skills", "stiffness",
    "physical_skills", "technical_skills",
)

NUMERIC_FIELDS = frozenset({"attempts", "rating", "elevation_gain", "stiffness"})
LIST_FIELDS = frozenset({"skills", "physical_skills", "technical_skills"})

# Discriminating fields of the dedup key (user id is supplied separately).
DEDUP_KEY_FIELDS: tuple[str, ...] = ("name", "grade", "date", "location")


# ---------------------------------------------------------------------------
# CsvClimb
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CsvClimb:
    """Canonical climb record.

    Values are kept as the import produced them; the validator, not the
    constructor, decides whether they are acceptable.  Required text fields
    default to "" so a record missing them still exists to be rejected.
    """

    name: str = ""
    grade: str = ""
    type: str = ""
    send_type: str = ""
    date: str = ""
    location: str = ""
    attempts: Any = None
    rating: Any = None
    notes: str | None = None
    duration: Any = None
    elevation_gain: Any = None
    color: str | None = None
    gym: str | None = None
    country: str | None = None
    skills: list[str] | None = None
    stiffness: Any = None
    physical_skills: list[str] | None = None
    technical_skills: list[str] | None = None
    # Free-text stiffness ("Hard for the grade"); never validated as a number.
    stiffness_note: str | None = None

    @classmethod
    def from_partial(cls, partial: dict[str, Any]) -> CsvClimb:
        """Build a record from a partial dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in partial.items() if k in known and v is not None}
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
