"""Unit tests for climb_etl.mapping."""

import pytest

from climb_etl.mapping import (
    ColumnMapping,
    MappingFileError,
    apply_overrides,
    guess_field,
    guess_mapping,
    load_mapping_overrides,
    validate_mapping_overrides,
)
from climb_etl.schema import REQUIRED_FIELDS
from climb_etl.templates import (
    GENERIC_CSV_TEMPLATE,
    GENERIC_JSON_TEMPLATE,
    MOUNTAIN_PROJECT_TEMPLATE,
    THE_CRAG_TEMPLATE,
)


# ---------------------------------------------------------------------------
# guess_field / guess_mapping (heuristic)
# ---------------------------------------------------------------------------

class TestGuessField:
    @pytest.mark.parametrize("key,expected", [
        ("Climb Name", "name"),
        ("route_name", "name"),
        ("Grade", "grade"),
        ("Difficulty", "grade"),
        ("Tick Type", "send_type"),
        ("Send Type", "send_type"),
        ("Climb Type", "type"),
        ("Crag", "location"),
        ("Tries", "attempts"),
        ("Stars", "rating"),
        ("Rating", "rating"),
        ("Comments", "notes"),
        ("Time on Wall", "duration"),
        ("Hold Colour", "color"),
        ("Physical Skills", "physical_skills"),
        ("Technique", "technical_skills"),
        ("Sandbagged", "stiffness"),
    ])
    def test_synonyms(self, key, expected):
        assert guess_field(key) == expected

    def test_substring_containment(self):
        assert guess_field("Route Grade (YDS)") == "grade"
        assert guess_field("Elev") == "elevation_gain"

    def test_unknown(self):
        assert guess_field("id") is None
        assert guess_field("") is None


class TestGuessMapping:
    def test_determinism(self):
        first = guess_mapping(["Climb Name", "Grade"])
        again = guess_mapping(["Grade", "Climb Name"])
        assert first == {"Climb Name": "name", "Grade": "grade"}
        assert again == first
        assert guess_mapping(["Climb Name", "Grade"]) == first

    def test_template_mapping_normalized(self):
        m = guess_mapping(["route", "Your_Rating", "Lead Style"], MOUNTAIN_PROJECT_TEMPLATE)
        assert m == {"route": "name", "Your_Rating": "grade", "Lead Style": None}

    def test_template_ignores_unknown_headers(self):
        m = guess_mapping(["Route Name", "Mood"], THE_CRAG_TEMPLATE)
        assert m == {"Route Name": "name", "Mood": None}

    def test_generic_template_guesses(self):
        m = guess_mapping(["Climb Name"], GENERIC_CSV_TEMPLATE)
        assert m == {"Climb Name": "name"}

    def test_incompatible_template_unmaps_everything(self):
        m = guess_mapping(["Climb Name", "Grade"], GENERIC_JSON_TEMPLATE, is_json=False)
        assert m == {"Climb Name": None, "Grade": None}

    def test_containment_does_not_shadow_direct_match(self):
        m = guess_mapping(["climb_name", "climb_grade", "grade_system", "date"])
        assert m == {
            "climb_name": "name",
            "climb_grade": "grade",
            "grade_system": None,
            "date": "date",
        }

    def test_containment_claims_each_field_once(self):
        m = guess_mapping(["Grade (YDS)", "Grade (Font)"])
        assert m == {"Grade (YDS)": "grade", "Grade (Font)": None}


# ---------------------------------------------------------------------------
# ColumnMapping
# ---------------------------------------------------------------------------

class TestColumnMapping:
    def test_override_wins(self):
        cm = ColumnMapping(["Route", "Notes"])
        cm.override("Notes", "location")
        assert cm.resolved()["Notes"] == "location"

    def test_override_rejects_unknown_field(self):
        cm = ColumnMapping(["Route"])
        with pytest.raises(ValueError):
            cm.override("Route", "route_name")

    def test_override_rejects_unknown_key(self):
        cm = ColumnMapping(["Route"])
        with pytest.raises(KeyError):
            cm.override("Nope", "name")

    def test_overrides_survive_compatible_template_change(self):
        cm = ColumnMapping(["Route", "Style"])
        cm.override("Style", "notes")
        cm.select_template(MOUNTAIN_PROJECT_TEMPLATE)
        assert cm.resolved() == {"Route": "name", "Style": "notes"}

    def test_incompatible_template_resets(self):
        cm = ColumnMapping(["Route", "Style"])
        cm.override("Style", "notes")
        cm.select_template(GENERIC_JSON_TEMPLATE)
        assert cm.resolved() == {"Route": None, "Style": None}
        assert cm.overrides == {}

    def test_reguess_after_reset(self):
        cm = ColumnMapping(["Route"])
        cm.select_template(GENERIC_JSON_TEMPLATE)
        cm.select_template(None)
        cm.reguess()
        assert cm.resolved() == {"Route": "name"}

    def test_unmapped_required(self):
        cm = ColumnMapping(["Route", "Grade"])
        missing = cm.unmapped_required(REQUIRED_FIELDS)
        assert "name" not in missing
        assert "location" in missing


# ---------------------------------------------------------------------------
# YAML override files
# ---------------------------------------------------------------------------

class TestMappingOverrides:
    def test_load(self, tmp_path):
        p = tmp_path / "map.yml"
        p.write_text("Spot: location\nIgnore me: null\nCrux: ''\n", encoding="utf-8")
        assert load_mapping_overrides(p) == {
            "Spot": "location", "Ignore me": None, "Crux": None,
        }

    def test_unknown_field_rejected(self, tmp_path):
        p = tmp_path / "map.yml"
        p.write_text("Spot: place\n", encoding="utf-8")
        with pytest.raises(MappingFileError, match="unknown field"):
            load_mapping_overrides(p)

    def test_root_must_be_mapping(self):
        with pytest.raises(MappingFileError):
            validate_mapping_overrides(["name"])

    def test_invalid_yaml(self, tmp_path):
        p = tmp_path / "map.yml"
        p.write_text("a: [unclosed\n", encoding="utf-8")
        with pytest.raises(MappingFileError):
            load_mapping_overrides(p)

    def test_empty_file_is_no_overrides(self, tmp_path):
        p = tmp_path / "map.yml"
        p.write_text("", encoding="utf-8")
        assert load_mapping_overrides(p) == {}

    def test_apply_matches_normalized_headers(self):
        cm = ColumnMapping(["Spot Name", "Grade"])
        unmatched = apply_overrides(cm, {"spot_name": "location", "Missing": "notes"})
        assert cm.resolved()["Spot Name"] == "location"
        assert unmatched == ["Missing"]
