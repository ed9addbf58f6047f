"""Unit tests for climb_etl.grades."""

import pytest

from climb_etl.grades import (
    FONT_TO_VSCALE,
    FRENCH_TO_YDS,
    VSCALE_TO_FONT,
    YDS_GRADES,
    YDS_TO_FRENCH,
    VSCALE_GRADES,
    GradeSystem,
    detect_grade_system,
    grade_system_for_climb_type,
    grades_for_system,
    normalize_grade,
)


# ---------------------------------------------------------------------------
# detect_grade_system
# ---------------------------------------------------------------------------

class TestDetectGradeSystem:
    def test_yds_prefix(self):
        assert detect_grade_system("5.10a") == GradeSystem.YDS

    def test_v_prefix_either_case(self):
        assert detect_grade_system("V5") == GradeSystem.VSCALE
        assert detect_grade_system("v5") == GradeSystem.VSCALE

    def test_lowercase_letter_is_french(self):
        assert detect_grade_system("6a+") == GradeSystem.FRENCH

    def test_uppercase_letter_is_font(self):
        assert detect_grade_system("7A") == GradeSystem.FONT

    def test_hint_overrides_case(self):
        assert detect_grade_system("6a", is_boulder=True) == GradeSystem.FONT
        assert detect_grade_system("6A", is_boulder=False) == GradeSystem.FRENCH

    def test_bare_digit_needs_hint(self):
        assert detect_grade_system("5+") is None
        assert detect_grade_system("5+", is_boulder=True) == GradeSystem.FONT
        assert detect_grade_system("5+", is_boulder=False) == GradeSystem.FRENCH

    def test_unknown(self):
        assert detect_grade_system("E5 6b") is None
        assert detect_grade_system("") is None
        assert detect_grade_system(None) is None


# ---------------------------------------------------------------------------
# normalize_grade
# ---------------------------------------------------------------------------

ROUTE_PAIRS = list(YDS_TO_FRENCH.items())
BOULDER_PAIRS = list(VSCALE_TO_FONT.items())


class TestNormalizeGrade:
    @pytest.mark.parametrize("system", list(GradeSystem))
    @pytest.mark.parametrize("grade", ["5.10a", "V5", "6a+", "7A", "junk", ""])
    def test_identity(self, grade, system):
        assert normalize_grade(grade, system, system) == grade

    def test_yds_to_french(self):
        assert normalize_grade("5.10a", GradeSystem.YDS, GradeSystem.FRENCH) == "6a"

    def test_vscale_to_font_detected(self):
        assert normalize_grade("V5", None, GradeSystem.FONT, is_boulder=True) == "6C"

    def test_lowercase_v_grade_is_uppercased_for_lookup(self):
        assert normalize_grade("v5", GradeSystem.VSCALE, GradeSystem.FONT) == "6C"

    def test_missing_letter_suffix_unchanged(self):
        assert normalize_grade("5.12", GradeSystem.YDS, GradeSystem.FRENCH) == "5.12"

    def test_unmapped_keeps_original_case(self):
        assert normalize_grade("v99", GradeSystem.VSCALE, GradeSystem.FONT) == "v99"

    def test_cross_category_is_noop(self):
        assert normalize_grade("5.10a", GradeSystem.YDS, GradeSystem.FONT) == "5.10a"

    def test_unimplemented_system_is_noop(self):
        assert normalize_grade("VI+", GradeSystem.UIAA, GradeSystem.YDS) == "VI+"

    def test_undetectable_is_noop(self):
        assert normalize_grade("E5 6b", None, GradeSystem.YDS) == "E5 6b"

    def test_default_target_routes_yds(self):
        assert normalize_grade("6a") == "5.10a"

    def test_default_target_boulders_vscale(self):
        assert normalize_grade("6C", is_boulder=True) == "V5"

    @pytest.mark.parametrize("yds,french", ROUTE_PAIRS)
    def test_route_round_trip(self, yds, french):
        there = normalize_grade(yds, GradeSystem.YDS, GradeSystem.FRENCH)
        assert there == french
        assert normalize_grade(there, GradeSystem.FRENCH, GradeSystem.YDS) == yds

    @pytest.mark.parametrize("v,font", BOULDER_PAIRS)
    def test_boulder_round_trip(self, v, font):
        there = normalize_grade(v, GradeSystem.VSCALE, GradeSystem.FONT)
        assert there == font
        assert normalize_grade(there, GradeSystem.FONT, GradeSystem.VSCALE) == v

    def test_inverse_tables_are_complete(self):
        assert len(FRENCH_TO_YDS) == len(YDS_TO_FRENCH)
        assert len(FONT_TO_VSCALE) == len(VSCALE_TO_FONT)


# ---------------------------------------------------------------------------
# grade lists
# ---------------------------------------------------------------------------

class TestGradeLists:
    def test_boulder_uses_vscale(self):
        assert grade_system_for_climb_type("boulder") == GradeSystem.VSCALE

    def test_everything_else_yds(self):
        assert grade_system_for_climb_type("sport") == GradeSystem.YDS
        assert grade_system_for_climb_type(None) == GradeSystem.YDS

    def test_lists(self):
        assert grades_for_system(GradeSystem.VSCALE) == VSCALE_GRADES
        assert grades_for_system(GradeSystem.YDS)[0] == "5.0"
        assert grades_for_system(GradeSystem.FONT) == YDS_GRADES
