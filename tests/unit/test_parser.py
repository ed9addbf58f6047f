"""Unit tests for climb_etl.parser."""

import pytest

from climb_etl.parser import (
    CsvRowParseError,
    EmptyFileError,
    EmptyJsonArrayError,
    InvalidJsonError,
    MissingCsvHeaderError,
    ParseError,
    is_json_input,
    parse,
    read_file,
)


# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------

class TestIsJsonInput:
    def test_extension(self):
        assert is_json_input("ticks.JSON")

    def test_mime_type(self):
        assert is_json_input("ticks.txt", "application/json; charset=utf-8")

    def test_forced(self):
        assert is_json_input("ticks.csv", force_json=True)

    def test_csv_default(self):
        assert not is_json_input("ticks.csv", "text/csv")
        assert not is_json_input(None)


# ---------------------------------------------------------------------------
# Empty input
# ---------------------------------------------------------------------------

class TestEmpty:
    @pytest.mark.parametrize("content", [None, "", "   \n\n"])
    def test_empty_file(self, content):
        with pytest.raises(EmptyFileError):
            parse(content, "x.csv")

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(EmptyFileError):
            read_file(tmp_path / "missing.csv")

    def test_errors_are_parse_errors(self):
        assert issubclass(EmptyFileError, ParseError)
        assert issubclass(ParseError, ValueError)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

class TestParseJson:
    def test_union_of_keys_first_seen_order(self):
        parsed = parse('[{"name": "A", "grade": "V3"}, {"date": "2024-01-01", "name": "B"}]', "x.json")
        assert parsed.is_json
        assert parsed.headers_or_keys == ["name", "grade", "date"]
        assert len(parsed.rows) == 2
        # Numbered like CSV data rows, which start below the header.
        assert parsed.row_numbers == [2, 3]

    def test_values_keep_json_types(self):
        parsed = parse('[{"attempts": 3, "skills": ["a", "b"]}]', "x.json")
        assert parsed.rows[0] == {"attempts": 3, "skills": ["a", "b"]}

    def test_not_an_array(self):
        with pytest.raises(InvalidJsonError, match="must be an array"):
            parse('{"name": "A"}', "x.json")

    def test_array_of_non_objects(self):
        with pytest.raises(InvalidJsonError):
            parse("[1, 2]", "x.json")

    def test_malformed(self):
        with pytest.raises(InvalidJsonError, match="Invalid JSON file"):
            parse("[{", "x.json")

    def test_empty_array_distinct(self):
        with pytest.raises(EmptyJsonArrayError, match="no climb data"):
            parse("[]", "x.json")


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

class TestParseCsv:
    def test_basic(self):
        parsed = parse("name,grade\nA,5.9\nB,5.10a\n", "x.csv")
        assert not parsed.is_json
        assert parsed.headers_or_keys == ["name", "grade"]
        assert parsed.rows == [{"name": "A", "grade": "5.9"}, {"name": "B", "grade": "5.10a"}]
        assert parsed.row_numbers == [2, 3]

    def test_quoted_delimiters_and_newlines(self):
        parsed = parse('name,notes\n"Arête, left","line one\nline two"\nB,x\n', "x.csv")
        assert parsed.rows[0] == {"name": "Arête, left", "notes": "line one\nline two"}
        # A multi-line cell is still one spreadsheet row.
        assert parsed.row_numbers == [2, 3]

    def test_rows_after_multiline_notes_keep_record_numbers(self):
        content = (
            "name,notes\n"
            'A,"first line\nsecond line\nthird line"\n'
            "B,x\n"
            "\n"
            "C,y\n"
        )
        parsed = parse(content, "x.csv")
        assert [r["name"] for r in parsed.rows] == ["A", "B", "C"]
        assert parsed.row_numbers == [2, 3, 5]

    def test_error_after_multiline_notes_cites_record_number(self):
        content = 'name,notes\nA,"one\ntwo\nthree"\nB\n'
        with pytest.raises(CsvRowParseError) as excinfo:
            parse(content, "x.csv")
        assert excinfo.value.messages == [
            "CSV Parsing Error: Row 3: expected 2 fields, found 1"
        ]

    def test_bom_and_header_whitespace(self):
        parsed = parse("\ufeff Route , Date \nA,2024-01-01\n", "x.csv")
        assert parsed.headers_or_keys == ["Route", "Date"]

    def test_blank_lines_skipped_but_counted(self):
        parsed = parse("name\nA\n\nB\n", "x.csv")
        assert [r["name"] for r in parsed.rows] == ["A", "B"]
        assert parsed.row_numbers == [2, 4]

    def test_header_only(self):
        parsed = parse("name,grade\n", "x.csv")
        assert parsed.rows == []

    def test_blank_header(self):
        with pytest.raises(MissingCsvHeaderError):
            parse(",,\nA,B,C\n", "x.csv")

    def test_unescaped_quote_in_quoted_field(self):
        content = 'name,grade\n"The "Nose" route",5.9\nB,5.10a\n'
        with pytest.raises(CsvRowParseError) as excinfo:
            parse(content, "x.csv")
        messages = excinfo.value.messages
        assert messages
        assert all(m.startswith("CSV Parsing Error") for m in messages)
        assert "Row 2" in messages[0]

    def test_field_count_mismatch(self):
        with pytest.raises(CsvRowParseError) as excinfo:
            parse("name,grade\nA\nB,5.9\nC,5.9,extra\n", "x.csv")
        messages = excinfo.value.messages
        assert len(messages) == 2
        assert "Row 2" in messages[0]
        assert "Row 4" in messages[1]

    def test_json_forced_for_csv_name(self):
        parsed = parse('[{"name": "A"}]', "x.csv", force_json=True)
        assert parsed.is_json

    def test_read_file(self, tmp_path):
        p = tmp_path / "ticks.csv"
        p.write_text("name\nA\n", encoding="utf-8")
        assert read_file(p).rows == [{"name": "A"}]
