"""climb_etl.parser

Format parser: uploaded file content → uniform in-memory table.

CSV (header row required, quoted fields may contain delimiters and line
breaks) and JSON (top-level array of flat objects) are both accepted.  The
result carries the ordered header/key list, the rows as key → raw value
dicts, and the row number to cite for each row in error messages.

Every failure raises a ParseError subclass whose messages are fit to show a
user as-is.
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

JSON_MIME_TYPE = "application/json"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ParseError(ValueError):
    """File could not be turned into rows; nothing from it may be imported."""

    @property
    def messages(self) -> list[str]:
        return [str(self)]


class EmptyFileError(ParseError):
    pass


class InvalidJsonError(ParseError):
    pass


class EmptyJsonArrayError(ParseError):
    pass


class MissingCsvHeaderError(ParseError):
    pass


class CsvRowParseError(ParseError):
    """One or more CSV records could not be parsed."""

    def __init__(self, messages: list[str]) -> None:
        super().__init__("; ".join(messages))
        self._messages = list(messages)

    @property
    def messages(self) -> list[str]:
        return list(self._messages)


# ---------------------------------------------------------------------------
# ParsedFile
# ---------------------------------------------------------------------------

@dataclass
class ParsedFile:
    is_json: bool
    headers_or_keys: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)
    # Parallel to rows: the row number a user would look up in the source.
    row_numbers: list[int] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------

def is_json_input(
    file_name_hint: str | None = None,
    mime_type: str | None = None,
    force_json: bool = False,
) -> bool:
    """Extension or declared MIME type decides; a JSON template forces JSON."""
    if force_json:
        return True
    if file_name_hint and file_name_hint.lower().endswith(".json"):
        return True
    return bool(mime_type) and mime_type.split(";")[0].strip().lower() == JSON_MIME_TYPE


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def parse_json(content: str) -> ParsedFile:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise InvalidJsonError(f"Invalid JSON file: {exc}") from exc
    if not isinstance(data, list) or not all(isinstance(o, dict) for o in data):
        raise InvalidJsonError(
            "Invalid JSON file: JSON data must be an array of climb objects."
        )
    if not data:
        raise EmptyJsonArrayError("JSON file is empty or contains no climb data.")

    # Union of keys across every object, first-seen order.
    keys: dict[str, None] = {}
    for obj in data:
        for k in obj:
            keys.setdefault(k, None)

    return ParsedFile(
        is_json=True,
        headers_or_keys=list(keys),
        rows=list(data),
        # Same numbering as CSV data rows, so messages agree across formats.
        row_numbers=list(range(2, len(data) + 2)),
    )


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def parse_csv(content: str) -> ParsedFile:
    """Parse CSV text with a header row.

    Row numbers count records, not physical lines: a quoted cell with line
    breaks is still one row, and skipped blank lines are still counted, so
    numbers match what a spreadsheet shows (header = row 1).  All malformed
    records are collected before raising CsvRowParseError.
    """
    reader = csv.reader(io.StringIO(content.lstrip("\ufeff")), strict=True)
    errors: list[str] = []
    headers: list[str] | None = None
    rows: list[dict[str, Any]] = []
    row_numbers: list[int] = []
    row_num = 0

    while True:
        row_num += 1
        try:
            values = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            if headers is None:
                raise MissingCsvHeaderError(
                    f"Could not parse CSV headers: {exc}. "
                    "Ensure the file is a valid CSV with a header row."
                ) from exc
            errors.append(f"CSV Parsing Error: Row {row_num}: {exc}")
            continue

        if not values:
            continue

        if headers is None:
            headers = [h.strip() for h in values]
            if not any(headers):
                raise MissingCsvHeaderError(
                    "Could not parse CSV headers. "
                    "Ensure the file is a valid CSV with a header row."
                )
            continue

        if all(not v.strip() for v in values):
            continue

        if len(values) != len(headers):
            errors.append(
                f"CSV Parsing Error: Row {row_num}: expected {len(headers)} "
                f"fields, found {len(values)}"
            )
            continue

        rows.append({h: v for h, v in zip(headers, values) if h})
        row_numbers.append(row_num)

    if headers is None:
        raise MissingCsvHeaderError(
            "Could not parse CSV headers. "
            "Ensure the file is a valid CSV with a header row."
        )
    if errors:
        raise CsvRowParseError(errors)

    return ParsedFile(
        is_json=False,
        headers_or_keys=[h for h in headers if h],
        rows=rows,
        row_numbers=row_numbers,
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def parse(
    content: str | None,
    file_name_hint: str | None = None,
    mime_type: str | None = None,
    force_json: bool = False,
) -> ParsedFile:
    if content is None or not content.strip():
        raise EmptyFileError("File is empty or could not be read.")
    if is_json_input(file_name_hint, mime_type, force_json):
        return parse_json(content)
    return parse_csv(content)


def read_file(
    path: Path,
    mime_type: str | None = None,
    force_json: bool = False,
) -> ParsedFile:
    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise EmptyFileError(f"File is empty or could not be read: {exc}") from exc
    return parse(content, path.name, mime_type, force_json)
