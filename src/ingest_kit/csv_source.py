from __future__ import annotations

"""
csv_source.py - header-driven CSV reading.

Strict on structure (required header columns, no rows wider than the header),
lenient on content (values are passed through untouched).
"""

import csv
from typing import Iterator, Sequence

from .errors import ParseError
from .models import CompanyRef


NAME_COLUMN = "Company Name"
URL_COLUMN = "YC URL"


def iter_rows(path: str, *, required: Sequence[str] = ()) -> Iterator[dict[str, str]]:
    """
    Stream rows as dicts keyed by the header row.

    OSError if the file can't be opened; ParseError on a missing header,
    missing required columns, a row with more fields than the header, or
    bytes that are not UTF-8.
    Short rows are padded with "".
    """
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f, restval="")
        try:
            header = reader.fieldnames
        except (csv.Error, UnicodeDecodeError) as e:
            raise ParseError(f"{path}: bad CSV header: {e}") from e
        if not header:
            raise ParseError(f"{path}: empty CSV (no header row)")
        missing = [c for c in required if c not in header]
        if missing:
            raise ParseError(f"{path}: missing column(s) {missing}, header is {list(header)}")

        try:
            for row in reader:
                if None in row:
                    raise ParseError(f"{path}:{reader.line_num}: row has more fields than the header")
                yield row
        except csv.Error as e:
            raise ParseError(f"{path}:{reader.line_num}: {e}") from e
        except UnicodeDecodeError as e:
            raise ParseError(f"{path}: not valid UTF-8 near line {reader.line_num + 1}: {e}") from e


def read_companies(path: str) -> list[CompanyRef]:
    """All (name, url) pairs in file order."""
    return [
        CompanyRef(name=row[NAME_COLUMN], url=row[URL_COLUMN])
        for row in iter_rows(path, required=(NAME_COLUMN, URL_COLUMN))
    ]
