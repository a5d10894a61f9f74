"""RFC 4180 CSV text → row records keyed by the header row."""

from __future__ import annotations

import csv
from io import StringIO
from pathlib import Path

from .models import RawRecord


def read_csv_rows(csv_text: str) -> list[RawRecord]:
    """Parse ``csv_text``; header names are kept exactly as written.

    Cells beyond the header width are dropped and short rows are padded with
    empty strings. A leading byte-order mark is ignored.
    """

    if csv_text.startswith("\ufeff"):
        csv_text = csv_text[1:]
    with StringIO(csv_text, newline="") as f:
        reader = csv.DictReader(f)
        return [
            {k: (v if v is not None else "") for k, v in row.items() if k is not None}
            for row in reader
        ]


def read_csv_file(path: str | Path) -> list[RawRecord]:
    """Read and parse a UTF-8 CSV file. I/O and ``csv.Error`` propagate."""

    with open(path, encoding="utf-8-sig", newline="") as f:
        return read_csv_rows(f.read())


__all__ = ["read_csv_rows", "read_csv_file"]
