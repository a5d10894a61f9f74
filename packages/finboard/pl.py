"""P&L exports: category-column discovery, label extraction and line parsing."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .columns import ROLE_KEYWORDS, ColumnRule
from .errors import NoCategoryColumnError
from .logging_setup import get_logger
from .values import is_blank, parse_value

_logger = get_logger("finboard.pl")

CATEGORY_KEYWORDS: tuple[str, ...] = (
    "category",
    "class",
    "classification",
    "line_item",
    "description",
    "account",
    "account_name",
    "item",
    "type",
    "category_name",
)

_MONTHS = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|jun(?:e)?|jul(?:y)?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)
_PERIOD_RES: tuple[re.Pattern[str], ...] = (
    # "Jan", "January 2024", "Jan-24", "Sept '24"
    re.compile(rf"^(?:{_MONTHS})(?:[\s\-_/']*(?:\d{{2}}|\d{{4}}))?$", re.IGNORECASE),
    # "2024-01", "2024/1"
    re.compile(r"^\d{4}[\-/](?:0?[1-9]|1[0-2])$"),
    # "01/2024", "1-2024"
    re.compile(r"^(?:0?[1-9]|1[0-2])[\-/]\d{4}$"),
)

_TOTAL_RE = re.compile(r"^\s*(?:grand\s+)?total\b", re.IGNORECASE)


def normalize_header(header: str) -> str:
    return re.sub(r"[\s\-]+", "_", header.strip().lower())


def find_category_column(rows: Sequence[Mapping[str, Any]]) -> str:
    """Return the header holding P&L line labels.

    Keywords are tried in priority order, first as an exact match against the
    normalized header, then as a substring. Failing both, the first column of
    the first row that holds a non-empty string is used.
    """

    if not rows:
        raise NoCategoryColumnError("no rows to inspect")
    first = rows[0]
    headers = [str(h) for h in first.keys()]
    normalized = [(h, normalize_header(h)) for h in headers]

    for kw in CATEGORY_KEYWORDS:
        for h, n in normalized:
            if n == kw:
                return h
    for kw in CATEGORY_KEYWORDS:
        for h, n in normalized:
            if kw in n:
                return h

    for h in headers:
        v = first.get(h)
        if isinstance(v, str) and v.strip():
            _logger.debug("category column by fallback column=%r", h)
            return h
    raise NoCategoryColumnError(f"headers={headers!r}")


def extract_categories(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    """Distinct, trimmed, non-empty labels from the category column, sorted."""

    materialized = list(rows)
    column = find_category_column(materialized)
    labels: set[str] = set()
    for row in materialized:
        v = row.get(column)
        if is_blank(v):
            continue
        labels.add(str(v).strip())
    return sorted(labels)


def is_period_header(header: str) -> bool:
    h = header.strip()
    return any(p.match(h) for p in _PERIOD_RES)


def month_columns(headers: Iterable[str]) -> list[str]:
    """Headers that name a reporting period, in source order."""

    return [str(h) for h in headers if is_period_header(str(h))]


@dataclass(frozen=True, slots=True)
class PLLine:
    label: str
    office: str | None = None
    values: Mapping[str, Decimal] = field(default_factory=dict)

    def value(self, month: str | None = None) -> Decimal:
        """The amount for ``month``, or the sum over every month when ``None``."""

        if month is None:
            return sum(self.values.values(), Decimal("0"))
        return self.values.get(month, Decimal("0"))


def parse_pl_lines(rows: Iterable[Mapping[str, Any]]) -> list[PLLine]:
    """Parse P&L rows into :class:`PLLine` items.

    Rows with a blank label and subtotal rows (labels starting with "Total")
    are dropped.
    """

    materialized = list(rows)
    if not materialized:
        return []
    label_col = find_category_column(materialized)
    headers = [str(h) for h in materialized[0].keys()]
    months = month_columns(headers)
    office_rule = ColumnRule("office", ROLE_KEYWORDS["office"])
    office_col = next((h for h in headers if office_rule.matches(h)), None)

    lines: list[PLLine] = []
    for row in materialized:
        raw = row.get(label_col)
        if is_blank(raw):
            continue
        label = str(raw).strip()
        if _TOTAL_RE.match(label):
            continue
        office = row.get(office_col) if office_col else None
        lines.append(
            PLLine(
                label=label,
                office=None if is_blank(office) else str(office).strip(),
                values={m: parse_value(row.get(m)) for m in months},
            )
        )
    _logger.debug("parsed pl lines=%d months=%d", len(lines), len(months))
    return lines


__all__ = [
    "CATEGORY_KEYWORDS",
    "normalize_header",
    "find_category_column",
    "extract_categories",
    "is_period_header",
    "month_columns",
    "PLLine",
    "parse_pl_lines",
]
