"""Cell-level value parsing: signed amounts and permissive dates.

Amounts are parsed into :class:`~decimal.Decimal` using accounting sign
conventions. Any of the following marks a cell negative:

- an opening parenthesis anywhere: ``"(1,234.56 SGD)"``
- a leading minus: ``"-45.00"``
- a trailing minus: ``"45.00-"``

Everything that is not a digit or a decimal point is stripped before
parsing, so currency codes, symbols and thousands separators are ignored.
Cells that still do not parse (``"N/A"``) become zero; malformed cells must
never abort a batch.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

ZERO = Decimal("0")
_CENT = Decimal("0.01")

_STRIP_RE = re.compile(r"[^0-9.]")
# Longest leading float literal, e.g. "1.2" out of "1.2.3".
_FLOAT_PREFIX_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_DMY_RE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2}|\d{4})$")

_NATIVE_DATE_FORMATS: tuple[str, ...] = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%a, %d %b %Y",
)


def is_blank(raw: Any) -> bool:
    """True for ``None`` and strings that are empty after stripping."""

    if raw is None:
        return True
    if isinstance(raw, str):
        return not raw.strip()
    return False


def parse_value(raw: Any) -> Decimal:
    """Return the signed numeric value of a raw cell (``0`` when unusable)."""

    if raw is None or isinstance(raw, bool):
        return ZERO
    if isinstance(raw, Decimal):
        return raw if raw.is_finite() else ZERO
    if isinstance(raw, int):
        return Decimal(raw)
    if isinstance(raw, float):
        return Decimal(repr(raw)) if math.isfinite(raw) else ZERO

    s = str(raw).strip()
    if not s:
        return ZERO
    negative = "(" in s or s.startswith("-") or s.endswith("-")
    m = _FLOAT_PREFIX_RE.match(_STRIP_RE.sub("", s))
    if m is None:
        return ZERO
    value = Decimal(m.group(0))
    if value == 0:
        return ZERO
    return -abs(value) if negative else value


def format_value(value: Decimal) -> str:
    """Plain numeric string for ``value`` (no exponent, no rounding)."""

    return format(value, "f")


def format_amount(value: Decimal) -> str:
    """Exactly two decimals, ``ROUND_HALF_UP``, ASCII dot, leading minus."""

    q = value.quantize(_CENT, rounding=ROUND_HALF_UP)
    if q == 0:
        q = abs(q)
    return f"{q:.2f}"


def parse_date(raw: Any) -> date | None:
    """Parse a date cell permissively; ``None`` when nothing matches.

    Native formats are tried first (ISO-8601 dates and date-times, then a set
    of common export layouts including ``MM/DD/YYYY``). When those fail the
    value is split as ``DD/MM/YYYY`` (``/``, ``-`` or ``.`` separated, two- or
    four-digit year).
    """

    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if is_blank(raw):
        return None
    s = str(raw).strip()

    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    first = s.split()[0] if " " in s and "," not in s else s
    for fmt in _NATIVE_DATE_FORMATS:
        for candidate in (s, first):
            try:
                return datetime.strptime(candidate, fmt).date()
            except ValueError:
                continue

    m = _DMY_RE.match(first)
    if m is None:
        return None
    day, month, year = (int(g) for g in m.groups())
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


__all__ = [
    "ZERO",
    "is_blank",
    "parse_value",
    "format_value",
    "format_amount",
    "parse_date",
]
