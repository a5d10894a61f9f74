from datetime import date
from decimal import Decimal

import pytest

from finboard.values import format_amount, format_value, is_blank, parse_date, parse_value


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("(1,234.56 SGD)", Decimal("-1234.56")),
        ("-45.00", Decimal("-45")),
        ("45.00-", Decimal("-45")),
        ("$1,000", Decimal("1000")),
        ("SGD 2,500.10", Decimal("2500.10")),
        ("1.2.3", Decimal("1.2")),
        ("N/A", Decimal("0")),
        ("", Decimal("0")),
        ("   ", Decimal("0")),
        (None, Decimal("0")),
        ("-0", Decimal("0")),
        (7, Decimal("7")),
        (12.5, Decimal("12.5")),
        (Decimal("-3.25"), Decimal("-3.25")),
    ],
)
def test_parse_value_accounting_conventions(raw, expected):
    assert parse_value(raw) == expected


def test_parse_value_zero_is_never_negative():
    assert parse_value("(0.00)").is_signed() is False
    assert parse_value("-").is_signed() is False


def test_parse_value_rejects_non_finite_and_bool():
    assert parse_value(float("nan")) == 0
    assert parse_value(float("inf")) == 0
    assert parse_value(True) == 0


@pytest.mark.parametrize("raw", ["(1,234.56 SGD)", "45.00-", "$1,000", "N/A", "0.5", "-12"])
def test_parse_format_parse_is_stable(raw):
    once = parse_value(raw)
    assert parse_value(format_value(once)) == once


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Decimal("2.005"), "2.01"),
        (Decimal("2.004"), "2.00"),
        (Decimal("1234.5"), "1234.50"),
        (Decimal("-0.001"), "0.00"),
        (Decimal("-7.125"), "-7.13"),
    ],
)
def test_format_amount_two_places_half_up(value, expected):
    assert format_amount(value) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-01-15", date(2024, 1, 15)),
        ("2024-01-15T10:30:00Z", date(2024, 1, 15)),
        ("2024-01-15 00:00:00", date(2024, 1, 15)),
        ("2024/01/15", date(2024, 1, 15)),
        ("01/15/2024", date(2024, 1, 15)),
        ("15/01/2024", date(2024, 1, 15)),
        ("15.01.24", date(2024, 1, 15)),
        ("15-01-2024", date(2024, 1, 15)),
        ("15 Jan 2024", date(2024, 1, 15)),
        ("Jan 15, 2024", date(2024, 1, 15)),
        (date(2024, 1, 15), date(2024, 1, 15)),
    ],
)
def test_parse_date_formats(raw, expected):
    assert parse_date(raw) == expected


def test_parse_date_prefers_native_month_first_when_ambiguous():
    # Both readings are valid; the native MM/DD/YYYY reading wins.
    assert parse_date("03/04/2024") == date(2024, 3, 4)


@pytest.mark.parametrize("raw", ["not a date", "", None, "31/02/2024", "2024-13-01"])
def test_parse_date_unparseable_returns_none(raw):
    assert parse_date(raw) is None


def test_is_blank():
    assert is_blank(None)
    assert is_blank("  ")
    assert not is_blank("x")
    assert not is_blank(0)
