"""Bank-statement rows → canonical transactions.

Row 0 of every batch is the opening-balance row and never becomes a
transaction. Each later row yields either a :class:`CanonicalTransaction` or a
:class:`SkippedRow` explaining why it was dropped; only batch-level
preconditions (non-empty input, an inferable schema) raise.

Direction comes from the debit/credit pair: a positive debit is an inflow, a
positive credit an outflow. Amounts are stored as non-negative 2 dp strings.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from .columns import InferredSchema, infer_transaction_schema
from .errors import NoDataError
from .file_types import CurrencyMode
from .logging_setup import get_logger
from .models import CanonicalTransaction, NormalizedBatch, SkippedRow
from .values import ZERO, format_amount, is_blank, parse_date, parse_value

UNCATEGORIZED = "Uncategorized"

_logger = get_logger("finboard.transactions")


def _cell(row: Mapping[str, Any], column: str | None) -> Any:
    return row.get(column) if column is not None else None


def _text(row: Mapping[str, Any], column: str | None) -> str | None:
    raw = _cell(row, column)
    if is_blank(raw):
        return None
    return " ".join(str(raw).split())


def opening_balance(
    row: Mapping[str, Any], *, debit: str | None, credit: str | None
) -> Decimal:
    """Signed balance from a header row: debit adds, credit subtracts."""

    bal = ZERO
    d = parse_value(_cell(row, debit))
    c = parse_value(_cell(row, credit))
    if d > 0:
        bal += d
    if c > 0:
        bal -= c
    return bal


def transaction_id(*, row_index: int, date: str, description: str, type: str, amount: str) -> str:
    """Stable identifier for a normalized row (SHA-256 over canonical fields)."""

    payload = {
        "row": row_index,
        "date": date,
        "description": description,
        "type": type,
        "amount": amount,
    }
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:24]


def normalize_row(
    row: Mapping[str, Any],
    row_index: int,
    *,
    schema: InferredSchema,
    mode: CurrencyMode = CurrencyMode.PRIMARY,
) -> CanonicalTransaction | SkippedRow:
    """Normalize one data row or explain why it was skipped."""

    raw_date = _cell(row, schema.date)
    description = _text(row, schema.description)
    if is_blank(raw_date):
        return SkippedRow(row_index, "missing_date")
    if description is None:
        return SkippedRow(row_index, "missing_description")
    when = parse_date(raw_date)
    if when is None:
        return SkippedRow(row_index, "invalid_date")

    debit = parse_value(_cell(row, schema.debit))
    credit = parse_value(_cell(row, schema.credit))
    if debit > 0:
        flow, amount = "inflow", abs(debit)
        secondary_col = schema.debit_secondary
    elif credit > 0:
        flow, amount = "outflow", abs(credit)
        secondary_col = schema.credit_secondary
    else:
        return SkippedRow(row_index, "no_amount")

    amount_s = format_amount(amount)
    if mode is CurrencyMode.CROSS:
        secondary = (
            format_amount(abs(parse_value(_cell(row, secondary_col))))
            if secondary_col is not None
            else None
        )
    else:
        secondary = amount_s

    date_s = when.isoformat()
    return CanonicalTransaction(
        id=transaction_id(
            row_index=row_index, date=date_s, description=description, type=flow, amount=amount_s
        ),
        date=date_s,
        description=description,
        category=_text(row, schema.category) or UNCATEGORIZED,
        contact=_text(row, schema.contact),
        type=flow,
        amount=amount_s,
        amount_secondary=secondary,
    )


def normalize_transactions(
    rows: Iterable[Mapping[str, Any]],
    *,
    mode: CurrencyMode = CurrencyMode.PRIMARY,
    schema: InferredSchema | None = None,
    secondary_currency: str = "sgd",
) -> NormalizedBatch:
    """Normalize a whole bank-statement batch.

    Raises
    ------
    NoDataError
        ``rows`` is empty.
    SchemaInferenceError
        Date, description, debit or credit could not be located (only when
        ``schema`` is not supplied).
    """

    materialized = list(rows)
    if not materialized:
        raise NoDataError()
    if schema is None:
        schema = infer_transaction_schema(
            materialized[0].keys(),
            secondary_currency=secondary_currency if mode is CurrencyMode.CROSS else None,
        )

    header = materialized[0]
    opening = opening_balance(header, debit=schema.debit, credit=schema.credit)
    opening_secondary: Decimal | None = None
    if mode is CurrencyMode.CROSS and schema.has_secondary:
        opening_secondary = opening_balance(
            header, debit=schema.debit_secondary, credit=schema.credit_secondary
        )

    transactions: list[CanonicalTransaction] = []
    skipped: list[SkippedRow] = []
    for idx in range(1, len(materialized)):
        result = normalize_row(materialized[idx], idx, schema=schema, mode=mode)
        if isinstance(result, SkippedRow):
            _logger.debug("row skipped row_index=%d reason=%s", result.row_index, result.reason)
            skipped.append(result)
        else:
            transactions.append(result)

    _logger.info(
        "normalized transactions rows=%d kept=%d skipped=%d mode=%s",
        len(materialized),
        len(transactions),
        len(skipped),
        mode.value,
    )
    return NormalizedBatch(
        transactions=tuple(transactions),
        opening_balance=opening,
        schema=schema,
        opening_balance_secondary=opening_secondary,
        skipped=tuple(skipped),
    )


__all__ = [
    "UNCATEGORIZED",
    "opening_balance",
    "transaction_id",
    "normalize_row",
    "normalize_transactions",
]
