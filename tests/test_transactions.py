from decimal import Decimal

import pytest

from finboard.aggregation import closing_balance
from finboard.columns import infer_transaction_schema
from finboard.csv_io import read_csv_file, read_csv_rows
from finboard.errors import NoDataError, SchemaInferenceError
from finboard.file_types import CurrencyMode
from finboard.models import SkippedRow
from finboard.transactions import normalize_row, normalize_transactions, opening_balance


def test_sgd_statement_end_to_end(data_dir):
    batch = normalize_transactions(read_csv_file(data_dir / "sgd_statement.csv"))

    assert batch.opening_balance == Decimal("1000.00")
    assert [t.description for t in batch.transactions] == ["Client payment", "Office rent"]
    payment, rent = batch.transactions
    assert (payment.date, payment.type, payment.amount) == ("2024-01-05", "inflow", "200.00")
    assert payment.category == "Sales"
    assert payment.contact == "Acme Pte Ltd"
    assert payment.amount_secondary == "200.00"
    assert (rent.type, rent.amount, rent.category) == ("outflow", "150.00", "Rent")

    assert [(s.row_index, s.reason) for s in batch.skipped] == [
        (3, "missing_description"),
        (4, "no_amount"),
    ]
    assert closing_balance(batch.transactions, batch.opening_balance) == Decimal("1050.00")


def test_dataset_form_is_json_friendly(data_dir):
    batch = normalize_transactions(read_csv_file(data_dir / "sgd_statement.csv"))
    dataset = batch.to_dataset()
    assert dataset["openingBalance"] == "1000.00"
    assert "openingBalanceSecondary" not in dataset
    assert dataset["transactions"][0]["type"] == "inflow"


def test_cross_currency_statement_carries_secondary_amounts(data_dir):
    batch = normalize_transactions(
        read_csv_file(data_dir / "usd_statement.csv"), mode=CurrencyMode.CROSS
    )

    assert batch.schema.debit == "Debit (USD)"
    assert batch.schema.debit_secondary == "Debit (SGD)"
    assert batch.opening_balance == Decimal("100.00")
    assert batch.opening_balance_secondary == Decimal("135.00")

    wire, fees = batch.transactions
    assert (wire.date, wire.type, wire.amount, wire.amount_secondary) == (
        "2024-01-15",
        "inflow",
        "1000.00",
        "1350.00",
    )
    assert (fees.type, fees.amount, fees.amount_secondary) == ("outflow", "10.00", "13.50")
    assert fees.category == "Bank Charges"
    assert fees.contact is None
    assert batch.to_dataset()["openingBalanceSecondary"] == "135.00"


def test_ids_are_stable_across_runs(data_dir):
    rows = read_csv_file(data_dir / "sgd_statement.csv")
    first = [t.id for t in normalize_transactions(rows).transactions]
    second = [t.id for t in normalize_transactions(rows).transactions]
    assert first == second
    assert len(set(first)) == len(first)


def test_empty_batch_raises():
    with pytest.raises(NoDataError):
        normalize_transactions([])


def test_missing_required_column_raises():
    rows = read_csv_rows("Date,Memo,Debit,Credit\n,Opening,10,\n2024-01-01,x,5,\n")
    with pytest.raises(SchemaInferenceError) as ei:
        normalize_transactions(rows)
    assert ei.value.role == "description"


def test_header_only_batch_yields_only_an_opening_balance():
    rows = read_csv_rows("Date,Description,Debit,Credit\n,Opening,,250.00\n")
    batch = normalize_transactions(rows)
    assert batch.transactions == ()
    assert batch.opening_balance == Decimal("-250.00")


@pytest.mark.parametrize(
    ("row", "reason"),
    [
        ({"Date": "", "Description": "x", "Debit": "5", "Credit": ""}, "missing_date"),
        ({"Date": "2024-01-01", "Description": "  ", "Debit": "5", "Credit": ""}, "missing_description"),
        ({"Date": "someday", "Description": "x", "Debit": "5", "Credit": ""}, "invalid_date"),
        ({"Date": "2024-01-01", "Description": "x", "Debit": "-5", "Credit": "N/A"}, "no_amount"),
    ],
)
def test_row_level_problems_skip_the_row(row, reason):
    schema = infer_transaction_schema(row.keys())
    result = normalize_row(row, 7, schema=schema)
    assert result == SkippedRow(7, reason)


def test_accounting_negatives_and_whitespace_are_normalized():
    row = {"Date": "01/31/2024", "Description": "  Card \t refund ", "Debit": "", "Credit": "(12.50)"}
    schema = infer_transaction_schema(row.keys())
    result = normalize_row(row, 1, schema=schema)
    # A negative credit is not a positive movement on either side.
    assert isinstance(result, SkippedRow)

    row["Debit"] = "1,234.567"
    tx = normalize_row(row, 1, schema=schema)
    assert tx.description == "Card refund"
    assert tx.amount == "1234.57"
    assert tx.date == "2024-01-31"
    assert tx.category == "Uncategorized"


def test_debit_wins_when_both_sides_are_positive():
    row = {"Date": "2024-01-01", "Description": "x", "Debit": "10", "Credit": "4"}
    tx = normalize_row(row, 1, schema=infer_transaction_schema(row.keys()))
    assert (tx.type, tx.amount) == ("inflow", "10.00")


def test_cross_mode_without_secondary_columns_leaves_secondary_empty():
    rows = read_csv_rows("Date,Description,Debit,Credit\n,Opening,1,\n2024-01-01,x,5,\n")
    batch = normalize_transactions(rows, mode=CurrencyMode.CROSS)
    assert batch.opening_balance_secondary is None
    assert batch.transactions[0].amount_secondary is None


def test_opening_balance_ignores_non_positive_cells():
    row = {"Debit": "-20", "Credit": "(5)"}
    assert opening_balance(row, debit="Debit", credit="Credit") == Decimal("0")
    assert opening_balance({"Debit": "30", "Credit": "10"}, debit="Debit", credit="Credit") == 20
