import pytest

from finboard.columns import (
    COLUMN_RULES,
    ColumnRule,
    infer_schema,
    infer_transaction_schema,
)
from finboard.errors import SchemaInferenceError


def test_first_matching_header_in_source_order_wins():
    headers = ["Value Date", "Posting Date", "Details", "Debit", "Credit"]
    schema = infer_schema(headers)
    assert schema.date == "Value Date"
    assert schema.description == "Details"


def test_one_header_may_serve_several_roles():
    schema = infer_schema(["Date", "Description", "Debit", "Credit", "Classification"])
    assert schema.category == "Classification"
    assert schema.class_ == "Classification"


def test_matching_is_case_insensitive_substring():
    schema = infer_schema(["TXN DATE", "particulars", "Debit Amount", "CREDIT AMT", "Payee"])
    assert schema.as_dict() == {
        "date": "TXN DATE",
        "description": "particulars",
        "debit": "Debit Amount",
        "credit": "CREDIT AMT",
        "debit_secondary": None,
        "credit_secondary": None,
        "category": None,
        "contact": "Payee",
        "account": None,
        "office": None,
        "class_": None,
    }


def test_secondary_currency_columns_are_kept_apart():
    headers = ["Date", "Description", "Debit (SGD)", "Debit (USD)", "Credit (USD)", "Credit (SGD)"]
    schema = infer_schema(headers, secondary_currency="sgd")
    assert schema.debit == "Debit (USD)"
    assert schema.credit == "Credit (USD)"
    assert schema.debit_secondary == "Debit (SGD)"
    assert schema.credit_secondary == "Credit (SGD)"
    assert schema.has_secondary


def test_without_secondary_currency_the_first_debit_wins():
    headers = ["Date", "Description", "Debit (SGD)", "Debit (USD)", "Credit (USD)"]
    schema = infer_schema(headers)
    assert schema.debit == "Debit (SGD)"
    assert not schema.has_secondary


def test_required_roles_raise_naming_the_first_missing_role():
    with pytest.raises(SchemaInferenceError) as ei:
        infer_transaction_schema(["Date", "Memo", "Debit", "Credit"])
    assert ei.value.role == "description"
    assert "Memo" in str(ei.value)


def test_required_roles_present():
    schema = infer_transaction_schema(["Date", "Narrative", "Debit", "Credit", "Office"])
    assert schema.missing(["date", "description", "debit", "credit"]) == []
    assert schema.office == "Office"


def test_column_rule_excludes_and_requires():
    rule = ColumnRule("value", ("value",), requires=("deal",), excludes=("weighted",))
    assert rule.matches("Deal Value")
    assert not rule.matches("Weighted Deal Value")
    assert not rule.matches("Value")
    assert not rule.matches("   ")


def test_default_rule_table_treats_sgd_as_secondary():
    headers = ["Date", "Description", "Debit (USD)", "Credit (USD)", "Debit (SGD)"]
    assert infer_schema(headers, rules=COLUMN_RULES) == infer_schema(
        headers, secondary_currency="sgd"
    )
    assert infer_schema(headers, rules=COLUMN_RULES).debit_secondary == "Debit (SGD)"
