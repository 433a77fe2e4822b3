"""
Tests for transaction filtering and CSV export.
"""

import csv
from datetime import date
from decimal import Decimal
from io import StringIO

from fintrack.ledger import export_transactions_csv, filter_transactions
from fintrack.ledger.export import sanitize_csv_value
from fintrack.models.ledger import Transaction


def txn(id, description, amount, category="Food", mode="UPI") -> Transaction:
    return Transaction(
        id=id,
        date=date(2025, 1, 10),
        description=description,
        amount=Decimal(amount),
        category=category,
        mode=mode,
        status="completed",
    )


LEDGER = [
    txn("1", "Swiggy - dinner", "-450"),
    txn("2", "Salary Credit", "45000", category="Income", mode="Bank Transfer"),
    txn("3", "Uber - office", "-220", category="Transport"),
    txn("4", "Zomato - lunch", "-300", mode="Card"),
]


class TestFilterTransactions:
    """Search, category and mode filters."""

    def test_no_filters_keeps_everything(self):
        assert filter_transactions(LEDGER) == LEDGER

    def test_search_is_case_insensitive(self):
        result = filter_transactions(LEDGER, search="SALARY")
        assert [t.id for t in result] == ["2"]

    def test_category_filter(self):
        result = filter_transactions(LEDGER, category="Food")
        assert [t.id for t in result] == ["1", "4"]

    def test_mode_filter(self):
        result = filter_transactions(LEDGER, category="All", mode="UPI")
        assert [t.id for t in result] == ["1", "3"]

    def test_filters_combine(self):
        result = filter_transactions(LEDGER, search="lunch", category="Food", mode="Card")
        assert [t.id for t in result] == ["4"]


class TestExportCsv:
    """CSV layout."""

    def test_header_and_rows(self):
        rows = list(csv.reader(StringIO(export_transactions_csv(LEDGER[:2]))))

        assert rows[0] == ["Date", "Description", "Category", "Mode", "Amount", "Type"]
        assert rows[1] == ["2025-01-10", "Swiggy - dinner", "Food", "UPI", "450.00", "Debit"]
        assert rows[2] == [
            "2025-01-10", "Salary Credit", "Income", "Bank Transfer", "45000.00", "Credit",
        ]

    def test_description_with_comma_is_quoted(self):
        output = export_transactions_csv([txn("9", "Rent, January", "-100")])
        rows = list(csv.reader(StringIO(output)))
        assert rows[1][1] == "Rent, January"

    def test_empty_export_has_header_only(self):
        assert export_transactions_csv([]).strip() == "Date,Description,Category,Mode,Amount,Type"


class TestSanitize:
    """Formula injection guard."""

    def test_formula_prefixed(self):
        assert sanitize_csv_value("=SUM(A1)") == "\t=SUM(A1)"

    def test_plain_value_unchanged(self):
        assert sanitize_csv_value("  Groceries ") == "Groceries"

    def test_empty(self):
        assert sanitize_csv_value("   ") == ""
