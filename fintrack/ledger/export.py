"""
Transaction filtering and CSV export for the transactions view.
"""

import csv
import re
from io import StringIO
from typing import Iterable, Optional, Sequence

from fintrack.models.ledger import Transaction


ALL = "All"

CSV_HEADER = ["Date", "Description", "Category", "Mode", "Amount", "Type"]

_FORMULA_TRIGGERS = ("=", "+", "-", "@", "\t", "\r")
_DANGEROUS_PATTERNS = (
    r"^cmd\s*",
    r"^powershell\s*",
    r"^bash\s*",
    r"^sh\s*",
    r"^http[s]?://",
)


def sanitize_csv_value(value: str) -> str:
    """Prefix values a spreadsheet would run as a formula or command with a tab."""
    if not value or value.strip() == "":
        return ""

    value = value.strip()
    if value.startswith(_FORMULA_TRIGGERS):
        return "\t" + value
    for pattern in _DANGEROUS_PATTERNS:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value
    return value


def filter_transactions(
    transactions: Iterable[Transaction],
    search: str = "",
    category: Optional[str] = ALL,
    mode: Optional[str] = ALL,
) -> list[Transaction]:
    """
    Filter the ledger the way the transactions view does.

    `search` is a case-insensitive substring of the description. A category
    or mode of "All" (or None) disables that filter. Order is preserved.
    """
    needle = (search or "").lower()
    result = []
    for transaction in transactions:
        if needle and needle not in transaction.description.lower():
            continue
        if category not in (None, ALL) and transaction.category != category:
            continue
        if mode not in (None, ALL) and transaction.mode != mode:
            continue
        result.append(transaction)
    return result


def export_transactions_csv(transactions: Sequence[Transaction]) -> str:
    """Render transactions as CSV with an absolute Amount and a Credit/Debit Type."""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)
    for txn in transactions:
        writer.writerow(
            [
                txn.date.isoformat(),
                sanitize_csv_value(txn.description),
                sanitize_csv_value(txn.category),
                sanitize_csv_value(txn.mode),
                f"{abs(txn.amount):.2f}",
                "Credit" if txn.amount > 0 else "Debit",
            ]
        )
    return output.getvalue()
