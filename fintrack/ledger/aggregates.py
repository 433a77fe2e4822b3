"""
Aggregate Calculator

Pure functions over in-memory collections. No I/O, no caching; every call
recomputes from its inputs in linear time.

Income and expense totals come from the Transaction ledger only, never from
BudgetCategory.spent or IncomeSource sums. Not every expense is attributed
to a tracked category, and summing both would double count.

Percentages round half-up to whole points (ties move toward +infinity, so
-2.5 becomes -2) and are never clamped. Over-budget shows as more than 100.
"""

from decimal import ROUND_FLOOR, Decimal
from typing import Iterable

from fintrack.models.ledger import BudgetCategory, LedgerSummary, Transaction


ZERO = Decimal("0")
HUNDRED = Decimal("100")
HALF = Decimal("0.5")


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return int((value + HALF).to_integral_value(rounding=ROUND_FLOOR))


def total_budget(budgets: Iterable[BudgetCategory]) -> Decimal:
    return sum((budget.budget for budget in budgets), ZERO)


def total_spent(transactions: Iterable[Transaction]) -> Decimal:
    """Sum of |amount| over debits. Credits and zero rows are ignored."""
    return sum((-t.amount for t in transactions if t.amount < 0), ZERO)


def total_income(transactions: Iterable[Transaction]) -> Decimal:
    """Sum of amount over credits. Debits and zero rows are ignored."""
    return sum((t.amount for t in transactions if t.amount > 0), ZERO)


def current_balance(transactions: Iterable[Transaction]) -> Decimal:
    transactions = list(transactions)
    return total_income(transactions) - total_spent(transactions)


def budget_usage_percentage(
    budgets: Iterable[BudgetCategory],
    transactions: Iterable[Transaction],
) -> int:
    """Spend as a share of the total budget; 0 when nothing is budgeted."""
    budgeted = total_budget(budgets)
    if budgeted <= 0:
        return 0
    return round_half_up(total_spent(transactions) / budgeted * HUNDRED)


def savings_percentage(transactions: Iterable[Transaction]) -> int:
    """Share of income not spent; 0 when there is no income. May be negative."""
    transactions = list(transactions)
    income = total_income(transactions)
    if income <= 0:
        return 0
    savings = income - total_spent(transactions)
    return round_half_up(savings / income * HUNDRED)


def summarize(
    budgets: Iterable[BudgetCategory],
    transactions: Iterable[Transaction],
) -> LedgerSummary:
    budgets = list(budgets)
    transactions = list(transactions)
    return LedgerSummary(
        total_budget=total_budget(budgets),
        total_spent=total_spent(transactions),
        total_income=total_income(transactions),
        current_balance=current_balance(transactions),
        budget_usage_percentage=budget_usage_percentage(budgets, transactions),
        savings_percentage=savings_percentage(transactions),
    )
