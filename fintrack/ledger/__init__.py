"""
Ledger Engine Package

Tenant resolution, the session-scoped ledger cache, pure aggregates and the
session lifecycle bridge that ties them to the identity provider.
"""

from fintrack.ledger.aggregates import (
    budget_usage_percentage,
    current_balance,
    round_half_up,
    savings_percentage,
    summarize,
    total_budget,
    total_income,
    total_spent,
)
from fintrack.ledger.export import export_transactions_csv, filter_transactions
from fintrack.ledger.session import (
    IdentityProvider,
    SessionLifecycleBridge,
    StaticIdentityProvider,
)
from fintrack.ledger.state import LedgerState
from fintrack.ledger.tenant import ScopeUnresolvedError, TenantResolver

__all__ = [
    # Aggregates
    "budget_usage_percentage",
    "current_balance",
    "round_half_up",
    "savings_percentage",
    "summarize",
    "total_budget",
    "total_income",
    "total_spent",
    # Export
    "export_transactions_csv",
    "filter_transactions",
    # Engine
    "IdentityProvider",
    "LedgerState",
    "ScopeUnresolvedError",
    "SessionLifecycleBridge",
    "StaticIdentityProvider",
    "TenantResolver",
]
