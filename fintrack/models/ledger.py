"""
Core Ledger Models for FinTrack

These models define the records the ledger engine keeps in sync with the
remote store:
1. BudgetCategory - a spending envelope with a running `spent` total
2. IncomeSource - an immutable income entry
3. Transaction - the append-only audit trail all aggregates derive from

Every persisted record belongs to exactly one (user_id, tenant_id) pair.
Draft models carry what the caller supplies; the store adds id and timestamps.

DESIGN DECISION: Amounts are Decimal end to end. Floats never enter the
aggregate math.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


RecordId = str


# =============================================================================
# IDENTITY & SCOPE
# =============================================================================

class Identity(BaseModel):
    """An authenticated user as reported by the identity provider."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    email: Optional[str] = None


class TenantScope(BaseModel):
    """
    The data partition every read and write is filtered by.

    Resolved once per session from the user's profile record.
    Frozen: it cannot change for the lifetime of a session.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)

    def as_filter(self) -> dict[str, str]:
        return {"user_id": self.user_id, "tenant_id": self.tenant_id}


class StoredRecord(BaseModel):
    """Fields the remote store assigns on insert."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: RecordId
    user_id: Optional[str] = None
    tenant_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# BUDGET CATEGORIES
# =============================================================================

class BudgetCategoryDraft(BaseModel):
    """A budget category as entered by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name, also the join key for payments"
    )
    budget: Decimal = Field(
        ...,
        ge=0,
        description="Amount budgeted for this category"
    )
    color: str = Field(default="#3b82f6", max_length=32)
    icon: str = Field(default="wallet", max_length=32)


class BudgetCategory(StoredRecord):
    """
    A persisted budget category.

    `spent` is a running total. Only payments move it, and only upward.
    """

    name: str
    budget: Decimal = Decimal("0")
    spent: Decimal = Decimal("0")
    color: str = ""
    icon: str = ""


# =============================================================================
# INCOME
# =============================================================================

class IncomeDraft(BaseModel):
    """An income entry as entered by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    date: date


class IncomeSource(StoredRecord):
    """A persisted income entry. There is no update path."""

    name: str
    amount: Decimal
    date: date


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A transaction row before insertion.

    Sign convention: positive amount = credit/income,
    negative amount = debit/expense.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: date
    description: str = Field(..., min_length=1, max_length=300)
    amount: Decimal
    category: str
    mode: str
    status: str


class Transaction(StoredRecord):
    """A persisted ledger row."""

    date: date
    description: str
    amount: Decimal
    category: str
    mode: str
    status: str

    @property
    def is_credit(self) -> bool:
        return self.amount > 0

    @property
    def is_debit(self) -> bool:
        return self.amount < 0


class PaymentRequest(BaseModel):
    """
    A payment made by the user.

    `category` is matched by name against the budget list. When
    `category_id` is given it takes precedence over the name.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1)
    merchant: str = Field(..., min_length=1, max_length=100)
    category_id: Optional[RecordId] = None


# =============================================================================
# LEDGER STATE & RESULTS
# =============================================================================

class LedgerStatus(str, Enum):
    """Lifecycle of a session-scoped ledger."""
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"


class ResultStatus(str, Enum):
    """Outcome of a ledger operation."""
    SUCCESS = "success"
    REMOTE_WRITE_FAILED = "remote_write_failed"
    REMOTE_READ_FAILED = "remote_read_failed"
    PARTIAL_COMPOUND_FAILURE = "partial_compound_failure"
    OUTCOME_UNKNOWN = "outcome_unknown"
    NOT_READY = "not_ready"
    AUTH_REQUIRED = "auth_required"
    SCOPE_UNRESOLVED = "scope_unresolved"
    RECORD_NOT_FOUND = "record_not_found"


class PendingKind(str, Enum):
    """Which mirror write of a compound operation is missing."""
    INCOME_TRANSACTION = "income_transaction"
    BUDGET_SPENT = "budget_spent"


class PendingReconciliation(BaseModel):
    """
    The intermediate state left behind by a partial compound failure.

    `written_id` is the record the first step created. `payload` holds
    what the second step should have written.
    """

    pending_id: RecordId
    kind: PendingKind
    written_id: RecordId
    payload: dict[str, Any] = Field(default_factory=dict)
    reason: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class LedgerResult(BaseModel):
    """
    Result of a ledger mutator or reload.

    Errors never escape LedgerState as exceptions; they come back here.
    """

    status: ResultStatus
    message: str
    operation: str
    completed_steps: list[str] = Field(default_factory=list)
    failed_step: Optional[str] = None
    records: list[StoredRecord] = Field(default_factory=list)
    pending: Optional[PendingReconciliation] = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.SUCCESS


class LedgerSummary(BaseModel):
    """The six dashboard numbers."""

    total_budget: Decimal
    total_spent: Decimal
    total_income: Decimal
    current_balance: Decimal
    budget_usage_percentage: int
    savings_percentage: int


class LedgerSnapshot(BaseModel):
    """Read-only copy of the ledger cache handed to views."""

    status: LedgerStatus
    scope: Optional[TenantScope] = None
    budgets: list[BudgetCategory] = Field(default_factory=list)
    income: list[IncomeSource] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    pending: list[PendingReconciliation] = Field(default_factory=list)
