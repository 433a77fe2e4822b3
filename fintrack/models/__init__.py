"""
Data Models Package

This package contains all Pydantic models used in FinTrack.
All data flowing between the ledger and the remote store conforms to these schemas.
"""

from fintrack.models.ledger import (
    BudgetCategory,
    BudgetCategoryDraft,
    Identity,
    IncomeDraft,
    IncomeSource,
    LedgerResult,
    LedgerSnapshot,
    LedgerStatus,
    LedgerSummary,
    PaymentRequest,
    PendingKind,
    PendingReconciliation,
    RecordId,
    ResultStatus,
    StoredRecord,
    TenantScope,
    Transaction,
    TransactionDraft,
)
from fintrack.models.planning import (
    MeterReading,
    MeterReadingDraft,
    Priority,
    Reminder,
    ReminderDraft,
    SavingsGoal,
    SavingsGoalDraft,
)
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BudgetCategory",
    "BudgetCategoryDraft",
    "Identity",
    "IncomeDraft",
    "IncomeSource",
    "LedgerResult",
    "LedgerSnapshot",
    "LedgerStatus",
    "LedgerSummary",
    "PaymentRequest",
    "PendingKind",
    "PendingReconciliation",
    "RecordId",
    "ResultStatus",
    "StoredRecord",
    "TenantScope",
    "Transaction",
    "TransactionDraft",
    # Planning models
    "MeterReading",
    "MeterReadingDraft",
    "Priority",
    "Reminder",
    "ReminderDraft",
    "SavingsGoal",
    "SavingsGoalDraft",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
