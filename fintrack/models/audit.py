"""
Audit Models for FinTrack

Every ledger write, reload and session transition produces an audit event.
This gives:
1. A trace of which half of a compound operation succeeded
2. Debugging information when the remote store misbehaves
3. A record of session scoping decisions

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session lifecycle
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    SCOPE_UNRESOLVED = "scope_unresolved"
    LEDGER_LOADED = "ledger_loaded"
    COLLECTION_LOAD_FAILED = "collection_load_failed"

    # Ledger writes
    INCOME_ADDED = "income_added"
    BUDGET_ADDED = "budget_added"
    PAYMENT_PROCESSED = "payment_processed"
    BUDGET_DEBITED = "budget_debited"
    TRANSACTIONS_REFRESHED = "transactions_refreshed"

    # Failures
    REMOTE_WRITE_FAILED = "remote_write_failed"
    OUTCOME_UNKNOWN = "outcome_unknown"
    PARTIAL_COMPOUND_FAILURE = "partial_compound_failure"
    RECONCILIATION_RETRIED = "reconciliation_retried"

    # Planning
    SAVINGS_GOAL_CREATED = "savings_goal_created"
    SAVINGS_CONTRIBUTION_ADDED = "savings_contribution_added"
    REMINDER_CREATED = "reminder_created"
    REMINDER_COMPLETED = "reminder_completed"
    REMINDER_DELETED = "reminder_deleted"
    READING_RECORDED = "reading_recorded"
    READING_UPDATED = "reading_updated"
    READING_DELETED = "reading_deleted"

    # Assistant
    ASSISTANT_QUERIED = "assistant_queried"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant ledger action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Scope - whose data is this about?
    user_id: Optional[str] = None
    tenant_id: Optional[str] = None

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection of the record (e.g., 'transactions')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the record this event relates to"
    )

    # Correlation - ties the steps of one compound operation together
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "tenant_id": self.tenant_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for the audit worksheet.

        Columns: [event_id, timestamp, event_type, severity, user_id,
        tenant_id, entity_type, entity_id, correlation_id, description,
        details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.tenant_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.payment_processed(scope, txn_id, "500", cid)
    """

    @staticmethod
    def session_started(user_id: str, tenant_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_STARTED,
            user_id=user_id,
            tenant_id=tenant_id,
            description="Ledger session started",
        )

    @staticmethod
    def session_ended(user_id: str, tenant_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_ENDED,
            user_id=user_id,
            tenant_id=tenant_id,
            description="Ledger session ended",
        )

    @staticmethod
    def scope_unresolved(user_id: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCOPE_UNRESOLVED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="profiles",
            description="No tenant scope found for user, ledger not loaded",
            error_message=reason,
        )

    @staticmethod
    def ledger_loaded(
        user_id: str,
        tenant_id: str,
        counts: dict[str, int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            user_id=user_id,
            tenant_id=tenant_id,
            description="Ledger collections loaded",
            details=counts,
        )

    @staticmethod
    def collection_load_failed(
        user_id: str,
        tenant_id: str,
        collection: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_LOAD_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            tenant_id=tenant_id,
            entity_type=collection,
            description=f"Failed to load {collection}",
            error_message=error_message,
        )

    @staticmethod
    def transactions_refreshed(user_id: str, tenant_id: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_REFRESHED,
            user_id=user_id,
            tenant_id=tenant_id,
            entity_type="transactions",
            description="Transactions reloaded from the store",
            details={"count": count},
        )

    @staticmethod
    def record_written(
        event_type: AuditEventType,
        user_id: str,
        tenant_id: str,
        collection: str,
        record_id: str,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            tenant_id=tenant_id,
            entity_type=collection,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def remote_write_failed(
        user_id: str,
        tenant_id: str,
        collection: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
        outcome_unknown: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.OUTCOME_UNKNOWN
                if outcome_unknown
                else AuditEventType.REMOTE_WRITE_FAILED
            ),
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            tenant_id=tenant_id,
            entity_type=collection,
            correlation_id=correlation_id,
            description=f"{operation} on {collection} failed",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def partial_compound_failure(
        user_id: str,
        tenant_id: str,
        operation: str,
        completed_step: str,
        failed_step: str,
        written_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTIAL_COMPOUND_FAILURE,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            tenant_id=tenant_id,
            entity_id=written_id,
            correlation_id=correlation_id,
            description=(
                f"{operation}: {completed_step} written but {failed_step} failed"
            ),
            details={
                "operation": operation,
                "completed_step": completed_step,
                "failed_step": failed_step,
            },
            error_message=error_message,
        )

    @staticmethod
    def assistant_queried(
        user_id: str,
        tenant_id: Optional[str],
        question: str,
        transactions_used: int,
        answered: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSISTANT_QUERIED,
            severity=AuditSeverity.INFO if answered else AuditSeverity.WARNING,
            user_id=user_id,
            tenant_id=tenant_id,
            entity_type="transactions",
            description=f"Assistant asked: {question[:200]}",
            details={"transactions_used": transactions_used, "answered": answered},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
