"""
Audit Logger

DESIGN DECISION: Every ledger write, reload and session transition is logged.
This provides:
1. Complete traceability of compound operations, half by half
2. Debugging capability when the remote store fails
3. Evidence for manual reconciliation after a partial failure

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from fintrack.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from fintrack.models.ledger import TenantScope
from fintrack.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store such as the AuditLog worksheet (optional)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_session_started(self, scope: TenantScope) -> None:
        await self.log(AuditEventBuilder.session_started(scope.user_id, scope.tenant_id))

    async def log_session_ended(self, user_id: str, tenant_id: Optional[str]) -> None:
        await self.log(AuditEventBuilder.session_ended(user_id, tenant_id))

    async def log_scope_unresolved(self, user_id: str, reason: str) -> None:
        await self.log(AuditEventBuilder.scope_unresolved(user_id, reason))

    async def log_ledger_loaded(self, scope: TenantScope, counts: dict[str, int]) -> None:
        await self.log(
            AuditEventBuilder.ledger_loaded(scope.user_id, scope.tenant_id, counts)
        )

    async def log_collection_load_failed(
        self,
        scope: TenantScope,
        collection: str,
        error_message: str,
    ) -> None:
        await self.log(
            AuditEventBuilder.collection_load_failed(
                scope.user_id,
                scope.tenant_id,
                collection,
                error_message,
            )
        )

    async def log_transactions_refreshed(self, scope: TenantScope, count: int) -> None:
        await self.log(
            AuditEventBuilder.transactions_refreshed(scope.user_id, scope.tenant_id, count)
        )

    async def log_record_written(
        self,
        event_type: AuditEventType,
        scope: TenantScope,
        collection: str,
        record_id: str,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful insert or update."""
        await self.log(
            AuditEventBuilder.record_written(
                event_type=event_type,
                user_id=scope.user_id,
                tenant_id=scope.tenant_id,
                collection=collection,
                record_id=record_id,
                description=description,
                details=details,
                correlation_id=correlation_id,
            )
        )

    async def log_remote_write_failed(
        self,
        scope: TenantScope,
        collection: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
        outcome_unknown: bool = False,
    ) -> None:
        await self.log(
            AuditEventBuilder.remote_write_failed(
                user_id=scope.user_id,
                tenant_id=scope.tenant_id,
                collection=collection,
                operation=operation,
                error_message=error_message,
                correlation_id=correlation_id,
                outcome_unknown=outcome_unknown,
            )
        )

    async def log_partial_failure(
        self,
        scope: TenantScope,
        operation: str,
        completed_step: str,
        failed_step: str,
        written_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.partial_compound_failure(
                user_id=scope.user_id,
                tenant_id=scope.tenant_id,
                operation=operation,
                completed_step=completed_step,
                failed_step=failed_step,
                written_id=written_id,
                error_message=error_message,
                correlation_id=correlation_id,
            )
        )

    async def log_assistant_queried(
        self,
        user_id: str,
        tenant_id: Optional[str],
        question: str,
        transactions_used: int,
        answered: bool,
    ) -> None:
        await self.log(
            AuditEventBuilder.assistant_queried(
                user_id, tenant_id, question, transactions_used, answered
            )
        )

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(
            AuditEventBuilder.system_error(
                error_type=error_type,
                error_message=error_message,
                details=details,
                correlation_id=correlation_id,
            )
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a compound operation (e.g., a payment).
    Pass it through both of its writes.
    """
    return uuid4()
