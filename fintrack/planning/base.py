"""
Shared plumbing for the planning services.

Planners follow the same contract as LedgerState: they cache what the store
confirmed, return a LedgerResult instead of raising on remote failures, and
post a notification for every outcome.
"""

from typing import Optional
from uuid import UUID

import structlog

from fintrack.audit import AuditLogger
from fintrack.config import get_settings
from fintrack.models.ledger import LedgerResult, ResultStatus, TenantScope
from fintrack.notifications import NotificationCenter
from fintrack.services.storage import OutcomeUnknownError, RemoteLedgerStore, StorageError


logger = structlog.get_logger(__name__)


class ScopedPlanner:
    """Base for services that manage one tenant-scoped planning collection."""

    collection: str = ""

    def __init__(
        self,
        scope: TenantScope,
        store: RemoteLedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        notifications: Optional[NotificationCenter] = None,
    ):
        self._scope = scope
        self._store = store
        self._audit_logger = audit_logger
        self._notifications = notifications or NotificationCenter(
            history=get_settings().ledger.notification_history
        )

    @property
    def scope(self) -> TenantScope:
        return self._scope

    def _read_failed(self, operation: str, error: StorageError, title: str) -> LedgerResult:
        logger.warning("planner_read_failed", collection=self.collection, error=str(error))
        self._notifications.error(title, str(error))
        return LedgerResult(
            status=ResultStatus.REMOTE_READ_FAILED,
            message=f"{title}: {error}",
            operation=operation,
        )

    async def _write_failed(
        self,
        operation: str,
        error: StorageError,
        title: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerResult:
        unknown = isinstance(error, OutcomeUnknownError)
        logger.error(
            "planner_write_failed",
            collection=self.collection,
            operation=operation,
            outcome_unknown=unknown,
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_remote_write_failed(
                self._scope,
                self.collection,
                operation,
                str(error),
                correlation_id=correlation_id,
                outcome_unknown=unknown,
            )
        if unknown:
            message = f"{title}: the store did not confirm the write. Refresh to check."
            self._notifications.warning(title, message)
            status = ResultStatus.OUTCOME_UNKNOWN
        else:
            message = f"{title}: {error}"
            self._notifications.error(title, message)
            status = ResultStatus.REMOTE_WRITE_FAILED
        return LedgerResult(
            status=status,
            message=message,
            operation=operation,
            failed_step=self.collection,
        )

    def _missing(self, operation: str, record_id: str, title: str) -> LedgerResult:
        self._notifications.error(title, "Record not found")
        return LedgerResult(
            status=ResultStatus.RECORD_NOT_FOUND,
            message=f"No {self.collection} record with id {record_id}",
            operation=operation,
        )
