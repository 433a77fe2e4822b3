"""
Application wiring for FinTrack

Builds every long-lived component once and hands them out as a bundle:
1. Record backend (Google Sheets when configured, in-memory otherwise)
2. RemoteLedgerStore, TenantResolver, AuditLogger, NotificationCenter
3. SessionLifecycleBridge, which owns the per-session LedgerState
4. FinancialAssistant

DESIGN DECISION: Nothing here is a module-level global. The session-scoped
pieces (the ledger and the planners) exist only while someone is signed in,
and are reached through the bundle.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from fintrack.agents import FinancialAssistant
from fintrack.audit import AuditLogger
from fintrack.config import get_settings
from fintrack.ledger import (
    IdentityProvider,
    LedgerState,
    SessionLifecycleBridge,
    TenantResolver,
)
from fintrack.notifications import NotificationCenter
from fintrack.planning import MeterReadingLog, ReminderBook, SavingsPlanner
from fintrack.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordBackend,
    InMemoryRecordBackend,
    RecordBackend,
    RemoteLedgerStore,
)


logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    """Everything a UI layer needs, built once per process."""

    backend: RecordBackend
    store: RemoteLedgerStore
    resolver: TenantResolver
    audit_logger: AuditLogger
    notifications: NotificationCenter
    bridge: SessionLifecycleBridge
    assistant: FinancialAssistant
    sheets_client: Optional[GoogleSheetsClient] = None

    @property
    def ledger(self) -> Optional[LedgerState]:
        return self.bridge.ledger

    def savings_planner(self) -> Optional[SavingsPlanner]:
        """Savings goals for the signed-in scope, or None when signed out."""
        if self.ledger is None:
            return None
        return SavingsPlanner(
            self.ledger.scope, self.store, self.audit_logger, self.notifications
        )

    def reminder_book(self) -> Optional[ReminderBook]:
        if self.ledger is None:
            return None
        return ReminderBook(
            self.ledger.scope, self.store, self.audit_logger, self.notifications
        )

    def reading_log(self) -> Optional[MeterReadingLog]:
        if self.ledger is None:
            return None
        return MeterReadingLog(
            self.ledger.scope, self.store, self.audit_logger, self.notifications
        )


def create_app_components(
    identity_provider: IdentityProvider,
    use_storage: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        identity_provider: Source of sign-in / sign-out events.
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for testing without storage.

    The bridge is created but not started; call `await bridge.start()`.
    """
    settings = get_settings()
    sheets_client = None
    backend: RecordBackend

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            backend = GoogleSheetsRecordBackend(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except ValueError as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            backend = InMemoryRecordBackend()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        backend = InMemoryRecordBackend()
        audit_logger = AuditLogger()  # Local-only logging

    ledger_settings = settings.ledger
    store = RemoteLedgerStore(backend)
    resolver = TenantResolver(store)
    notifications = NotificationCenter(history=ledger_settings.notification_history)

    bridge = SessionLifecycleBridge(
        identity_provider,
        resolver,
        store,
        audit_logger=audit_logger,
        notifications=notifications,
        settings=ledger_settings,
    )
    assistant = FinancialAssistant(resolver, store, audit_logger=audit_logger)

    return AppComponents(
        backend=backend,
        store=store,
        resolver=resolver,
        audit_logger=audit_logger,
        notifications=notifications,
        bridge=bridge,
        assistant=assistant,
        sheets_client=sheets_client,
    )
