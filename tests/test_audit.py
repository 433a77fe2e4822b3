"""
Tests for the audit logger and the notification center.
"""

import pytest

from fintrack.audit import AuditLogger, create_correlation_id
from fintrack.models.audit import AuditEventBuilder, AuditEventType
from fintrack.notifications import NotificationCenter, NotificationLevel
from fintrack.services.storage import AuditStorageInterface


class BrokenAuditStorage(AuditStorageInterface):
    async def append_event(self, event):
        raise RuntimeError("sheet unavailable")


class TestAuditLogger:
    """Local logging plus optional persistence."""

    @pytest.mark.asyncio
    async def test_local_only(self):
        logger = AuditLogger()
        assert await logger.log(AuditEventBuilder.session_ended("u", None)) is True

    @pytest.mark.asyncio
    async def test_persists_events(self, audit_logger, audit_storage, scope):
        correlation_id = create_correlation_id()

        await audit_logger.log_record_written(
            AuditEventType.BUDGET_ADDED,
            scope,
            "budget_categories",
            "1",
            "Budget added",
            correlation_id=correlation_id,
        )

        event = audit_storage.events[-1]
        assert event.tenant_id == scope.tenant_id
        assert event.entity_type == "budget_categories"
        assert event.correlation_id == correlation_id

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_raise(self, scope):
        """A failing audit store never breaks the ledger flow."""
        logger = AuditLogger(BrokenAuditStorage())

        assert await logger.log(AuditEventBuilder.session_started("u", "t")) is False

    @pytest.mark.asyncio
    async def test_partial_failure_event(self, audit_logger, audit_storage, scope):
        await audit_logger.log_partial_failure(
            scope,
            "add_income",
            completed_step="income_source",
            failed_step="transaction",
            written_id="5",
            error_message="boom",
        )

        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.PARTIAL_COMPOUND_FAILURE
        assert event.error_message == "boom"


class TestNotificationCenter:
    """Transient messages for the UI."""

    def test_drain_empties(self):
        center = NotificationCenter()
        center.success("Saved")
        center.error("Failed", "details")

        items = center.drain()

        assert [n.level for n in items] == [NotificationLevel.SUCCESS, NotificationLevel.ERROR]
        assert items[0].message == "Saved"
        assert center.drain() == []

    def test_history_is_bounded(self):
        center = NotificationCenter(history=2)
        for i in range(5):
            center.warning(f"w{i}")

        assert [n.title for n in center.peek()] == ["w3", "w4"]
