"""
Bill reminders, kept soonest-due first.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import LedgerResult, ResultStatus
from fintrack.models.planning import Reminder, ReminderDraft
from fintrack.planning.base import ScopedPlanner
from fintrack.services.storage import REMINDERS, StorageError


DUE_SOON_DAYS = 7
UPCOMING_DAYS = 30
UPCOMING_LIMIT = 3


def days_until_due(reminder: Reminder, today: Optional[date] = None) -> int:
    return (reminder.due_date - (today or date.today())).days


def status_text(reminder: Reminder, today: Optional[date] = None) -> str:
    if reminder.completed:
        return "Completed"

    days = days_until_due(reminder, today)
    if days < 0:
        return f"Overdue by {abs(days)} days"
    if days == 0:
        return "Due today"
    if days == 1:
        return "Due tomorrow"
    return f"Due in {days} days"


def total_upcoming(reminders: Iterable[Reminder]) -> Decimal:
    """Amount still to pay across open reminders."""
    return sum(
        (r.amount for r in reminders if not r.completed and r.amount),
        Decimal("0"),
    )


def due_soon_count(reminders: Iterable[Reminder], today: Optional[date] = None) -> int:
    """Open reminders due within a week. Overdue ones count too."""
    return sum(
        1 for r in reminders
        if not r.completed and days_until_due(r, today) <= DUE_SOON_DAYS
    )


def upcoming_bills(
    reminders: Iterable[Reminder],
    today: Optional[date] = None,
    days: int = UPCOMING_DAYS,
    limit: int = UPCOMING_LIMIT,
) -> list[Reminder]:
    """
    Dashboard list: open reminders due from today through `days` ahead.

    Overdue reminders are left out. Soonest first, at most `limit`.
    """
    window = [
        r for r in reminders
        if not r.completed and 0 <= days_until_due(r, today) <= days
    ]
    window.sort(key=lambda r: r.due_date)
    return window[:limit]


class ReminderBook(ScopedPlanner):
    """Bill reminders for one tenant scope."""

    collection = REMINDERS

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._reminders: list[Reminder] = []

    @property
    def reminders(self) -> list[Reminder]:
        return list(self._reminders)

    async def list_reminders(self) -> LedgerResult:
        try:
            reminders = await self._store.list_reminders(self._scope)
        except StorageError as e:
            return self._read_failed("list_reminders", e, "Failed to load reminders")

        self._reminders = reminders
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message=f"Loaded {len(reminders)} reminders",
            operation="list_reminders",
            records=list(reminders),
        )

    async def create_reminder(self, draft: ReminderDraft) -> LedgerResult:
        try:
            reminder = await self._store.insert_reminder(self._scope, draft)
        except StorageError as e:
            return await self._write_failed("create_reminder", e, "Failed to create reminder")

        self._reminders.append(reminder)
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.REMINDER_CREATED,
                self._scope,
                REMINDERS,
                reminder.id,
                f"Reminder '{reminder.title}' created",
                details={"due_date": reminder.due_date.isoformat()},
            )

        self._notifications.success("Reminder created successfully!")
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message="Reminder created",
            operation="create_reminder",
            completed_steps=["reminder"],
            records=[reminder],
        )

    async def mark_completed(self, reminder_id: str) -> LedgerResult:
        try:
            updated = await self._store.update_reminder(
                self._scope,
                reminder_id,
                {"completed": True},
            )
        except StorageError as e:
            return await self._write_failed("mark_completed", e, "Failed to update reminder")

        self._reminders = [updated if r.id == updated.id else r for r in self._reminders]
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.REMINDER_COMPLETED,
                self._scope,
                REMINDERS,
                updated.id,
                f"Reminder '{updated.title}' completed",
            )

        self._notifications.success("Reminder marked as completed!")
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message="Reminder completed",
            operation="mark_completed",
            completed_steps=["reminder"],
            records=[updated],
        )

    async def delete_reminder(self, reminder_id: str) -> LedgerResult:
        try:
            deleted = await self._store.delete_reminder(self._scope, reminder_id)
        except StorageError as e:
            return await self._write_failed("delete_reminder", e, "Failed to delete reminder")

        if not deleted:
            return self._missing("delete_reminder", reminder_id, "Failed to delete reminder")

        self._reminders = [r for r in self._reminders if r.id != reminder_id]
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.REMINDER_DELETED,
                self._scope,
                REMINDERS,
                reminder_id,
                "Reminder deleted",
            )

        self._notifications.success("Reminder deleted successfully!")
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message="Reminder deleted",
            operation="delete_reminder",
            completed_steps=["reminder"],
        )
