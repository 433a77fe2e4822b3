"""
Remote Ledger Store

Typed request/response adapter between the ledger engine and a RecordBackend.

RESPONSIBILITIES:
- Stamp every write with the session's (user_id, tenant_id)
- Filter every read and update by the same pair
- Turn backend rows into pydantic models
- Translate backend failures into RemoteWriteFailed / OutcomeUnknownError

It owns no state beyond its backend reference. There is no batching and no
multi-record transaction: each insert/update is one remote call that either
returns the persisted record or raises.
"""

from typing import Any, Optional, TypeVar

import structlog
from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from fintrack.models.ledger import (
    BudgetCategory,
    BudgetCategoryDraft,
    IncomeDraft,
    IncomeSource,
    RecordId,
    StoredRecord,
    TenantScope,
    Transaction,
    TransactionDraft,
)
from fintrack.models.planning import (
    MeterReading,
    MeterReadingDraft,
    Reminder,
    ReminderDraft,
    SavingsGoal,
    SavingsGoalDraft,
)
from fintrack.services.storage.interface import (
    BUDGET_CATEGORIES,
    INCOME_SOURCES,
    PROFILES,
    READINGS,
    REMINDERS,
    SAVINGS_GOALS,
    TRANSACTIONS,
    OutcomeUnknownError,
    RecordBackend,
    RecordNotFoundError,
    RemoteWriteFailed,
    Row,
    StorageError,
)


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=StoredRecord)

# Columns a patch may never touch
PROTECTED_COLUMNS = frozenset({"id", "user_id", "tenant_id", "created_at"})


class RemoteLedgerStore:
    """
    Scoped, typed access to the remote collections.

    Usage:
        store = RemoteLedgerStore(InMemoryRecordBackend())
        budgets = await store.list_budgets(scope)
    """

    def __init__(self, backend: RecordBackend):
        self._backend = backend

    # -------------------------------------------------------------------------
    # Generic plumbing
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse(model: type[RecordT], collection: str, row: Row) -> RecordT:
        try:
            return model.model_validate(row)
        except ValidationError as e:
            raise StorageError(f"Malformed {collection} record {row.get('id')}: {e}")

    async def _list(
        self,
        collection: str,
        model: type[RecordT],
        scope: TenantScope,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[RecordT]:
        rows = await self._backend.list_rows(
            collection,
            scope.as_filter(),
            order_by=order_by,
            descending=descending,
        )
        records = []
        for row in rows:
            try:
                records.append(self._parse(model, collection, row))
            except StorageError as e:
                # Skip malformed rows rather than failing the whole load
                logger.warning("malformed_row_skipped", collection=collection, error=str(e))
        return records

    async def _insert(
        self,
        collection: str,
        model: type[RecordT],
        scope: TenantScope,
        values: dict[str, Any],
    ) -> RecordT:
        row = to_jsonable_python(values)
        row.update(scope.as_filter())
        try:
            stored = await self._backend.insert_row(collection, row)
        except OutcomeUnknownError:
            raise
        except StorageError as e:
            raise RemoteWriteFailed(collection, "insert", str(e)) from e
        return self._parse(model, collection, stored)

    async def _update(
        self,
        collection: str,
        model: type[RecordT],
        scope: TenantScope,
        record_id: RecordId,
        patch: dict[str, Any],
    ) -> RecordT:
        forbidden = PROTECTED_COLUMNS.intersection(patch)
        if forbidden:
            raise ValueError(f"Cannot patch protected columns: {sorted(forbidden)}")
        filters = {"id": record_id, **scope.as_filter()}
        try:
            stored = await self._backend.update_row(
                collection,
                filters,
                to_jsonable_python(patch),
            )
        except (OutcomeUnknownError, RecordNotFoundError):
            raise
        except StorageError as e:
            raise RemoteWriteFailed(collection, "update", str(e)) from e
        return self._parse(model, collection, stored)

    async def _delete(
        self,
        collection: str,
        scope: TenantScope,
        record_id: RecordId,
    ) -> bool:
        try:
            return await self._backend.delete_row(
                collection,
                {"id": record_id, **scope.as_filter()},
            )
        except OutcomeUnknownError:
            raise
        except StorageError as e:
            raise RemoteWriteFailed(collection, "delete", str(e)) from e

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    async def find_tenant_id(self, user_id: str) -> Optional[str]:
        """Return the tenant id bound to a user's profile, if any."""
        rows = await self._backend.list_rows(PROFILES, {"user_id": user_id})
        for row in rows:
            if row.get("tenant_id"):
                return str(row["tenant_id"])
        return None

    # -------------------------------------------------------------------------
    # Budget categories
    # -------------------------------------------------------------------------

    async def list_budgets(self, scope: TenantScope) -> list[BudgetCategory]:
        return await self._list(BUDGET_CATEGORIES, BudgetCategory, scope)

    async def insert_budget(
        self,
        scope: TenantScope,
        draft: BudgetCategoryDraft,
    ) -> BudgetCategory:
        """Insert a budget category with `spent` starting at zero."""
        values = draft.model_dump()
        values["spent"] = 0
        return await self._insert(BUDGET_CATEGORIES, BudgetCategory, scope, values)

    async def update_budget(
        self,
        scope: TenantScope,
        budget_id: RecordId,
        patch: dict[str, Any],
    ) -> BudgetCategory:
        return await self._update(BUDGET_CATEGORIES, BudgetCategory, scope, budget_id, patch)

    # -------------------------------------------------------------------------
    # Income sources (no update path)
    # -------------------------------------------------------------------------

    async def list_income(self, scope: TenantScope) -> list[IncomeSource]:
        return await self._list(INCOME_SOURCES, IncomeSource, scope)

    async def insert_income(self, scope: TenantScope, draft: IncomeDraft) -> IncomeSource:
        return await self._insert(INCOME_SOURCES, IncomeSource, scope, draft.model_dump())

    # -------------------------------------------------------------------------
    # Transactions (append-only)
    # -------------------------------------------------------------------------

    async def list_transactions(self, scope: TenantScope) -> list[Transaction]:
        return await self._list(TRANSACTIONS, Transaction, scope)

    async def insert_transaction(
        self,
        scope: TenantScope,
        draft: TransactionDraft,
    ) -> Transaction:
        return await self._insert(TRANSACTIONS, Transaction, scope, draft.model_dump())

    # -------------------------------------------------------------------------
    # Savings goals
    # -------------------------------------------------------------------------

    async def list_savings_goals(self, scope: TenantScope) -> list[SavingsGoal]:
        return await self._list(SAVINGS_GOALS, SavingsGoal, scope)

    async def insert_savings_goal(
        self,
        scope: TenantScope,
        draft: SavingsGoalDraft,
    ) -> SavingsGoal:
        values = draft.model_dump()
        values["current_amount"] = 0
        values["status"] = "active"
        return await self._insert(SAVINGS_GOALS, SavingsGoal, scope, values)

    async def update_savings_goal(
        self,
        scope: TenantScope,
        goal_id: RecordId,
        patch: dict[str, Any],
    ) -> SavingsGoal:
        return await self._update(SAVINGS_GOALS, SavingsGoal, scope, goal_id, patch)

    # -------------------------------------------------------------------------
    # Reminders (soonest due first)
    # -------------------------------------------------------------------------

    async def list_reminders(self, scope: TenantScope) -> list[Reminder]:
        return await self._list(REMINDERS, Reminder, scope, order_by="due_date", descending=False)

    async def insert_reminder(self, scope: TenantScope, draft: ReminderDraft) -> Reminder:
        values = draft.model_dump()
        values["completed"] = False
        return await self._insert(REMINDERS, Reminder, scope, values)

    async def update_reminder(
        self,
        scope: TenantScope,
        reminder_id: RecordId,
        patch: dict[str, Any],
    ) -> Reminder:
        return await self._update(REMINDERS, Reminder, scope, reminder_id, patch)

    async def delete_reminder(self, scope: TenantScope, reminder_id: RecordId) -> bool:
        return await self._delete(REMINDERS, scope, reminder_id)

    # -------------------------------------------------------------------------
    # Meter readings (latest reading date first)
    # -------------------------------------------------------------------------

    async def list_readings(self, scope: TenantScope) -> list[MeterReading]:
        return await self._list(READINGS, MeterReading, scope, order_by="reading_date")

    async def insert_reading(
        self,
        scope: TenantScope,
        draft: MeterReadingDraft,
    ) -> MeterReading:
        values = draft.model_dump()
        values["consumption"] = draft.consumption
        values["total_cost"] = draft.total_cost
        return await self._insert(READINGS, MeterReading, scope, values)

    async def update_reading(
        self,
        scope: TenantScope,
        reading_id: RecordId,
        draft: MeterReadingDraft,
    ) -> MeterReading:
        patch = draft.model_dump()
        patch["consumption"] = draft.consumption
        patch["total_cost"] = draft.total_cost
        return await self._update(READINGS, MeterReading, scope, reading_id, patch)

    async def delete_reading(self, scope: TenantScope, reading_id: RecordId) -> bool:
        return await self._delete(READINGS, scope, reading_id)
