"""
Tests for LedgerState.

Covers the lifecycle guard, load, the compound writes and their partial
failures, cache ordering, refresh and pending reconciliation.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import (
    BudgetCategoryDraft,
    IncomeDraft,
    LedgerStatus,
    PaymentRequest,
    PendingKind,
    ResultStatus,
    TransactionDraft,
)
from fintrack.notifications import NotificationLevel
from fintrack.services.storage import (
    BUDGET_CATEGORIES,
    INCOME_SOURCES,
    TRANSACTIONS,
    OutcomeUnknownError,
)

from conftest import TODAY, FlakyBackend


def salary() -> IncomeDraft:
    return IncomeDraft(name="Salary", amount=Decimal("45000"), date=date(2025, 1, 1))


def lunch(category: str = "Food", **kwargs) -> PaymentRequest:
    return PaymentRequest(
        amount=Decimal("500"),
        description="lunch",
        category=category,
        merchant="X",
        **kwargs,
    )


async def seed_budget(store, scope, name="Food", amount="5000", spent=None):
    budget = await store.insert_budget(
        scope, BudgetCategoryDraft(name=name, budget=Decimal(amount))
    )
    if spent is not None:
        budget = await store.update_budget(scope, budget.id, {"spent": Decimal(spent)})
    return budget


async def seed_transaction(store, scope, amount, day=1, description="seed"):
    return await store.insert_transaction(
        scope,
        TransactionDraft(
            date=date(2025, 1, day),
            description=description,
            amount=Decimal(amount),
            category="Misc",
            mode="UPI",
            status="completed",
        ),
    )


class GatedBackend(FlakyBackend):
    """Blocks list and insert calls until the matching gate is opened."""

    def __init__(self):
        super().__init__()
        self.list_gate = asyncio.Event()
        self.insert_gate = asyncio.Event()
        self.list_gate.set()
        self.insert_gate.set()

    async def list_rows(self, *args, **kwargs):
        await self.list_gate.wait()
        return await super().list_rows(*args, **kwargs)

    async def insert_row(self, *args, **kwargs):
        await self.insert_gate.wait()
        return await super().insert_row(*args, **kwargs)


class TestLifecycleGuard:
    """Mutators outside READY report a condition and touch nothing."""

    @pytest.mark.asyncio
    async def test_unloaded_mutators_require_auth(self, ledger, backend):
        """Before load, every mutator returns AUTH_REQUIRED."""
        results = [
            await ledger.add_income(salary()),
            await ledger.add_budget(BudgetCategoryDraft(name="Food", budget=Decimal("100"))),
            await ledger.process_payment(lunch()),
            await ledger.refresh_transactions(),
        ]

        assert all(r.status == ResultStatus.AUTH_REQUIRED for r in results)
        assert not any(r.ok for r in results)
        assert backend.calls == []
        assert ledger.snapshot().transactions == []

    @pytest.mark.asyncio
    async def test_loading_mutators_not_ready(self, scope, audit_logger):
        """While the load is in flight, mutators return NOT_READY."""
        from fintrack.ledger import LedgerState
        from fintrack.services.storage import RemoteLedgerStore

        backend = GatedBackend()
        backend.list_gate.clear()
        ledger = LedgerState(scope, RemoteLedgerStore(backend), audit_logger=audit_logger)

        load = asyncio.create_task(ledger.load())
        await asyncio.sleep(0)
        assert ledger.status == LedgerStatus.LOADING

        result = await ledger.process_payment(lunch())
        assert result.status == ResultStatus.NOT_READY
        assert ("insert", TRANSACTIONS) not in backend.calls

        backend.list_gate.set()
        loaded = await load
        assert loaded.ok
        assert ledger.status == LedgerStatus.READY

    @pytest.mark.asyncio
    async def test_unload_clears_everything(self, ledger, store, scope):
        await seed_transaction(store, scope, "100")
        await ledger.load()
        assert ledger.transactions

        ledger.unload()

        assert ledger.status == LedgerStatus.UNLOADED
        snapshot = ledger.snapshot()
        assert snapshot.scope is None
        assert snapshot.budgets == snapshot.income == snapshot.transactions == []
        assert (await ledger.add_budget(
            BudgetCategoryDraft(name="Food", budget=Decimal("1"))
        )).status == ResultStatus.AUTH_REQUIRED


class TestLoad:
    """Initial load of the three collections."""

    @pytest.mark.asyncio
    async def test_load_populates_caches(self, ledger, store, scope, other_scope, audit_storage):
        await seed_budget(store, scope)
        await store.insert_income(scope, salary())
        await seed_transaction(store, scope, "45000")
        await seed_transaction(store, other_scope, "-99")

        result = await ledger.load()

        assert result.ok
        assert result.warnings == []
        assert ledger.status == LedgerStatus.READY
        assert len(ledger.budgets) == 1
        assert len(ledger.income) == 1
        assert [t.amount for t in ledger.transactions] == [Decimal("45000")]
        assert AuditEventType.LEDGER_LOADED.value in audit_storage.types()

    @pytest.mark.asyncio
    async def test_failed_collection_stays_empty(self, ledger, backend, store, scope, notifications):
        """One failing collection gives a warning, the rest load, state is READY."""
        await seed_budget(store, scope)
        await seed_transaction(store, scope, "100")
        backend.fail("list", INCOME_SOURCES)

        result = await ledger.load()

        assert result.ok
        assert ledger.status == LedgerStatus.READY
        assert len(result.warnings) == 1
        assert INCOME_SOURCES in result.warnings[0]
        assert ledger.income == []
        assert len(ledger.budgets) == 1
        assert len(ledger.transactions) == 1
        assert notifications.peek()[-1].level == NotificationLevel.WARNING


class TestAddIncome:
    """Income source plus mirror credit transaction."""

    @pytest.mark.asyncio
    async def test_salary_creates_income_and_credit(self, ledger, store, scope):
        await ledger.load()

        result = await ledger.add_income(salary())

        assert result.ok
        assert result.completed_steps == ["income_source", "transaction"]
        assert len(ledger.income) == 1
        assert len(ledger.transactions) == 1

        credit = ledger.transactions[0]
        assert credit.amount == Decimal("45000")
        assert credit.category == "Income"
        assert credit.description == "Salary Credit"
        assert credit.mode == "Bank Transfer"
        assert credit.status == "completed"
        assert credit.date == date(2025, 1, 1)

        assert len(await store.list_income(scope)) == 1
        assert len(await store.list_transactions(scope)) == 1
        assert ledger.total_income() == Decimal("45000")
        assert ledger.current_balance() == Decimal("45000")

    @pytest.mark.asyncio
    async def test_first_step_failure_changes_nothing(self, ledger, backend):
        await ledger.load()
        backend.fail("insert", INCOME_SOURCES)

        result = await ledger.add_income(salary())

        assert result.status == ResultStatus.REMOTE_WRITE_FAILED
        assert result.failed_step == "income_source"
        assert ledger.income == []
        assert ledger.transactions == []
        assert ("insert", TRANSACTIONS) not in backend.calls

    @pytest.mark.asyncio
    async def test_second_step_failure_is_partial(self, ledger, backend, store, scope, notifications, audit_storage):
        """Income saved, mirror transaction missing: reported, not swallowed."""
        await ledger.load()
        backend.fail("insert", TRANSACTIONS)

        result = await ledger.add_income(salary())

        assert result.status == ResultStatus.PARTIAL_COMPOUND_FAILURE
        assert result.completed_steps == ["income_source"]
        assert result.failed_step == "transaction"
        assert len(ledger.income) == 1
        assert ledger.transactions == []
        assert result.pending is not None
        assert result.pending.kind == PendingKind.INCOME_TRANSACTION
        assert result.pending.written_id == ledger.income[0].id
        assert ledger.snapshot().pending == [result.pending]
        assert notifications.peek()[-1].level == NotificationLevel.WARNING
        assert AuditEventType.PARTIAL_COMPOUND_FAILURE.value in audit_storage.types()

    @pytest.mark.asyncio
    async def test_retry_pending_writes_missing_transaction(self, ledger, backend, store, scope):
        await ledger.load()
        backend.fail("insert", TRANSACTIONS, times=1)
        partial = await ledger.add_income(salary())

        retried = await ledger.retry_pending(partial.pending.pending_id)

        assert retried.ok
        assert ledger.pending == []
        assert [t.description for t in ledger.transactions] == ["Salary Credit"]
        remote = await store.list_transactions(scope)
        assert [t.amount for t in remote] == [Decimal("45000")]

    @pytest.mark.asyncio
    async def test_retry_failure_keeps_pending(self, ledger, backend):
        await ledger.load()
        backend.fail("insert", TRANSACTIONS)
        partial = await ledger.add_income(salary())

        retried = await ledger.retry_pending(partial.pending.pending_id)

        assert retried.status == ResultStatus.REMOTE_WRITE_FAILED
        assert len(ledger.pending) == 1

    @pytest.mark.asyncio
    async def test_retry_unknown_pending_id(self, ledger, backend, notifications):
        """No write is attempted for an id that was never pending."""
        await ledger.load()
        notifications.drain()
        calls_before = list(backend.calls)

        result = await ledger.retry_pending("nope")

        assert result.status == ResultStatus.RECORD_NOT_FOUND
        assert backend.calls == calls_before
        notice = notifications.drain()[-1]
        assert notice.level == NotificationLevel.ERROR
        assert notice.title == "Retry failed"


class TestAddBudget:
    """Single insert with nothing spent."""

    @pytest.mark.asyncio
    async def test_add_budget(self, ledger, store, scope):
        await ledger.load()

        result = await ledger.add_budget(
            BudgetCategoryDraft(name="Food", budget=Decimal("5000"), color="#ff0000")
        )

        assert result.ok
        budget = ledger.budgets[0]
        assert budget.spent == Decimal("0")
        assert budget.color == "#ff0000"
        assert ledger.total_budget() == Decimal("5000")
        assert [b.id for b in await store.list_budgets(scope)] == [budget.id]

    @pytest.mark.asyncio
    async def test_add_budget_failure(self, ledger, backend, notifications):
        await ledger.load()
        backend.fail("insert", BUDGET_CATEGORIES)

        result = await ledger.add_budget(BudgetCategoryDraft(name="Food", budget=Decimal("1")))

        assert result.status == ResultStatus.REMOTE_WRITE_FAILED
        assert ledger.budgets == []
        assert notifications.peek()[-1].level == NotificationLevel.ERROR


class TestProcessPayment:
    """Debit transaction plus budget spent update."""

    @pytest.mark.asyncio
    async def test_food_payment(self, ledger, store, scope):
        """500 against Food with 1000 spent gives 1500 and a -500 transaction."""
        food = await seed_budget(store, scope, spent="1000")
        await ledger.load()

        result = await ledger.process_payment(lunch())

        assert result.ok
        assert result.completed_steps == ["transaction", "budget_update"]
        assert ledger.budgets[0].spent == Decimal("1500")
        debit = ledger.transactions[0]
        assert debit.amount == Decimal("-500")
        assert debit.description == "X - lunch"
        assert debit.mode == "UPI"
        assert debit.status == "completed"
        assert debit.date == TODAY

        remote = await store.list_budgets(scope)
        assert remote[0].id == food.id
        assert remote[0].spent == Decimal("1500")

    @pytest.mark.asyncio
    async def test_unknown_category_still_records_transaction(self, ledger, backend, store, scope):
        """Categoryless spending is valid and leaves every budget alone."""
        await seed_budget(store, scope, spent="1000")
        await ledger.load()

        result = await ledger.process_payment(lunch(category="Travel"))

        assert result.ok
        assert result.completed_steps == ["transaction"]
        assert len(ledger.transactions) == 1
        assert ledger.budgets[0].spent == Decimal("1000")
        assert ("update", BUDGET_CATEGORIES) not in backend.calls
        assert ledger.total_spent() == Decimal("500")

    @pytest.mark.asyncio
    async def test_duplicate_names_first_in_cache_order_wins(self, ledger):
        await ledger.load()
        await ledger.add_budget(BudgetCategoryDraft(name="Food", budget=Decimal("100")))
        await ledger.add_budget(BudgetCategoryDraft(name="Food", budget=Decimal("200")))

        await ledger.process_payment(lunch())

        first, second = ledger.budgets
        assert first.spent == Decimal("500")
        assert second.spent == Decimal("0")

    @pytest.mark.asyncio
    async def test_category_id_takes_precedence(self, ledger):
        await ledger.load()
        await ledger.add_budget(BudgetCategoryDraft(name="Food", budget=Decimal("100")))
        await ledger.add_budget(BudgetCategoryDraft(name="Food", budget=Decimal("200")))
        target = ledger.budgets[1]

        await ledger.process_payment(lunch(category_id=target.id))

        assert ledger.budgets[0].spent == Decimal("0")
        assert ledger.budgets[1].spent == Decimal("500")

    @pytest.mark.asyncio
    async def test_transaction_failure_aborts(self, ledger, backend, store, scope):
        await seed_budget(store, scope, spent="1000")
        await ledger.load()
        backend.fail("insert", TRANSACTIONS)

        result = await ledger.process_payment(lunch())

        assert result.status == ResultStatus.REMOTE_WRITE_FAILED
        assert result.failed_step == "transaction"
        assert ledger.transactions == []
        assert ledger.budgets[0].spent == Decimal("1000")
        assert ("update", BUDGET_CATEGORIES) not in backend.calls

    @pytest.mark.asyncio
    async def test_budget_update_failure_is_partial(self, ledger, backend, store, scope):
        await seed_budget(store, scope, spent="1000")
        await ledger.load()
        backend.fail("update", BUDGET_CATEGORIES, times=1)

        result = await ledger.process_payment(lunch())

        assert result.status == ResultStatus.PARTIAL_COMPOUND_FAILURE
        assert result.completed_steps == ["transaction"]
        assert result.failed_step == "budget_update"
        assert len(ledger.transactions) == 1
        assert ledger.budgets[0].spent == Decimal("1000")
        assert result.pending.kind == PendingKind.BUDGET_SPENT

        retried = await ledger.retry_pending(result.pending.pending_id)

        assert retried.ok
        assert ledger.budgets[0].spent == Decimal("1500")
        assert (await store.list_budgets(scope))[0].spent == Decimal("1500")

    @pytest.mark.asyncio
    async def test_timeout_is_outcome_unknown(self, ledger, backend, notifications):
        """A timed-out write is never reported as success."""
        await ledger.load()
        backend.fail("insert", TRANSACTIONS, OutcomeUnknownError(TRANSACTIONS, "insert"))

        result = await ledger.process_payment(lunch())

        assert result.status == ResultStatus.OUTCOME_UNKNOWN
        assert not result.ok
        assert ledger.transactions == []
        assert notifications.peek()[-1].level == NotificationLevel.WARNING

    @pytest.mark.asyncio
    async def test_second_step_timeout_keeps_no_pending(self, ledger, backend, store, scope):
        await seed_budget(store, scope)
        await ledger.load()
        backend.fail("update", BUDGET_CATEGORIES, OutcomeUnknownError(BUDGET_CATEGORIES, "update"))

        result = await ledger.process_payment(lunch())

        assert result.status == ResultStatus.OUTCOME_UNKNOWN
        assert result.completed_steps == ["transaction"]
        assert result.failed_step == "budget_update"
        assert result.pending is None
        assert ledger.pending == []

    @pytest.mark.asyncio
    async def test_steps_share_correlation_id(self, ledger, store, scope, audit_storage):
        await seed_budget(store, scope)
        await ledger.load()

        await ledger.process_payment(lunch())

        written = [
            e for e in audit_storage.events
            if e.event_type in (AuditEventType.PAYMENT_PROCESSED, AuditEventType.BUDGET_DEBITED)
        ]
        assert len(written) == 2
        assert written[0].correlation_id is not None
        assert written[0].correlation_id == written[1].correlation_id

    @pytest.mark.asyncio
    async def test_success_notification(self, ledger, notifications):
        await ledger.load()
        await ledger.process_payment(lunch())
        assert notifications.drain()[-1].title == "Payment processed successfully!"

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_stop_write(self, scope):
        """Cancelling the caller stops listening; the write still lands."""
        from fintrack.ledger import LedgerState
        from fintrack.services.storage import RemoteLedgerStore

        backend = GatedBackend()
        store = RemoteLedgerStore(backend)
        ledger = LedgerState(scope, store, today=lambda: TODAY)
        await ledger.load()

        backend.insert_gate.clear()
        caller = asyncio.create_task(ledger.process_payment(lunch()))
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        backend.insert_gate.set()
        for _ in range(20):
            await asyncio.sleep(0)

        assert len(await store.list_transactions(scope)) == 1
        assert len(ledger.transactions) == 1


class TestSignOutDuringWrite:
    """A ledger unloaded mid-write neither reports success nor refills its cache."""

    def _gated_ledger(self, scope, audit_logger):
        from fintrack.ledger import LedgerState
        from fintrack.services.storage import RemoteLedgerStore

        backend = GatedBackend()
        store = RemoteLedgerStore(backend)
        ledger = LedgerState(scope, store, audit_logger=audit_logger, today=lambda: TODAY)
        return backend, store, ledger

    @pytest.mark.asyncio
    async def test_payment_names_the_skipped_budget_update(self, scope, audit_logger, audit_storage):
        backend, store, ledger = self._gated_ledger(scope, audit_logger)
        food = await seed_budget(store, scope)
        await ledger.load()

        backend.insert_gate.clear()
        caller = asyncio.create_task(ledger.process_payment(lunch()))
        await asyncio.sleep(0)
        ledger.unload()
        backend.insert_gate.set()
        result = await caller

        assert result.status == ResultStatus.AUTH_REQUIRED
        assert not result.ok
        assert result.completed_steps == ["transaction"]
        assert result.failed_step == "budget_update"
        assert result.pending is None
        assert ledger.transactions == []
        assert ledger.budgets == []
        assert len(await store.list_transactions(scope)) == 1
        remote_budget = (await store.list_budgets(scope))[0]
        assert remote_budget.id == food.id
        assert remote_budget.spent == Decimal("0")
        assert AuditEventType.PARTIAL_COMPOUND_FAILURE.value in audit_storage.types()

    @pytest.mark.asyncio
    async def test_income_stops_before_credit_transaction(self, scope, audit_logger):
        backend, store, ledger = self._gated_ledger(scope, audit_logger)
        await ledger.load()

        backend.insert_gate.clear()
        caller = asyncio.create_task(ledger.add_income(salary()))
        await asyncio.sleep(0)
        ledger.unload()
        backend.insert_gate.set()
        result = await caller

        assert result.status == ResultStatus.AUTH_REQUIRED
        assert result.completed_steps == ["income_source"]
        assert result.failed_step == "transaction"
        assert ledger.income == []
        assert ledger.transactions == []
        assert len(await store.list_income(scope)) == 1
        assert await store.list_transactions(scope) == []

    @pytest.mark.asyncio
    async def test_budget_written_after_unload_stays_out_of_cache(self, scope, audit_logger):
        backend, store, ledger = self._gated_ledger(scope, audit_logger)
        await ledger.load()

        backend.insert_gate.clear()
        caller = asyncio.create_task(
            ledger.add_budget(BudgetCategoryDraft(name="Food", budget=Decimal("100")))
        )
        await asyncio.sleep(0)
        ledger.unload()
        backend.insert_gate.set()
        result = await caller

        assert result.status == ResultStatus.AUTH_REQUIRED
        assert result.failed_step is None
        assert result.completed_steps == ["budget_category"]
        assert ledger.budgets == []
        assert len(await store.list_budgets(scope)) == 1


class TestOrdering:
    """Prepend for income and transactions, append for budgets."""

    @pytest.mark.asyncio
    async def test_cache_order_after_mutators(self, ledger, store, scope):
        r1_income = await store.insert_income(
            scope, IncomeDraft(name="r1", amount=Decimal("1"), date=date(2025, 1, 1))
        )
        r2_income = await store.insert_income(
            scope, IncomeDraft(name="r2", amount=Decimal("2"), date=date(2025, 1, 2))
        )
        r1_txn = await seed_transaction(store, scope, "1", day=1)
        r2_txn = await seed_transaction(store, scope, "2", day=2)
        r1_budget = await seed_budget(store, scope, name="r1")
        r2_budget = await seed_budget(store, scope, name="r2")

        await ledger.load()
        # Loaded most recent first
        assert [i.id for i in ledger.income] == [r2_income.id, r1_income.id]

        income = await ledger.add_income(
            IncomeDraft(name="r3", amount=Decimal("3"), date=date(2025, 1, 3))
        )
        budget = await ledger.add_budget(BudgetCategoryDraft(name="r3", budget=Decimal("3")))
        r3_income, r3_txn = income.records
        r3_budget = budget.records[0]

        assert [i.id for i in ledger.income] == [r3_income.id, r2_income.id, r1_income.id]
        assert [t.id for t in ledger.transactions] == [r3_txn.id, r2_txn.id, r1_txn.id]
        assert [b.id for b in ledger.budgets] == [r2_budget.id, r1_budget.id, r3_budget.id]


class TestRefresh:
    """Wholesale reload of the transaction cache."""

    @pytest.mark.asyncio
    async def test_refresh_matches_remote(self, ledger, store, scope, other_scope):
        await seed_budget(store, scope)
        await ledger.load()
        await ledger.add_income(salary())
        await ledger.process_payment(lunch())
        await ledger.process_payment(lunch(category="Travel"))
        # Written by another device
        await seed_transaction(store, scope, "-75", description="elsewhere")
        await seed_transaction(store, other_scope, "-1")

        result = await ledger.refresh_transactions()

        assert result.ok
        remote_ids = {t.id for t in await store.list_transactions(scope)}
        assert {t.id for t in ledger.transactions} == remote_ids
        assert len(remote_ids) == 4

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_cache(self, ledger, backend, store, scope):
        await seed_transaction(store, scope, "10")
        await ledger.load()
        backend.fail("list", TRANSACTIONS)

        result = await ledger.refresh_transactions()

        assert result.status == ResultStatus.REMOTE_READ_FAILED
        assert len(ledger.transactions) == 1


class TestSnapshot:
    """Read-only copies handed to views."""

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self, ledger):
        await ledger.load()
        await ledger.add_budget(BudgetCategoryDraft(name="Food", budget=Decimal("100")))

        snapshot = ledger.snapshot()
        snapshot.budgets.clear()

        assert len(ledger.budgets) == 1
        assert ledger.snapshot().status == LedgerStatus.READY

    @pytest.mark.asyncio
    async def test_summary_accessors(self, ledger, store, scope):
        await seed_budget(store, scope, amount="1000")
        await ledger.load()
        await ledger.add_income(IncomeDraft(name="Pay", amount=Decimal("2000"), date=TODAY))
        await ledger.process_payment(lunch())

        summary = ledger.summary()
        assert summary.total_budget == ledger.total_budget() == Decimal("1000")
        assert summary.total_spent == Decimal("500")
        assert summary.budget_usage_percentage == ledger.budget_usage_percentage() == 50
        assert summary.savings_percentage == ledger.savings_percentage() == 75
