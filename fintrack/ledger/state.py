"""
Session-scoped Ledger State

Owns the cached copies of the three ledger collections for one tenant scope
and is the only component that writes them.

Flows:
1. Add income   (income source → mirror credit transaction)
2. Add budget   (single insert)
3. Payment      (debit transaction → budget `spent` update)
4. Refresh      (re-list transactions, replace the cache)

DESIGN DECISION: The cache only ever reflects what the remote store
confirmed. There are no optimistic updates and no rollbacks. When the second
write of a compound flow fails, the first write stays, and a
PendingReconciliation records what is missing so it can be retried on request.

Every flow re-checks the status after each remote call. Once the ledger has
been unloaded, confirmed writes stay remote but never reach the cache, and
the result is AUTH_REQUIRED naming any step that was skipped.

Every public mutator returns a LedgerResult instead of raising, posts a
notification and writes audit events under one correlation id.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID, uuid4

import structlog

from fintrack.audit import AuditLogger, create_correlation_id
from fintrack.config import get_settings
from fintrack.config.settings import LedgerSettings
from fintrack.ledger import aggregates
from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import (
    BudgetCategory,
    BudgetCategoryDraft,
    IncomeDraft,
    IncomeSource,
    LedgerResult,
    LedgerSnapshot,
    LedgerStatus,
    LedgerSummary,
    PaymentRequest,
    PendingKind,
    PendingReconciliation,
    ResultStatus,
    StoredRecord,
    TenantScope,
    Transaction,
    TransactionDraft,
)
from fintrack.notifications import NotificationCenter
from fintrack.services.storage import (
    BUDGET_CATEGORIES,
    INCOME_SOURCES,
    TRANSACTIONS,
    OutcomeUnknownError,
    RemoteLedgerStore,
    StorageError,
)


logger = structlog.get_logger(__name__)


class LedgerState:
    """
    Cached ledger for one tenant scope.

    Usage:
        ledger = LedgerState(scope, store)
        await ledger.load()
        result = await ledger.process_payment(payment)
        if not result.ok:
            ...
    """

    def __init__(
        self,
        scope: TenantScope,
        store: RemoteLedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        notifications: Optional[NotificationCenter] = None,
        settings: Optional[LedgerSettings] = None,
        today: Callable[[], date] = date.today,
    ):
        self._scope = scope
        self._store = store
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().ledger
        self._notifications = notifications or NotificationCenter(
            history=self._settings.notification_history
        )
        self._today = today

        self._status = LedgerStatus.UNLOADED
        self._budgets: list[BudgetCategory] = []
        self._income: list[IncomeSource] = []
        self._transactions: list[Transaction] = []
        self._pending: dict[str, PendingReconciliation] = {}

    # =========================================================================
    # Read side
    # =========================================================================

    @property
    def scope(self) -> TenantScope:
        return self._scope

    @property
    def status(self) -> LedgerStatus:
        return self._status

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    @property
    def budgets(self) -> list[BudgetCategory]:
        return list(self._budgets)

    @property
    def income(self) -> list[IncomeSource]:
        return list(self._income)

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    @property
    def pending(self) -> list[PendingReconciliation]:
        return list(self._pending.values())

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            status=self._status,
            scope=self._scope if self._status != LedgerStatus.UNLOADED else None,
            budgets=[b.model_copy() for b in self._budgets],
            income=[i.model_copy() for i in self._income],
            transactions=[t.model_copy() for t in self._transactions],
            pending=[p.model_copy(deep=True) for p in self._pending.values()],
        )

    def total_budget(self) -> Decimal:
        return aggregates.total_budget(self._budgets)

    def total_spent(self) -> Decimal:
        return aggregates.total_spent(self._transactions)

    def total_income(self) -> Decimal:
        return aggregates.total_income(self._transactions)

    def current_balance(self) -> Decimal:
        return aggregates.current_balance(self._transactions)

    def budget_usage_percentage(self) -> int:
        return aggregates.budget_usage_percentage(self._budgets, self._transactions)

    def savings_percentage(self) -> int:
        return aggregates.savings_percentage(self._transactions)

    def summary(self) -> LedgerSummary:
        return aggregates.summarize(self._budgets, self._transactions)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def load(self) -> LedgerResult:
        """
        Load all three collections for the scope.

        A collection that fails to load stays empty and is reported in
        `warnings`; the ledger still becomes READY.
        """
        self._status = LedgerStatus.LOADING
        logger.info("ledger_loading", user_id=self._scope.user_id, tenant_id=self._scope.tenant_id)

        loaded: dict[str, list] = {}
        warnings: list[str] = []
        for collection, loader in (
            (BUDGET_CATEGORIES, self._store.list_budgets),
            (INCOME_SOURCES, self._store.list_income),
            (TRANSACTIONS, self._store.list_transactions),
        ):
            try:
                loaded[collection] = await loader(self._scope)
            except StorageError as e:
                loaded[collection] = []
                warnings.append(f"Failed to load {collection}: {e}")
                logger.warning("collection_load_failed", collection=collection, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_collection_load_failed(
                        self._scope, collection, str(e)
                    )

        if self._status != LedgerStatus.LOADING:
            # Unloaded while the reads were in flight
            return self._result(
                ResultStatus.AUTH_REQUIRED,
                "Session ended before the ledger finished loading",
                "load",
            )

        self._budgets = loaded[BUDGET_CATEGORIES]
        self._income = loaded[INCOME_SOURCES]
        self._transactions = loaded[TRANSACTIONS]
        self._status = LedgerStatus.READY

        counts = {name: len(records) for name, records in loaded.items()}
        if self._audit_logger:
            await self._audit_logger.log_ledger_loaded(self._scope, counts)

        if warnings:
            self._notifications.warning("Some data could not be loaded", "; ".join(warnings))
            message = "Ledger loaded with errors"
        else:
            message = "Ledger loaded"
        return self._result(ResultStatus.SUCCESS, message, "load", warnings=warnings)

    def unload(self) -> None:
        """Drop every cached record and return to UNLOADED."""
        self._budgets = []
        self._income = []
        self._transactions = []
        self._pending.clear()
        self._status = LedgerStatus.UNLOADED
        logger.info("ledger_unloaded", user_id=self._scope.user_id)

    # =========================================================================
    # Mutators
    # =========================================================================

    async def add_income(self, draft: IncomeDraft) -> LedgerResult:
        """Record an income source and its mirror credit transaction."""
        blocked = self._check_ready("add_income")
        if blocked:
            return blocked
        return await asyncio.shield(self._add_income(draft))

    async def add_budget(self, draft: BudgetCategoryDraft) -> LedgerResult:
        """Create a budget category with nothing spent yet."""
        blocked = self._check_ready("add_budget")
        if blocked:
            return blocked
        return await asyncio.shield(self._add_budget(draft))

    async def process_payment(self, payment: PaymentRequest) -> LedgerResult:
        """Record a debit transaction and charge it to the matching budget."""
        blocked = self._check_ready("process_payment")
        if blocked:
            return blocked
        return await asyncio.shield(self._process_payment(payment))

    async def refresh_transactions(self) -> LedgerResult:
        """Re-list transactions and replace the cache wholesale."""
        blocked = self._check_ready("refresh_transactions")
        if blocked:
            return blocked

        try:
            transactions = await self._store.list_transactions(self._scope)
        except StorageError as e:
            logger.warning("transactions_refresh_failed", error=str(e))
            self._notifications.error("Failed to refresh transactions", str(e))
            return self._result(
                ResultStatus.REMOTE_READ_FAILED,
                f"Failed to refresh transactions: {e}",
                "refresh_transactions",
            )

        # A sign-out may have landed while the read was in flight
        if self._status != LedgerStatus.READY:
            return self._result(
                ResultStatus.AUTH_REQUIRED,
                "Session ended before the refresh completed",
                "refresh_transactions",
            )

        self._transactions = transactions
        if self._audit_logger:
            await self._audit_logger.log_transactions_refreshed(
                self._scope, len(transactions)
            )
        return self._result(
            ResultStatus.SUCCESS,
            "Transactions refreshed",
            "refresh_transactions",
            records=list(transactions),
        )

    async def retry_pending(self, pending_id: str) -> LedgerResult:
        """
        Re-issue the missing second write of a partial compound failure.

        Runs once per call. The pending record is dropped only on success.
        """
        blocked = self._check_ready("retry_pending")
        if blocked:
            return blocked

        pending = self._pending.get(pending_id)
        if pending is None:
            self._notifications.error("Retry failed", "Nothing left to reconcile")
            return self._result(
                ResultStatus.RECORD_NOT_FOUND,
                f"No pending reconciliation with id {pending_id}",
                "retry_pending",
            )
        return await asyncio.shield(self._retry_pending(pending))

    # =========================================================================
    # Flow implementations
    # =========================================================================

    async def _add_income(self, draft: IncomeDraft) -> LedgerResult:
        operation = "add_income"
        correlation_id = create_correlation_id()

        # Step 1: income source
        try:
            income = await self._store.insert_income(self._scope, draft)
        except StorageError as e:
            return await self._write_failed(
                operation, "income_source", INCOME_SOURCES, "insert", e, correlation_id,
                title="Failed to add income",
            )
        if self._status != LedgerStatus.READY:
            return await self._session_ended(
                operation, ["income_source"], [income], correlation_id, failed_step="transaction"
            )

        self._income.insert(0, income)
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.INCOME_ADDED,
                self._scope,
                INCOME_SOURCES,
                income.id,
                f"Income '{income.name}' added",
                details={"amount": str(income.amount)},
                correlation_id=correlation_id,
            )

        # Step 2: mirror credit transaction
        if self._status != LedgerStatus.READY:
            return await self._session_ended(
                operation, ["income_source"], [income], correlation_id, failed_step="transaction"
            )
        credit = self._income_transaction(draft)
        try:
            transaction = await self._store.insert_transaction(self._scope, credit)
        except StorageError as e:
            return await self._partial_failure(
                operation=operation,
                completed_step="income_source",
                failed_step="transaction",
                written=income,
                kind=PendingKind.INCOME_TRANSACTION,
                payload=credit.model_dump(mode="json"),
                error=e,
                correlation_id=correlation_id,
            )
        if self._status != LedgerStatus.READY:
            return await self._session_ended(
                operation, ["income_source", "transaction"], [income, transaction], correlation_id
            )

        self._transactions.insert(0, transaction)
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.INCOME_ADDED,
                self._scope,
                TRANSACTIONS,
                transaction.id,
                f"Credit transaction for income '{income.name}'",
                details={"amount": str(transaction.amount), "income_id": income.id},
                correlation_id=correlation_id,
            )

        self._notifications.success("Income added successfully!")
        return self._result(
            ResultStatus.SUCCESS,
            "Income added successfully",
            operation,
            completed_steps=["income_source", "transaction"],
            records=[income, transaction],
        )

    async def _add_budget(self, draft: BudgetCategoryDraft) -> LedgerResult:
        operation = "add_budget"
        correlation_id = create_correlation_id()

        try:
            budget = await self._store.insert_budget(self._scope, draft)
        except StorageError as e:
            return await self._write_failed(
                operation, "budget_category", BUDGET_CATEGORIES, "insert", e, correlation_id,
                title="Failed to add budget category",
            )
        if self._status != LedgerStatus.READY:
            return await self._session_ended(operation, ["budget_category"], [budget], correlation_id)

        self._budgets.append(budget)
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.BUDGET_ADDED,
                self._scope,
                BUDGET_CATEGORIES,
                budget.id,
                f"Budget category '{budget.name}' added",
                details={"budget": str(budget.budget)},
                correlation_id=correlation_id,
            )

        self._notifications.success("Budget category added successfully!")
        return self._result(
            ResultStatus.SUCCESS,
            "Budget category added successfully",
            operation,
            completed_steps=["budget_category"],
            records=[budget],
        )

    async def _process_payment(self, payment: PaymentRequest) -> LedgerResult:
        operation = "process_payment"
        correlation_id = create_correlation_id()

        # Step 1: debit transaction
        debit = TransactionDraft(
            date=self._today(),
            description=f"{payment.merchant} - {payment.description}",
            amount=-payment.amount,
            category=payment.category,
            mode=self._settings.payment_mode,
            status=self._settings.completed_status,
        )
        try:
            transaction = await self._store.insert_transaction(self._scope, debit)
        except StorageError as e:
            return await self._write_failed(
                operation, "transaction", TRANSACTIONS, "insert", e, correlation_id,
                title="Failed to process payment",
            )
        if self._status != LedgerStatus.READY:
            # The budget cache is gone, so a match cannot be ruled out
            return await self._session_ended(
                operation, ["transaction"], [transaction], correlation_id, failed_step="budget_update"
            )

        self._transactions.insert(0, transaction)
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.PAYMENT_PROCESSED,
                self._scope,
                TRANSACTIONS,
                transaction.id,
                f"Payment to {payment.merchant}",
                details={"amount": str(payment.amount), "category": payment.category},
                correlation_id=correlation_id,
            )

        # Step 2: charge the matching budget, if any
        if self._status != LedgerStatus.READY:
            return await self._session_ended(
                operation, ["transaction"], [transaction], correlation_id, failed_step="budget_update"
            )
        budget = self._find_budget(payment)
        if budget is None:
            logger.info("payment_without_budget", category=payment.category)
            self._notifications.success("Payment processed successfully!")
            return self._result(
                ResultStatus.SUCCESS,
                "Payment processed; no budget category matched",
                operation,
                completed_steps=["transaction"],
                records=[transaction],
            )

        try:
            updated = await self._store.update_budget(
                self._scope,
                budget.id,
                {"spent": budget.spent + payment.amount},
            )
        except StorageError as e:
            return await self._partial_failure(
                operation=operation,
                completed_step="transaction",
                failed_step="budget_update",
                written=transaction,
                kind=PendingKind.BUDGET_SPENT,
                payload={"budget_id": budget.id, "amount": str(payment.amount)},
                error=e,
                correlation_id=correlation_id,
            )
        if self._status != LedgerStatus.READY:
            return await self._session_ended(
                operation, ["transaction", "budget_update"], [transaction, updated], correlation_id
            )

        self._replace_budget(updated)
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.BUDGET_DEBITED,
                self._scope,
                BUDGET_CATEGORIES,
                updated.id,
                f"Budget '{updated.name}' spent updated",
                details={"previous_spent": str(budget.spent), "spent": str(updated.spent)},
                correlation_id=correlation_id,
            )

        self._notifications.success("Payment processed successfully!")
        return self._result(
            ResultStatus.SUCCESS,
            "Payment processed successfully",
            operation,
            completed_steps=["transaction", "budget_update"],
            records=[transaction, updated],
        )

    async def _retry_pending(self, pending: PendingReconciliation) -> LedgerResult:
        operation = "retry_pending"
        correlation_id = create_correlation_id()

        if pending.kind == PendingKind.INCOME_TRANSACTION:
            collection = TRANSACTIONS
            try:
                record = await self._store.insert_transaction(
                    self._scope,
                    TransactionDraft.model_validate(pending.payload),
                )
            except StorageError as e:
                return await self._write_failed(
                    operation, "transaction", collection, "insert", e, correlation_id,
                    title="Retry failed",
                )
            if self._status != LedgerStatus.READY:
                return await self._session_ended(
                    operation, [pending.kind.value], [record], correlation_id
                )
            self._transactions.insert(0, record)
        else:
            collection = BUDGET_CATEGORIES
            budget_id = pending.payload["budget_id"]
            budget = next((b for b in self._budgets if b.id == budget_id), None)
            if budget is None:
                self._notifications.error(
                    "Retry failed",
                    "The budget category is no longer in the ledger",
                )
                return self._result(
                    ResultStatus.RECORD_NOT_FOUND,
                    f"Budget category {budget_id} is no longer in the ledger",
                    operation,
                    pending=pending,
                )
            try:
                record = await self._store.update_budget(
                    self._scope,
                    budget.id,
                    {"spent": budget.spent + Decimal(pending.payload["amount"])},
                )
            except StorageError as e:
                return await self._write_failed(
                    operation, "budget_update", collection, "update", e, correlation_id,
                    title="Retry failed",
                )
            if self._status != LedgerStatus.READY:
                return await self._session_ended(
                    operation, [pending.kind.value], [record], correlation_id
                )
            self._replace_budget(record)

        del self._pending[pending.pending_id]
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.RECONCILIATION_RETRIED,
                self._scope,
                collection,
                record.id,
                f"Missing {pending.kind.value} write re-issued",
                details={"pending_id": pending.pending_id, "written_id": pending.written_id},
                correlation_id=correlation_id,
            )

        self._notifications.success("Ledger reconciled")
        return self._result(
            ResultStatus.SUCCESS,
            "Missing write completed",
            operation,
            completed_steps=[pending.kind.value],
            records=[record],
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_ready(self, operation: str) -> Optional[LedgerResult]:
        if self._status == LedgerStatus.UNLOADED:
            self._notifications.error("User not authenticated or tenant ID not found")
            return self._result(
                ResultStatus.AUTH_REQUIRED,
                "User not authenticated or tenant ID not found",
                operation,
            )
        if self._status == LedgerStatus.LOADING:
            self._notifications.warning("Ledger is still loading, try again shortly")
            return self._result(
                ResultStatus.NOT_READY,
                "Ledger is still loading",
                operation,
            )
        return None

    def _income_transaction(self, draft: IncomeDraft) -> TransactionDraft:
        return TransactionDraft(
            date=draft.date,
            description=f"{draft.name} Credit",
            amount=draft.amount,
            category=self._settings.income_category,
            mode=self._settings.income_mode,
            status=self._settings.completed_status,
        )

    def _find_budget(self, payment: PaymentRequest) -> Optional[BudgetCategory]:
        """Match by explicit id first, then by first name match in cache order."""
        if payment.category_id:
            for budget in self._budgets:
                if budget.id == payment.category_id:
                    return budget
        for budget in self._budgets:
            if budget.name == payment.category:
                return budget
        return None

    def _replace_budget(self, updated: BudgetCategory) -> None:
        self._budgets = [
            updated if budget.id == updated.id else budget
            for budget in self._budgets
        ]

    async def _session_ended(
        self,
        operation: str,
        completed_steps: list[str],
        records: list[StoredRecord],
        correlation_id: UUID,
        failed_step: Optional[str] = None,
    ) -> LedgerResult:
        """
        The ledger was unloaded while a write was in flight.

        Confirmed writes stay in the store but never reach the cache. A step
        left undone is audited like any other partial failure.
        """
        if failed_step is None:
            logger.info("write_confirmed_after_unload", operation=operation)
            return self._result(
                ResultStatus.AUTH_REQUIRED,
                "Session ended before the ledger was updated",
                operation,
                completed_steps=completed_steps,
                records=records,
            )

        completed_step = completed_steps[-1]
        message = f"Session ended after {completed_step} was saved; {failed_step} was not applied"
        logger.warning(
            "compound_write_interrupted",
            operation=operation,
            completed_step=completed_step,
            failed_step=failed_step,
            written_id=records[-1].id,
        )
        if self._audit_logger:
            await self._audit_logger.log_partial_failure(
                self._scope,
                operation,
                completed_step,
                failed_step,
                records[-1].id,
                message,
                correlation_id=correlation_id,
            )
        self._notifications.warning("Partially saved", message)
        return self._result(
            ResultStatus.AUTH_REQUIRED,
            message,
            operation,
            completed_steps=completed_steps,
            failed_step=failed_step,
            records=records,
        )

    async def _write_failed(
        self,
        operation: str,
        step: str,
        collection: str,
        action: str,
        error: StorageError,
        correlation_id: UUID,
        title: str,
    ) -> LedgerResult:
        """First (or only) write of a flow failed; nothing changed locally."""
        unknown = isinstance(error, OutcomeUnknownError)
        logger.error(
            "remote_write_failed",
            operation=operation,
            collection=collection,
            outcome_unknown=unknown,
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_remote_write_failed(
                self._scope,
                collection,
                f"{operation}:{action}",
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
        return self._result(status, message, operation, failed_step=step)

    async def _partial_failure(
        self,
        operation: str,
        completed_step: str,
        failed_step: str,
        written: StoredRecord,
        kind: PendingKind,
        payload: dict,
        error: StorageError,
        correlation_id: UUID,
    ) -> LedgerResult:
        """
        Second write of a compound flow failed after the first succeeded.

        When the second write timed out it may still have landed, so no
        pending record is kept and the caller is told the outcome is unknown.
        """
        unknown = isinstance(error, OutcomeUnknownError)
        logger.warning(
            "partial_compound_failure",
            operation=operation,
            completed_step=completed_step,
            failed_step=failed_step,
            written_id=written.id,
            outcome_unknown=unknown,
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_partial_failure(
                self._scope,
                operation,
                completed_step,
                failed_step,
                written.id,
                str(error),
                correlation_id=correlation_id,
            )

        if unknown:
            message = (
                f"{completed_step} was saved but {failed_step} was not confirmed. "
                "Refresh to check."
            )
            self._notifications.warning("Partially saved", message)
            return self._result(
                ResultStatus.OUTCOME_UNKNOWN,
                message,
                operation,
                completed_steps=[completed_step],
                failed_step=failed_step,
                records=[written],
            )

        pending = PendingReconciliation(
            pending_id=uuid4().hex,
            kind=kind,
            written_id=written.id,
            payload=payload,
            reason=str(error),
        )
        if self._status == LedgerStatus.READY:
            self._pending[pending.pending_id] = pending

        message = f"{completed_step} was saved but {failed_step} failed: {error}"
        self._notifications.warning("Partially saved", message)
        return self._result(
            ResultStatus.PARTIAL_COMPOUND_FAILURE,
            message,
            operation,
            completed_steps=[completed_step],
            failed_step=failed_step,
            records=[written],
            pending=pending,
        )

    @staticmethod
    def _result(
        status: ResultStatus,
        message: str,
        operation: str,
        **fields,
    ) -> LedgerResult:
        return LedgerResult(status=status, message=message, operation=operation, **fields)
