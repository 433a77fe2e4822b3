"""
Savings goals.

A goal tracks progress toward a target amount. Contributions only move
`current_amount` up and never past the target. Goals never touch the ledger
transactions or aggregates.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import LedgerResult, ResultStatus
from fintrack.models.planning import SavingsGoal, SavingsGoalDraft
from fintrack.planning.base import ScopedPlanner
from fintrack.services.storage import SAVINGS_GOALS, StorageError


ZERO = Decimal("0")
HUNDRED = Decimal("100")


# =============================================================================
# PURE HELPERS
# =============================================================================

def goal_progress(goal: SavingsGoal) -> Decimal:
    """Percent of the target reached, capped at 100."""
    if goal.target_amount <= 0:
        return ZERO
    return min(goal.current_amount / goal.target_amount * HUNDRED, HUNDRED)


def total_saved(goals: Iterable[SavingsGoal]) -> Decimal:
    return sum((goal.current_amount for goal in goals), ZERO)


def total_target(goals: Iterable[SavingsGoal]) -> Decimal:
    return sum((goal.target_amount for goal in goals), ZERO)


def overall_progress(goals: Iterable[SavingsGoal]) -> Decimal:
    goals = list(goals)
    target = total_target(goals)
    if target <= 0:
        return ZERO
    return total_saved(goals) / target * HUNDRED


def time_remaining(target_date: date, today: Optional[date] = None) -> str:
    """Human-readable time left until a goal's target date."""
    days = (target_date - (today or date.today())).days

    if days < 0:
        return "Overdue"
    if days == 0:
        return "Today"
    if days == 1:
        return "1 day left"
    if days < 30:
        return f"{days} days left"

    months, remaining = divmod(days, 30)
    label = "1 month" if months == 1 else f"{months} months"
    if remaining:
        label += f" {remaining} days"
    return f"{label} left"


# =============================================================================
# SERVICE
# =============================================================================

class SavingsPlanner(ScopedPlanner):
    """
    Savings goals for one tenant scope.

    Usage:
        planner = SavingsPlanner(scope, store)
        await planner.list_goals()
        await planner.add_contribution(goal_id, Decimal("500"))
    """

    collection = SAVINGS_GOALS

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._goals: list[SavingsGoal] = []

    @property
    def goals(self) -> list[SavingsGoal]:
        return list(self._goals)

    async def list_goals(self) -> LedgerResult:
        """Reload goals, most recently created first."""
        try:
            goals = await self._store.list_savings_goals(self._scope)
        except StorageError as e:
            return self._read_failed("list_goals", e, "Failed to load savings goals")

        self._goals = goals
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message=f"Loaded {len(goals)} savings goals",
            operation="list_goals",
            records=list(goals),
        )

    async def create_goal(self, draft: SavingsGoalDraft) -> LedgerResult:
        try:
            goal = await self._store.insert_savings_goal(self._scope, draft)
        except StorageError as e:
            return await self._write_failed("create_goal", e, "Failed to create savings goal")

        self._goals.insert(0, goal)
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.SAVINGS_GOAL_CREATED,
                self._scope,
                SAVINGS_GOALS,
                goal.id,
                f"Savings goal '{goal.title}' created",
                details={"target_amount": str(goal.target_amount)},
            )

        self._notifications.success("Savings goal created successfully!")
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message="Savings goal created",
            operation="create_goal",
            completed_steps=["savings_goal"],
            records=[goal],
        )

    async def add_contribution(self, goal_id: str, amount: Decimal) -> LedgerResult:
        """
        Add money to a goal. The new amount is capped at the target.

        Raises:
            ValueError: amount is not positive
        """
        if amount <= 0:
            raise ValueError("Contribution must be positive")

        goal = next((g for g in self._goals if g.id == goal_id), None)
        if goal is None:
            return self._missing("add_contribution", goal_id, "Failed to add contribution")

        new_amount = min(goal.current_amount + amount, goal.target_amount)
        try:
            updated = await self._store.update_savings_goal(
                self._scope,
                goal_id,
                {"current_amount": new_amount},
            )
        except StorageError as e:
            return await self._write_failed("add_contribution", e, "Failed to add contribution")

        self._goals = [updated if g.id == updated.id else g for g in self._goals]
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.SAVINGS_CONTRIBUTION_ADDED,
                self._scope,
                SAVINGS_GOALS,
                updated.id,
                f"Contribution to '{updated.title}'",
                details={"amount": str(amount), "current_amount": str(updated.current_amount)},
            )

        self._notifications.success(f"₹{amount:,} added to your savings goal!")
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message="Contribution added",
            operation="add_contribution",
            completed_steps=["savings_goal"],
            records=[updated],
        )
