"""
Planning Package

Savings goals, bill reminders and meter readings. Tenant-scoped like the
ledger, but independent of its aggregates.
"""

from fintrack.planning.readings import MeterReadingLog
from fintrack.planning.reminders import (
    ReminderBook,
    days_until_due,
    due_soon_count,
    status_text,
    total_upcoming,
    upcoming_bills,
)
from fintrack.planning.savings import (
    SavingsPlanner,
    goal_progress,
    overall_progress,
    time_remaining,
    total_saved,
    total_target,
)

__all__ = [
    "MeterReadingLog",
    "ReminderBook",
    "SavingsPlanner",
    "days_until_due",
    "due_soon_count",
    "goal_progress",
    "overall_progress",
    "status_text",
    "time_remaining",
    "total_saved",
    "total_target",
    "total_upcoming",
    "upcoming_bills",
]
