"""
Planning Models for FinTrack

Savings goals, bill reminders and utility-meter readings. These live beside
the ledger and share its tenant scoping, but never feed the ledger aggregates.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fintrack.models.ledger import StoredRecord


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# =============================================================================
# SAVINGS GOALS
# =============================================================================

class SavingsGoalDraft(BaseModel):
    """A savings goal as entered by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal = Field(..., gt=0)
    target_date: Optional[date] = None
    priority: Priority = Priority.MEDIUM
    category: str = Field(default="emergency", max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)


class SavingsGoal(StoredRecord):
    """
    A persisted savings goal.

    `current_amount` never exceeds `target_amount`; contributions are capped.
    """

    title: str
    target_amount: Decimal
    current_amount: Decimal = Decimal("0")
    target_date: Optional[date] = None
    priority: Priority = Priority.MEDIUM
    category: str = "emergency"
    description: Optional[str] = None
    status: str = "active"


# =============================================================================
# REMINDERS
# =============================================================================

class ReminderDraft(BaseModel):
    """A bill reminder as entered by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=100)
    due_date: date
    description: Optional[str] = Field(default=None, max_length=500)
    amount: Optional[Decimal] = Field(default=None, ge=0)
    category: str = Field(default="utilities", max_length=50)
    priority: Priority = Priority.MEDIUM


class Reminder(StoredRecord):
    """A persisted bill reminder."""

    title: str
    due_date: date
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    priority: Optional[Priority] = None
    completed: bool = False


# =============================================================================
# METER READINGS
# =============================================================================

class MeterReadingDraft(BaseModel):
    """
    A utility-meter reading as entered by the user.

    Consumption and cost are derived, never entered.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    reading_type: str = Field(..., min_length=1, max_length=30)
    current_reading: Decimal = Field(..., ge=0)
    previous_reading: Decimal = Field(..., ge=0)
    cost_per_unit: Decimal = Field(..., ge=0)
    reading_date: date
    meter_number: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode='after')
    def validate_readings(self) -> 'MeterReadingDraft':
        if self.current_reading < self.previous_reading:
            raise ValueError("Current reading cannot be below previous reading")
        return self

    @property
    def consumption(self) -> Decimal:
        return self.current_reading - self.previous_reading

    @property
    def total_cost(self) -> Decimal:
        return self.consumption * self.cost_per_unit


class MeterReading(StoredRecord):
    """A persisted meter reading."""

    reading_type: str
    current_reading: Decimal
    previous_reading: Optional[Decimal] = None
    consumption: Optional[Decimal] = None
    cost_per_unit: Optional[Decimal] = None
    total_cost: Optional[Decimal] = None
    reading_date: date
    meter_number: Optional[str] = None
    notes: Optional[str] = None
