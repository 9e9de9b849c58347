"""
Summary Models

View models produced by the aggregation engine. They hold
already-computed numbers; nothing here talks to storage.
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, Field

from spendtrack.models.card import CreditCard, DailyTarget
from spendtrack.models.expense import Expense
from spendtrack.models.installment import Installment


ZERO = Decimal("0")


class TodayTotal(BaseModel):
    daily_total: Decimal = ZERO
    other_total: Decimal = ZERO
    total: Decimal = ZERO


class MonthlyTotal(BaseModel):
    """Spending for one month, plan-root purchases excluded."""

    total: Decimal = ZERO
    by_category: dict[str, Decimal] = Field(default_factory=dict)
    by_type: dict[str, Decimal] = Field(
        default_factory=lambda: {"daily": ZERO, "other": ZERO}
    )
    expenses: list[Expense] = Field(default_factory=list)


class InstallmentsSummary(BaseModel):
    """Every installment lands in exactly one of pending, overdue or paid."""

    pending: list[Installment] = Field(default_factory=list)
    overdue: list[Installment] = Field(default_factory=list)
    paid: list[Installment] = Field(default_factory=list)
    total_pending: Decimal = ZERO
    total_overdue: Decimal = ZERO

    @property
    def all_installments(self) -> list[Installment]:
        return [*self.pending, *self.overdue, *self.paid]


class PlanSummary(BaseModel):
    """Progress of one installment plan on one card."""

    expense_id: str
    expense: Optional[Expense] = None
    installments: list[Installment] = Field(default_factory=list)
    monthly_amount: Decimal = ZERO
    total_installments: int = 0
    paid_amount: Decimal = ZERO
    paid_count: int = 0
    remaining_months: int = 0
    next_due_date: Optional[dt.date] = None
    total_amount: Decimal = ZERO
    remaining_amount: Decimal = ZERO
    is_overdue: bool = False

    @property
    def progress_percentage(self) -> int:
        return _percentage(self.paid_amount, self.total_amount)


class CardGroup(BaseModel):
    """All installment plans charged to one card."""

    card: CreditCard
    plans: list[PlanSummary] = Field(default_factory=list)
    total_original: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_remaining: Decimal = ZERO

    @property
    def progress_percentage(self) -> int:
        return _percentage(self.total_paid, self.total_original)

    @property
    def has_installments(self) -> bool:
        return bool(self.plans)


class DayBucket(BaseModel):
    date: dt.date
    total: Decimal = ZERO
    expenses: list[Expense] = Field(default_factory=list)


class WeekBucket(BaseModel):
    """One ISO week (Monday start), keyed by its Monday."""

    key: dt.date
    label: str
    total: Decimal = ZERO
    days: list[DayBucket] = Field(default_factory=list)


class TargetProgress(BaseModel):
    target: Optional[DailyTarget] = None
    spent: Decimal = ZERO
    remaining: Optional[Decimal] = None
    over_target: bool = False


def _percentage(part: Decimal, whole: Decimal) -> int:
    if whole <= 0:
        return 0
    return int((part / whole * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
