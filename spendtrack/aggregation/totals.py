"""
Spending Totals

Pure functions over already-fetched ledger data.

DESIGN DECISION: Plan roots are never counted as spending.
The purchase is recognized month by month through the payment
expenses made against it, so counting the root too would double it.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from spendtrack.models.card import DailyTarget
from spendtrack.models.expense import Expense, ExpenseType
from spendtrack.models.installment import Installment
from spendtrack.models.summary import (
    ZERO,
    InstallmentsSummary,
    MonthlyTotal,
    TargetProgress,
    TodayTotal,
)


def spending(expenses: Optional[Iterable[Expense]]) -> list[Expense]:
    """Expenses that count as spending (everything but plan roots)."""
    return [e for e in (expenses or []) if not e.is_plan_root]


def today_total(expenses: Optional[Iterable[Expense]]) -> TodayTotal:
    """Totals for one day's expenses, split by expense type."""
    result = TodayTotal()
    for expense in spending(expenses):
        if expense.type == ExpenseType.DAILY:
            result.daily_total += expense.amount
        else:
            result.other_total += expense.amount
    result.total = result.daily_total + result.other_total
    return result


def weekly_total(expenses: Optional[Iterable[Expense]]) -> Decimal:
    return sum((e.amount for e in spending(expenses)), ZERO)


def monthly_total(expenses: Optional[Iterable[Expense]]) -> MonthlyTotal:
    """
    Totals for one month's expenses.

    by_type always carries both "daily" and "other", even at zero.
    """
    counted = spending(expenses)
    result = MonthlyTotal(expenses=counted)
    for expense in counted:
        result.total += expense.amount
        category = expense.category.value
        result.by_category[category] = result.by_category.get(category, ZERO) + expense.amount
        kind = expense.type.value
        result.by_type[kind] = result.by_type.get(kind, ZERO) + expense.amount
    return result


def installments_summary(
    installments: Optional[Iterable[Installment]],
    today: date,
) -> InstallmentsSummary:
    """
    Partition installments into paid, overdue and pending.

    Paid wins over everything else. An unpaid installment is overdue when
    its due date is before `today`; with no due date it is pending.
    """
    result = InstallmentsSummary()
    for installment in installments or []:
        if installment.is_paid:
            result.paid.append(installment)
        elif installment.due_date is not None and installment.due_date < today:
            result.overdue.append(installment)
            result.total_overdue += installment.amount
        else:
            result.pending.append(installment)
            result.total_pending += installment.amount
    return result


def target_progress(target: Optional[DailyTarget], spent: TodayTotal) -> TargetProgress:
    """
    Progress of the day's total spending against its target.

    remaining goes negative once the target is exceeded.
    """
    if target is None:
        return TargetProgress(spent=spent.total)
    return TargetProgress(
        target=target,
        spent=spent.total,
        remaining=target.amount - spent.total,
        over_target=spent.total > target.amount,
    )
