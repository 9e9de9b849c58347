"""
Groupings for the dashboard views

Installments grouped by card and plan, and expenses grouped by ISO week.
"""

from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional

from spendtrack.aggregation.totals import spending
from spendtrack.models.card import CreditCard
from spendtrack.models.expense import Expense
from spendtrack.models.installment import Installment
from spendtrack.models.summary import (
    ZERO,
    CardGroup,
    DayBucket,
    InstallmentsSummary,
    PlanSummary,
    WeekBucket,
)


def _find_card(cards: list[CreditCard], key: Optional[str]) -> Optional[CreditCard]:
    # Internal id first, then the user-facing card id
    for card in cards:
        if card.id and card.id == key:
            return card
    for card in cards:
        if card.matches(key):
            return card
    return None


def _plan_summary(
    expense_id: str,
    expense: Expense,
    installments: list[Installment],
    today: date,
) -> PlanSummary:
    ordered = sorted(
        installments,
        key=lambda i: (i.due_date is not None, i.due_date or date.min, i.installment_number),
    )
    first = ordered[0]
    paid = [i for i in ordered if i.is_paid]
    unpaid = [i for i in ordered if not i.is_paid]

    if unpaid:
        next_due_date = unpaid[0].due_date
    else:
        next_due_date = ordered[-1].due_date

    total_installments = first.total_installments
    if not total_installments and expense.credit_data:
        total_installments = expense.credit_data.total_installments

    paid_amount = sum((i.amount for i in paid), ZERO)
    total_amount = expense.amount or first.amount * total_installments

    return PlanSummary(
        expense_id=expense_id,
        expense=expense,
        installments=ordered,
        monthly_amount=first.amount,
        total_installments=total_installments,
        paid_amount=paid_amount,
        paid_count=len(paid),
        remaining_months=len(unpaid),
        next_due_date=next_due_date,
        total_amount=total_amount,
        remaining_amount=total_amount - paid_amount,
        is_overdue=bool(unpaid and next_due_date and next_due_date < today),
    )


def group_by_card(
    cards: Optional[Iterable[CreditCard]],
    expenses: Optional[Iterable[Expense]],
    summary: Optional[InstallmentsSummary],
    today: Optional[date] = None,
) -> dict[str, CardGroup]:
    """
    Installment plans grouped per card, keyed by the card's internal id.

    An installment belongs to a card through its plan root's
    credit_data.card_id, which may name the card by internal id or by
    user-facing card_id. Installments whose plan root or card is unknown
    are left out. Every card gets a group, even with no plans.
    """
    today = today or date.today()
    cards = [c for c in (cards or []) if c.id]
    expenses_by_id = {e.id: e for e in (expenses or []) if e.id}
    groups = {card.id: CardGroup(card=card) for card in cards}

    by_plan: dict[tuple[str, str], list[Installment]] = defaultdict(list)
    for installment in (summary.all_installments if summary else []):
        expense = expenses_by_id.get(installment.expense_id)
        if expense is None or not expense.card_id:
            continue
        card = _find_card(cards, expense.card_id)
        if card is None:
            continue
        by_plan[(card.id, installment.expense_id)].append(installment)

    for (card_id, expense_id), installments in by_plan.items():
        groups[card_id].plans.append(
            _plan_summary(expense_id, expenses_by_id[expense_id], installments, today)
        )

    for group in groups.values():
        # Plans with no due date sort first
        group.plans.sort(key=lambda p: (p.next_due_date is not None, p.next_due_date or date.min))
        group.total_original = sum((p.total_amount for p in group.plans), ZERO)
        group.total_paid = sum((p.paid_amount for p in group.plans), ZERO)
        group.total_remaining = group.total_original - group.total_paid

    return groups


def week_start(day: date) -> date:
    """Monday of the ISO week containing `day`."""
    return day - timedelta(days=day.weekday())


def week_label(monday: date) -> str:
    """Range label for a week, e.g. "Jan 1 – Jan 7"."""
    sunday = monday + timedelta(days=6)
    return f"{monday:%b} {monday.day} – {sunday:%b} {sunday.day}"


def group_by_week(expenses: Optional[Iterable[Expense]]) -> list[WeekBucket]:
    """
    Spending grouped into ISO weeks, newest week first.

    Each week lists its days newest first; plan roots are not counted.
    """
    days: dict[date, list[Expense]] = defaultdict(list)
    for expense in spending(expenses):
        days[expense.date].append(expense)

    weeks: dict[date, WeekBucket] = {}
    for day in sorted(days, reverse=True):
        monday = week_start(day)
        week = weeks.get(monday)
        if week is None:
            week = weeks[monday] = WeekBucket(key=monday, label=week_label(monday))
        bucket = DayBucket(
            date=day,
            total=sum((e.amount for e in days[day]), ZERO),
            expenses=days[day],
        )
        week.days.append(bucket)
        week.total += bucket.total

    return sorted(weeks.values(), key=lambda w: w.key, reverse=True)
