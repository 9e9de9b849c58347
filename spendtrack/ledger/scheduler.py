"""
Installment Scheduler

Turns one credit installment purchase into its dated sequence of
monthly obligations.

Due dates use calendar-month arithmetic (dateutil.relativedelta): when the
target month is shorter, the day is clamped to the month's last day, so a
purchase on Jan 31 falls due on Feb 28 (or 29), not in early March.

Amounts are the exact quotient purchase / N at Decimal context precision.
Nothing is rounded to cents here; rounding belongs to display.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from dateutil.relativedelta import relativedelta

from spendtrack.config import ScheduleVariant
from spendtrack.ledger.errors import ValidationError
from spendtrack.models.installment import InstallmentDraft


def monthly_amount(purchase_amount: Decimal, total_installments: int) -> Decimal:
    """Unrounded monthly share of a purchase."""
    if total_installments < 1:
        raise ValidationError(
            "An installment plan needs at least one installment",
            field="total_installments",
        )
    try:
        amount = Decimal(purchase_amount)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {purchase_amount!r}", field="amount")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")
    return amount / total_installments


def due_date_for(
    purchase_date: date,
    installment_number: int,
    variant: ScheduleVariant = ScheduleVariant.FIRST_DUE_NEXT_MONTH,
) -> date:
    """Due date of one installment under the given convention."""
    months = installment_number
    if variant == ScheduleVariant.FIRST_DUE_ON_PURCHASE:
        months -= 1
    return purchase_date + relativedelta(months=months)


def schedule(
    purchase_date: date,
    total_installments: int,
    monthly: Decimal,
    card_id: str,
    variant: ScheduleVariant = ScheduleVariant.FIRST_DUE_NEXT_MONTH,
    now: Optional[datetime] = None,
) -> list[InstallmentDraft]:
    """
    Build the installment drafts for one plan.

    Args:
        purchase_date: Date of the plan-root purchase
        total_installments: N, number of drafts to generate
        monthly: Amount of each installment
        card_id: Card key every draft is charged to
        variant: Due-date convention
        now: Paid timestamp for the pre-paid first installment (variant B)

    Returns:
        Drafts numbered 1..N in order

    Raises:
        ValidationError: For N < 1, a non-positive amount or a missing card
    """
    if total_installments < 1:
        raise ValidationError(
            "An installment plan needs at least one installment",
            field="total_installments",
        )
    if monthly <= 0:
        raise ValidationError("Installment amount must be greater than zero", field="amount")
    if not card_id:
        raise ValidationError("An installment plan must be charged to a card", field="card_id")

    prepay_first = variant == ScheduleVariant.FIRST_DUE_ON_PURCHASE
    if prepay_first and now is None:
        now = datetime.now().astimezone()

    drafts = []
    for number in range(1, total_installments + 1):
        is_paid = prepay_first and number == 1
        drafts.append(InstallmentDraft(
            installment_number=number,
            total_installments=total_installments,
            amount=monthly,
            due_date=due_date_for(purchase_date, number, variant),
            card_id=card_id,
            is_paid=is_paid,
            paid_at=now if is_paid else None,
        ))
    return drafts
