"""
Installment Models

One installment is one monthly obligation of a plan root.
Paid state is tracked per installment and linked back to the
payment expense that satisfied it.
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class InstallmentDraft(BaseModel):
    """An installment produced by the scheduler, not yet stored."""

    installment_number: int = Field(..., ge=1)
    total_installments: int = Field(..., ge=1)
    amount: Decimal = Field(..., gt=0)
    due_date: dt.date
    card_id: str = Field(..., min_length=1)
    is_paid: bool = False
    paid_at: Optional[dt.datetime] = None


class Installment(BaseModel):
    """A stored installment belonging to the plan root `expense_id`."""

    id: Optional[str] = None
    expense_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    installment_number: int = Field(..., ge=1)
    total_installments: int = Field(..., ge=1)
    due_date: Optional[dt.date] = None
    card_id: str
    is_paid: bool = False
    paid_at: Optional[dt.datetime] = None
    paid_by_expense_id: Optional[str] = None
    created_at: Optional[dt.datetime] = None

    @model_validator(mode='after')
    def validate_paid_state(self) -> 'Installment':
        if self.is_paid and self.paid_at is None:
            raise ValueError("A paid installment must record when it was paid")
        if not self.is_paid and (self.paid_at is not None or self.paid_by_expense_id):
            raise ValueError("An unpaid installment cannot carry payment details")
        return self

    @classmethod
    def from_draft(
        cls,
        draft: InstallmentDraft,
        expense_id: str,
        created_at: dt.datetime,
    ) -> 'Installment':
        return cls(
            expense_id=expense_id,
            amount=draft.amount,
            installment_number=draft.installment_number,
            total_installments=draft.total_installments,
            due_date=draft.due_date,
            card_id=draft.card_id,
            is_paid=draft.is_paid,
            paid_at=draft.paid_at,
            created_at=created_at,
        )

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> 'Installment':
        return cls.model_validate({**data, "id": doc_id})
