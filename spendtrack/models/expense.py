"""
Expense Models for Spendtrack

An expense is one spend event. Two special roles exist:
1. Plan root - a credit purchase split into monthly installments
2. Payment expense - money paid against one installment of a plan root

DESIGN DECISION: Callers describe HOW an expense was paid with the
PaymentDetails tagged variant (cash | debit | credit(single | installment plan)).
The stored document keeps the flat payment_type + credit_data shape,
so the ledger is the only place that converts between the two.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Spending categories.

    INSTALLMENT is the default category for payments made against a plan.
    """
    FOOD = "food"
    TRAVEL = "travel"
    UTILITY = "utility"
    OTHER = "other"
    INSTALLMENT = "installment"


class ExpenseType(str, Enum):
    """Daily spending counts against the daily target; other does not."""
    DAILY = "daily"
    OTHER = "other"


class PaymentType(str, Enum):
    """How an expense was paid."""
    CASH = "cash"
    DEBIT = "debit"
    CREDIT = "credit"


# =============================================================================
# PAYMENT DETAILS - tagged variant used on input
# =============================================================================

class SinglePayment(BaseModel):
    """Credit purchase settled in one go."""
    kind: Literal["single"] = "single"


class InstallmentPlan(BaseModel):
    """Credit purchase split into monthly installments."""
    kind: Literal["installment_plan"] = "installment_plan"
    total_installments: int = Field(
        ...,
        ge=1,
        description="Number of monthly installments"
    )


CreditPlan = Annotated[
    Union[SinglePayment, InstallmentPlan],
    Field(discriminator="kind"),
]


class CashPayment(BaseModel):
    method: Literal["cash"] = "cash"


class DebitPayment(BaseModel):
    method: Literal["debit"] = "debit"


class CreditPayment(BaseModel):
    """
    Paid with a credit card.

    card_id may be a card's internal id or its user-facing card id;
    the ledger resolves it through the card registry.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    method: Literal["credit"] = "credit"
    card_id: Optional[str] = Field(
        default=None,
        description="Card the purchase was charged to"
    )
    plan: CreditPlan = Field(default_factory=SinglePayment)

    @property
    def is_installment(self) -> bool:
        return isinstance(self.plan, InstallmentPlan)


PaymentDetails = Annotated[
    Union[CashPayment, DebitPayment, CreditPayment],
    Field(discriminator="method"),
]


# =============================================================================
# STORED EXPENSE
# =============================================================================

class CreditData(BaseModel):
    """Credit metadata embedded in a credit expense document."""

    card_id: str = Field(
        ...,
        min_length=1,
        description="Card key (internal id or legacy external card id)"
    )
    total_installments: int = Field(default=1, ge=1)
    current_installment: int = Field(default=1, ge=1)
    monthly_amount: Decimal = Field(
        ...,
        ge=0,
        description="Share of the purchase due each month"
    )
    is_installment: bool = False


class Expense(BaseModel):
    """
    A persisted expense.

    id and created_at are assigned by the store; both are None
    on an expense that has not been written yet.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount spent"
    )
    category: ExpenseCategory = ExpenseCategory.OTHER
    type: ExpenseType = ExpenseType.DAILY
    payment_type: PaymentType = PaymentType.CASH
    date: dt.date
    note: str = Field(default="", max_length=1000)
    created_at: Optional[dt.datetime] = None

    credit_data: Optional[CreditData] = None

    # Only set on payment expenses
    payment_for_expense_id: Optional[str] = None
    applied_installment_number: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode='after')
    def validate_roles(self) -> 'Expense':
        """A plan root is never a payment, and only credit expenses carry credit data."""
        if self.credit_data is not None and self.payment_type != PaymentType.CREDIT:
            raise ValueError("credit_data is only allowed on credit expenses")
        if self.is_plan_root and self.payment_for_expense_id:
            raise ValueError("An installment plan purchase cannot also be a payment")
        return self

    @property
    def is_plan_root(self) -> bool:
        return bool(self.credit_data and self.credit_data.is_installment)

    @property
    def is_payment(self) -> bool:
        return bool(self.payment_for_expense_id)

    @property
    def card_id(self) -> Optional[str]:
        return self.credit_data.card_id if self.credit_data else None

    def to_document(self) -> dict[str, Any]:
        """Serialize for the document store (id lives in the document reference)."""
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> 'Expense':
        return cls.model_validate({**data, "id": doc_id})


# =============================================================================
# LEDGER INPUTS AND RESULTS
# =============================================================================

class ExpenseInput(BaseModel):
    """
    What a caller supplies to record or edit an expense.

    Missing category/type/date are filled in by the ledger from configuration.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount spent (must be positive)"
    )
    category: Optional[ExpenseCategory] = None
    type: Optional[ExpenseType] = None
    payment: PaymentDetails = Field(default_factory=CashPayment)
    date: Optional[dt.date] = None
    note: str = Field(default="", max_length=1000)


class PaymentInput(BaseModel):
    """A payment made against an installment plan."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount paid"
    )
    category: ExpenseCategory = ExpenseCategory.INSTALLMENT
    type: ExpenseType = ExpenseType.OTHER
    date: Optional[dt.date] = None
    note: str = Field(default="", max_length=1000)
    installment_number: Optional[int] = Field(
        default=None,
        ge=1,
        description="Pay this installment; otherwise the lowest-numbered unpaid one"
    )


class PaymentResult(BaseModel):
    """Outcome of paying an installment."""

    payment_expense_id: str
    installment_id: Optional[str] = None
    installment_number: Optional[int] = None

    @property
    def orphaned(self) -> bool:
        """True when the payment was recorded but no installment was marked paid."""
        return self.installment_id is None
