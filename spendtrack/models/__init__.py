"""
Data Models Package

This package contains all Pydantic models used in Spendtrack.
All data flowing through the ledgers must conform to these schemas.
"""

from spendtrack.models.expense import (
    CashPayment,
    CreditData,
    CreditPayment,
    DebitPayment,
    Expense,
    ExpenseCategory,
    ExpenseInput,
    ExpenseType,
    InstallmentPlan,
    PaymentDetails,
    PaymentInput,
    PaymentResult,
    PaymentType,
    SinglePayment,
)
from spendtrack.models.installment import Installment, InstallmentDraft
from spendtrack.models.card import CreditCard, DailyTarget, default_card_key
from spendtrack.models.summary import (
    CardGroup,
    DayBucket,
    InstallmentsSummary,
    MonthlyTotal,
    PlanSummary,
    TargetProgress,
    TodayTotal,
    WeekBucket,
)
from spendtrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "CashPayment",
    "CreditData",
    "CreditPayment",
    "DebitPayment",
    "Expense",
    "ExpenseCategory",
    "ExpenseInput",
    "ExpenseType",
    "InstallmentPlan",
    "PaymentDetails",
    "PaymentInput",
    "PaymentResult",
    "PaymentType",
    "SinglePayment",
    # Installment models
    "Installment",
    "InstallmentDraft",
    # Cards and targets
    "CreditCard",
    "DailyTarget",
    "default_card_key",
    # Summaries
    "CardGroup",
    "DayBucket",
    "InstallmentsSummary",
    "MonthlyTotal",
    "PlanSummary",
    "TargetProgress",
    "TodayTotal",
    "WeekBucket",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
