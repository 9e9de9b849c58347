"""
Ledger Package

Expense, installment, card and daily target storage for one user,
plus the installment scheduler.
"""

from spendtrack.ledger.cards import CreditCardRegistry
from spendtrack.ledger.errors import (
    LedgerError,
    NotFoundError,
    OrphanedPaymentWarning,
    StorageError,
    ValidationError,
)
from spendtrack.ledger.expenses import ExpenseLedger
from spendtrack.ledger.installments import InstallmentLedger
from spendtrack.ledger.scheduler import due_date_for, monthly_amount, schedule
from spendtrack.ledger.targets import DailyTargetService

__all__ = [
    "CreditCardRegistry",
    "DailyTargetService",
    "ExpenseLedger",
    "InstallmentLedger",
    # Scheduler
    "due_date_for",
    "monthly_amount",
    "schedule",
    # Errors
    "LedgerError",
    "NotFoundError",
    "OrphanedPaymentWarning",
    "StorageError",
    "ValidationError",
]
