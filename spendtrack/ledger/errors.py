"""
Ledger Exceptions

Storage failures (StorageError, NotFoundError) come from the storage
package and propagate unchanged; the ledgers only add input validation
errors and the orphaned-payment warning.
"""

from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from spendtrack.services.storage import NotFoundError, StorageError


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError, ValueError):
    """
    Input rejected before any write was attempted.

    Raised for non-positive or non-numeric amounts, a missing card or plan
    selection, and inputs that break a model invariant.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    @classmethod
    def from_pydantic(cls, error: PydanticValidationError) -> 'ValidationError':
        """Collapse a pydantic error into one readable message."""
        first = error.errors()[0] if error.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        messages = [
            f"{'.'.join(str(p) for p in e.get('loc', ())) or 'input'}: {e.get('msg')}"
            for e in error.errors()
        ]
        return cls("; ".join(messages) or str(error), field=field)


class OrphanedPaymentWarning(UserWarning):
    """
    A payment expense was recorded but no installment was marked paid by it.

    Not an error: the payment stands. Use
    InstallmentLedger.find_orphaned_payments() to reconcile.
    """
    pass


__all__ = [
    "LedgerError",
    "NotFoundError",
    "OrphanedPaymentWarning",
    "StorageError",
    "ValidationError",
]
