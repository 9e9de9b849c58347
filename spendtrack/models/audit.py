"""
Audit Models for Spendtrack

Every ledger mutation is logged for audit purposes.
This provides:
1. Traceability of how a plan reached its current paid state
2. Debugging information when a cascade misbehaves
3. A trail for reconciling orphaned payments

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Installments
    INSTALLMENTS_SCHEDULED = "installments_scheduled"
    INSTALLMENT_PAID = "installment_paid"
    INSTALLMENT_REVERTED = "installment_reverted"
    PAYMENT_ORPHANED = "payment_orphaned"

    # Cards and targets
    CARD_ADDED = "card_added"
    CARD_DELETED = "card_deleted"
    DAILY_TARGET_SET = "daily_target_set"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORE_ERROR = "store_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    entity_id is the store document id the event is about.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'installment', 'card')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a payment and the installment it paid)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_added(expense_id, "12.50", "food")
        event = AuditEventBuilder.installment_paid(inst_id, 3, payment_id, plan_id)
    """

    @staticmethod
    def expense_added(
        expense_id: str,
        amount: str,
        category: str,
        is_plan_root: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense added: {category} - {amount}",
            details={
                "amount": amount,
                "category": category,
                "is_plan_root": is_plan_root,
            },
        )

    @staticmethod
    def expense_updated(
        expense_id: str,
        amount: str,
        replaced_installments: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense updated: {amount}",
            details={
                "amount": amount,
                "replaced_installments": replaced_installments,
            },
        )

    @staticmethod
    def expense_deleted(
        expense_id: str,
        deleted_installments: int,
        reverted_installment_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense deleted with {deleted_installments} installments",
            details={
                "deleted_installments": deleted_installments,
                "reverted_installment_id": reverted_installment_id,
            },
        )

    @staticmethod
    def installments_scheduled(
        expense_id: str,
        count: int,
        monthly_amount: str,
        card_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTALLMENTS_SCHEDULED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Scheduled {count} installments of {monthly_amount}",
            details={
                "count": count,
                "monthly_amount": monthly_amount,
                "card_id": card_id,
            },
        )

    @staticmethod
    def installment_paid(
        installment_id: str,
        installment_number: int,
        payment_expense_id: Optional[str],
        plan_expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTALLMENT_PAID,
            entity_type="installment",
            entity_id=installment_id,
            correlation_id=correlation_id,
            description=f"Installment #{installment_number} marked paid",
            details={
                "installment_number": installment_number,
                "payment_expense_id": payment_expense_id,
                "plan_expense_id": plan_expense_id,
            },
        )

    @staticmethod
    def installment_reverted(
        installment_id: str,
        installment_number: int,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTALLMENT_REVERTED,
            entity_type="installment",
            entity_id=installment_id,
            correlation_id=correlation_id,
            description=f"Installment #{installment_number} reverted to unpaid",
            details={
                "installment_number": installment_number,
                "reason": reason,
            },
        )

    @staticmethod
    def payment_orphaned(
        payment_expense_id: str,
        plan_expense_id: str,
        installment_number: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_ORPHANED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=payment_expense_id,
            correlation_id=correlation_id,
            description="Payment recorded but no installment was marked paid",
            details={
                "plan_expense_id": plan_expense_id,
                "installment_number": installment_number,
            },
        )

    @staticmethod
    def card_added(card_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CARD_ADDED,
            entity_type="card",
            entity_id=card_id,
            description=f"Credit card added: {name}",
            details={"name": name},
        )

    @staticmethod
    def card_deleted(
        card_id: str,
        deleted_installments: int,
        detached_expenses: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CARD_DELETED,
            entity_type="card",
            entity_id=card_id,
            description=(
                f"Credit card deleted: {deleted_installments} installments removed, "
                f"{detached_expenses} expenses detached"
            ),
            details={
                "deleted_installments": deleted_installments,
                "detached_expenses": detached_expenses,
            },
        )

    @staticmethod
    def daily_target_set(target_id: str, amount: str, date: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DAILY_TARGET_SET,
            entity_type="daily_target",
            entity_id=target_id,
            description=f"Daily target for {date} set to {amount}",
            details={"amount": amount, "date": date},
        )

    @staticmethod
    def validation_failed(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Validation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def store_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Store error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
