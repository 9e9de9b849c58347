"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Traceability of paid/unpaid flips and cascades
2. Debugging capability
3. A record of orphaned payments for reconciliation

The audit logger:
- Always writes a structured local log line
- Optionally appends events to a document store collection
- Gracefully handles failures (doesn't break the ledger if logging fails)
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from spendtrack.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from spendtrack.services.storage import DocumentStore


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The store's audit collection, when one is configured
    """

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        collection: Optional[str] = None,
    ):
        """
        Initialize audit logger.

        Args:
            store: Document store for persistence.
                   If None, only logs locally.
            collection: Collection path events are appended to,
                        e.g. "users/u1/auditLog".
        """
        self._store = store if collection else None
        self._collection = collection
        self._logger = structlog.get_logger("spendtrack.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._store:
            try:
                await self._store.create(self._collection, event.to_document())
                return True
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_added(
        self,
        expense_id: str,
        amount: str,
        category: str,
        is_plan_root: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_added(
            expense_id=expense_id,
            amount=amount,
            category=category,
            is_plan_root=is_plan_root,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        expense_id: str,
        amount: str,
        replaced_installments: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            expense_id=expense_id,
            amount=amount,
            replaced_installments=replaced_installments,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        expense_id: str,
        deleted_installments: int,
        reverted_installment_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            deleted_installments=deleted_installments,
            reverted_installment_id=reverted_installment_id,
            correlation_id=correlation_id,
        ))

    async def log_installments_scheduled(
        self,
        expense_id: str,
        count: int,
        monthly_amount: str,
        card_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.installments_scheduled(
            expense_id=expense_id,
            count=count,
            monthly_amount=monthly_amount,
            card_id=card_id,
            correlation_id=correlation_id,
        ))

    async def log_installment_paid(
        self,
        installment_id: str,
        installment_number: int,
        payment_expense_id: Optional[str],
        plan_expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.installment_paid(
            installment_id=installment_id,
            installment_number=installment_number,
            payment_expense_id=payment_expense_id,
            plan_expense_id=plan_expense_id,
            correlation_id=correlation_id,
        ))

    async def log_installment_reverted(
        self,
        installment_id: str,
        installment_number: int,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.installment_reverted(
            installment_id=installment_id,
            installment_number=installment_number,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_payment_orphaned(
        self,
        payment_expense_id: str,
        plan_expense_id: str,
        installment_number: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.payment_orphaned(
            payment_expense_id=payment_expense_id,
            plan_expense_id=plan_expense_id,
            installment_number=installment_number,
            correlation_id=correlation_id,
        ))

    async def log_card_added(self, card_id: str, name: str) -> None:
        await self.log(AuditEventBuilder.card_added(card_id=card_id, name=name))

    async def log_card_deleted(
        self,
        card_id: str,
        deleted_installments: int,
        detached_expenses: int,
    ) -> None:
        await self.log(AuditEventBuilder.card_deleted(
            card_id=card_id,
            deleted_installments=deleted_installments,
            detached_expenses=detached_expenses,
        ))

    async def log_daily_target_set(self, target_id: str, amount: str, date: str) -> None:
        await self.log(AuditEventBuilder.daily_target_set(
            target_id=target_id,
            amount=amount,
            date=date,
        ))

    async def log_validation_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_store_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.store_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a ledger operation and pass it
    through every event the operation emits.
    """
    return uuid4()
