"""
Expense Ledger

Records spend events and keeps installment plans consistent with them.

CASCADES:
- Adding a credit installment purchase schedules its installments
  in the same batch as the expense (no partial plan).
- Editing an expense deletes the plan's installments and regenerates
  them from scratch. Paid progress on the plan is LOST on edit.
- Deleting a payment expense reverts the installment it paid; deleting
  a plan root deletes all of its installments. One batch either way.
- Paying an installment records a payment expense and marks the
  installment paid in one batch.
"""

import calendar
import warnings
from datetime import date, datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from spendtrack.audit import AuditLogger, create_correlation_id
from spendtrack.config import LedgerSettings, get_settings
from spendtrack.ledger.cards import CreditCardRegistry
from spendtrack.ledger.collections import EXPENSES, parse_documents, user_collection
from spendtrack.ledger.errors import OrphanedPaymentWarning, ValidationError
from spendtrack.ledger.installments import InstallmentLedger
from spendtrack.ledger.scheduler import monthly_amount, schedule
from spendtrack.models.expense import (
    CreditData,
    CreditPayment,
    DebitPayment,
    Expense,
    ExpenseCategory,
    ExpenseInput,
    ExpenseType,
    PaymentInput,
    PaymentResult,
    PaymentType,
)
from spendtrack.models.installment import InstallmentDraft
from spendtrack.services.storage import (
    DocRef,
    DocumentStore,
    Filter,
    NotFoundError,
    OrderBy,
    StorageError,
)


_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _parse_input(model: type[BaseModel], data: Union[BaseModel, dict[str, Any]]):
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


def _newest_first(expenses: list[Expense]) -> list[Expense]:
    return sorted(
        expenses,
        key=lambda e: (e.date, e.created_at or _OLDEST),
        reverse=True,
    )


class ExpenseLedger:
    """
    Expense storage for one user.

    The installment ledger and card registry it cascades into are
    created for the same user and store unless passed in.
    """

    def __init__(
        self,
        store: DocumentStore,
        uid: str,
        installments: Optional[InstallmentLedger] = None,
        cards: Optional[CreditCardRegistry] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._collection = user_collection(uid, EXPENSES)
        self._audit_logger = audit_logger or AuditLogger()
        self._installments = installments or InstallmentLedger(store, uid, self._audit_logger)
        self._cards = cards or CreditCardRegistry(store, uid, self._audit_logger)
        self._settings = settings or get_settings().ledger

    @property
    def installments(self) -> InstallmentLedger:
        return self._installments

    def ref(self, expense_id: str) -> DocRef:
        return DocRef(collection=self._collection, id=expense_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        data = await self._store.get(self.ref(expense_id))
        if data is None:
            return None
        return Expense.from_document(expense_id, data)

    async def list_expenses(
        self,
        on_date: Optional[date] = None,
        expense_type: Optional[ExpenseType] = None,
    ) -> list[Expense]:
        """Expenses, optionally for one date and/or type, most recently recorded first."""
        filters = []
        if on_date:
            filters.append(Filter(field="date", value=on_date))
        if expense_type:
            filters.append(Filter(field="type", value=expense_type))

        docs = await self._store.query(
            self._collection,
            filters=filters,
            order_by=OrderBy(field="created_at", descending=True),
        )
        return parse_documents(docs, Expense)

    async def list_expenses_in_range(
        self,
        start: date,
        end: date,
        expense_type: Optional[ExpenseType] = None,
    ) -> list[Expense]:
        """Expenses dated start..end inclusive, newest date first."""
        filters = [
            Filter(field="date", op=">=", value=start),
            Filter(field="date", op="<=", value=end),
        ]
        if expense_type:
            filters.append(Filter(field="type", value=expense_type))

        docs = await self._store.query(self._collection, filters=filters)
        return _newest_first(parse_documents(docs, Expense))

    async def list_monthly_expenses(self, year: int, month: int) -> list[Expense]:
        """Expenses of one calendar month (month is 1-12)."""
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {month}", field="month")
        last_day = calendar.monthrange(year, month)[1]
        return await self.list_expenses_in_range(date(year, month, 1), date(year, month, last_day))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def add_expense(self, data: Union[ExpenseInput, dict[str, Any]]) -> str:
        """
        Record an expense.

        A credit installment purchase is stored together with all of
        its installments in one batch.

        Returns:
            The new expense id

        Raises:
            ValidationError: Invalid amount or missing card selection
            StorageError: If the batch fails (nothing is written)
        """
        correlation_id = create_correlation_id()
        expense = await self._validated_expense("add_expense", data, correlation_id)

        ref = self._store.new_ref(self._collection)
        batch = self._store.batch()
        batch.set(ref, expense.to_document())

        drafts = self._schedule(expense)
        if drafts:
            self._installments.stage_create(batch, ref.id, drafts)

        await self._commit("add_expense", batch, correlation_id)

        await self._audit_logger.log_expense_added(
            expense_id=ref.id,
            amount=str(expense.amount),
            category=expense.category.value,
            is_plan_root=expense.is_plan_root,
            correlation_id=correlation_id,
        )
        if drafts:
            await self._log_scheduled(ref.id, expense, drafts, correlation_id)
        return ref.id

    async def update_expense(
        self,
        expense_id: str,
        data: Union[ExpenseInput, dict[str, Any]],
    ) -> str:
        """
        Overwrite an expense and rebuild its installments.

        Existing installments are always deleted; a credit installment plan
        gets a fresh, fully unpaid schedule. Payment links on a payment
        expense are kept.

        Raises:
            NotFoundError: If the expense no longer exists
            ValidationError: Invalid input
        """
        correlation_id = create_correlation_id()
        existing = await self.get_expense(expense_id)
        if existing is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        expense = await self._validated_expense(
            "update_expense",
            data,
            correlation_id,
            keep_links_from=existing,
        )

        batch = self._store.batch()
        batch.set(self.ref(expense_id), expense.to_document())
        replaced = await self._installments.stage_delete_for_expense(batch, expense_id)

        drafts = self._schedule(expense)
        if drafts:
            self._installments.stage_create(batch, expense_id, drafts)

        await self._commit("update_expense", batch, correlation_id)

        await self._audit_logger.log_expense_updated(
            expense_id=expense_id,
            amount=str(expense.amount),
            replaced_installments=replaced,
            correlation_id=correlation_id,
        )
        if drafts:
            await self._log_scheduled(expense_id, expense, drafts, correlation_id)
        return expense_id

    async def update_or_create(
        self,
        expense_id: str,
        data: Union[ExpenseInput, dict[str, Any]],
    ) -> str:
        """Edit an expense, or record it as new if it was deleted meanwhile."""
        try:
            return await self.update_expense(expense_id, data)
        except NotFoundError:
            return await self.add_expense(data)

    async def delete_expense(self, expense_id: str) -> bool:
        """
        Delete an expense with its cascades.

        A payment expense first reverts the installment it paid. Every
        installment belonging to the expense (as a plan root) is deleted.

        Returns:
            True if the expense existed, False if there was nothing to delete
        """
        correlation_id = create_correlation_id()
        data = await self._store.get(self.ref(expense_id))

        batch = self._store.batch()
        reverted = []
        if data and data.get("payment_for_expense_id"):
            reverted = await self._installments.stage_reversal(
                batch,
                payment_expense_id=expense_id,
                plan_expense_id=data["payment_for_expense_id"],
                applied_installment_number=data.get("applied_installment_number"),
            )

        if data is not None:
            batch.delete(self.ref(expense_id))
        deleted = await self._installments.stage_delete_for_expense(batch, expense_id)

        if len(batch):
            await self._commit("delete_expense", batch, correlation_id)

        for installment in reverted:
            await self._audit_logger.log_installment_reverted(
                installment_id=installment.id,
                installment_number=installment.installment_number,
                reason=f"payment {expense_id} deleted",
                correlation_id=correlation_id,
            )
        if data is not None:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense_id,
                deleted_installments=deleted,
                reverted_installment_id=reverted[0].id if reverted else None,
                correlation_id=correlation_id,
            )
        return data is not None

    async def pay_installment(
        self,
        expense_id: str,
        payment: Union[PaymentInput, dict[str, Any]],
    ) -> PaymentResult:
        """
        Pay one installment of a plan.

        Records a payment expense linked to the plan and marks the target
        installment paid by it: the given installment number, or else the
        lowest-numbered unpaid one. If no target exists the payment is still
        recorded and an OrphanedPaymentWarning is issued.

        Raises:
            ValidationError: No plan selected or invalid amount
        """
        correlation_id = create_correlation_id()
        if not expense_id:
            await self._audit_logger.log_validation_failed(
                "pay_installment", "No installment plan selected", correlation_id
            )
            raise ValidationError("Select an installment plan to pay", field="expense_id")

        try:
            payment = _parse_input(PaymentInput, payment)
        except ValidationError as e:
            await self._audit_logger.log_validation_failed("pay_installment", str(e), correlation_id)
            raise

        now = self._store.now()
        payment_expense = Expense(
            amount=payment.amount,
            category=payment.category,
            type=payment.type,
            payment_type=PaymentType.CREDIT,
            date=payment.date or date.today(),
            note=payment.note,
            created_at=now,
            payment_for_expense_id=expense_id,
            applied_installment_number=payment.installment_number,
        )

        plan = await self._installments.list_for_expense(expense_id)
        target = InstallmentLedger.select_payable(plan, payment.installment_number)

        ref = self._store.new_ref(self._collection)
        batch = self._store.batch()
        batch.set(ref, payment_expense.to_document())
        if target:
            self._installments.stage_mark_paid(batch, target, ref.id, now)

        await self._commit("pay_installment", batch, correlation_id)

        await self._audit_logger.log_expense_added(
            expense_id=ref.id,
            amount=str(payment_expense.amount),
            category=payment_expense.category.value,
            correlation_id=correlation_id,
        )

        if target is None:
            await self._audit_logger.log_payment_orphaned(
                payment_expense_id=ref.id,
                plan_expense_id=expense_id,
                installment_number=payment.installment_number,
                correlation_id=correlation_id,
            )
            warnings.warn(
                f"Payment {ref.id} for plan {expense_id} did not match any installment",
                OrphanedPaymentWarning,
                stacklevel=2,
            )
            return PaymentResult(payment_expense_id=ref.id)

        await self._audit_logger.log_installment_paid(
            installment_id=target.id,
            installment_number=target.installment_number,
            payment_expense_id=ref.id,
            plan_expense_id=expense_id,
            correlation_id=correlation_id,
        )
        return PaymentResult(
            payment_expense_id=ref.id,
            installment_id=target.id,
            installment_number=target.installment_number,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _validated_expense(
        self,
        operation: str,
        data: Union[ExpenseInput, dict[str, Any]],
        correlation_id,
        keep_links_from: Optional[Expense] = None,
    ) -> Expense:
        try:
            return await self._build_expense(_parse_input(ExpenseInput, data), keep_links_from)
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(operation, str(e), correlation_id)
            raise

    async def _build_expense(
        self,
        data: ExpenseInput,
        keep_links_from: Optional[Expense] = None,
    ) -> Expense:
        """Convert caller input (PaymentDetails variant) to the stored expense shape."""
        payment = data.payment
        credit_data = None

        if isinstance(payment, CreditPayment):
            payment_type = PaymentType.CREDIT
            if payment.is_installment:
                card_key = await self._cards.resolve_card_key(
                    payment.card_id or self._settings.default_card_id
                )
                total = payment.plan.total_installments
                credit_data = CreditData(
                    card_id=card_key,
                    total_installments=total,
                    current_installment=1,
                    monthly_amount=monthly_amount(data.amount, total),
                    is_installment=True,
                )
            else:
                if not payment.card_id:
                    raise ValidationError(
                        "Select a card for a credit payment",
                        field="payment.card_id",
                    )
                credit_data = CreditData(
                    card_id=await self._cards.resolve_card_key(payment.card_id),
                    monthly_amount=data.amount,
                )
        elif isinstance(payment, DebitPayment):
            payment_type = PaymentType.DEBIT
        else:
            payment_type = PaymentType.CASH

        try:
            return Expense(
                amount=data.amount,
                category=data.category or ExpenseCategory(self._settings.default_category),
                type=data.type or ExpenseType(self._settings.default_expense_type),
                payment_type=payment_type,
                date=data.date or date.today(),
                note=data.note,
                created_at=self._store.now(),
                credit_data=credit_data,
                payment_for_expense_id=(
                    keep_links_from.payment_for_expense_id if keep_links_from else None
                ),
                applied_installment_number=(
                    keep_links_from.applied_installment_number if keep_links_from else None
                ),
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e)

    def _schedule(self, expense: Expense) -> list[InstallmentDraft]:
        if not expense.is_plan_root:
            return []
        credit = expense.credit_data
        return schedule(
            purchase_date=expense.date,
            total_installments=credit.total_installments,
            monthly=credit.monthly_amount,
            card_id=credit.card_id,
            variant=self._settings.schedule_variant,
            now=self._store.now(),
        )

    async def _commit(self, operation: str, batch, correlation_id) -> None:
        try:
            await batch.commit()
        except StorageError as e:
            await self._audit_logger.log_store_error(operation, str(e), correlation_id)
            raise

    async def _log_scheduled(
        self,
        expense_id: str,
        expense: Expense,
        drafts: list[InstallmentDraft],
        correlation_id,
    ) -> None:
        await self._audit_logger.log_installments_scheduled(
            expense_id=expense_id,
            count=len(drafts),
            monthly_amount=str(expense.credit_data.monthly_amount),
            card_id=expense.credit_data.card_id,
            correlation_id=correlation_id,
        )
