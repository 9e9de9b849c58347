"""
Installment Ledger

Stores and mutates per-installment paid state.

Every installment belongs to one plan root (expense_id) and, once paid by a
payment expense, points back to it (paid_by_expense_id). The expense ledger
drives the cascades; this module knows how to find the right installment
and stage the write into the caller's batch.

REVERSAL ORDER when a payment expense is deleted:
1. Installments whose paid_by_expense_id is the payment
2. Else the plan installment numbered appliedInstallmentNumber (if paid)
3. Else the highest-numbered paid installment of the plan (heuristic)
"""

from datetime import date, datetime
from typing import Optional

from spendtrack.audit import AuditLogger
from spendtrack.ledger.collections import (
    EXPENSES,
    INSTALLMENTS,
    parse_documents,
    user_collection,
)
from spendtrack.models.expense import Expense
from spendtrack.models.installment import Installment, InstallmentDraft
from spendtrack.services.storage import (
    DocRef,
    DocumentStore,
    Filter,
    NotFoundError,
    OrderBy,
    WriteBatch,
)


UNPAID_FIELDS = {"is_paid": False, "paid_at": None, "paid_by_expense_id": None}


def _number_then_due(inst: Installment) -> tuple[int, str]:
    return inst.installment_number, inst.due_date.isoformat() if inst.due_date else ""


class InstallmentLedger:
    """Installment storage for one user."""

    def __init__(
        self,
        store: DocumentStore,
        uid: str,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._uid = uid
        self._collection = user_collection(uid, INSTALLMENTS)
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def collection(self) -> str:
        return self._collection

    def ref(self, installment_id: str) -> DocRef:
        return DocRef(collection=self._collection, id=installment_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, installment_id: str) -> Optional[Installment]:
        data = await self._store.get(self.ref(installment_id))
        if data is None:
            return None
        return Installment.from_document(installment_id, data)

    async def list_installments(self, due_date: Optional[date] = None) -> list[Installment]:
        """All installments (optionally due on one date), soonest due first; undated last."""
        filters = [Filter(field="due_date", value=due_date)] if due_date else []
        docs = await self._store.query(
            self._collection,
            filters=filters,
            order_by=OrderBy(field="due_date"),
        )
        return parse_documents(docs, Installment)

    async def list_for_expense(self, expense_id: str) -> list[Installment]:
        """A plan's installments ordered by installment number."""
        if not expense_id:
            return []
        docs = await self._store.query(
            self._collection,
            filters=[Filter(field="expense_id", value=expense_id)],
        )
        return sorted(parse_documents(docs, Installment), key=_number_then_due)

    async def list_paid_by(self, payment_expense_id: str) -> list[Installment]:
        docs = await self._store.query(
            self._collection,
            filters=[Filter(field="paid_by_expense_id", value=payment_expense_id)],
        )
        return parse_documents(docs, Installment)

    async def find_orphaned_payments(self) -> list[Expense]:
        """
        Payment expenses that no installment points back to.

        These are payments whose target could not be located (or whose
        installment update was lost) and need manual reconciliation.
        """
        expense_docs = await self._store.query(user_collection(self._uid, EXPENSES))
        payments = [e for e in parse_documents(expense_docs, Expense) if e.is_payment]
        if not payments:
            return []

        paid_by = {
            inst.paid_by_expense_id
            for inst in await self.list_installments()
            if inst.is_paid and inst.paid_by_expense_id
        }
        return [p for p in payments if p.id not in paid_by]

    # -------------------------------------------------------------------------
    # Direct writes
    # -------------------------------------------------------------------------

    async def set_paid(self, installment_id: str, is_paid: bool = True) -> Installment:
        """
        Manually mark an installment paid or unpaid.

        Marking unpaid clears the payment link as well.

        Raises:
            NotFoundError: If the installment doesn't exist
        """
        installment = await self.get(installment_id)
        if installment is None:
            raise NotFoundError(f"Installment not found: {installment_id}")

        if is_paid:
            fields = {"is_paid": True, "paid_at": self._store.now()}
        else:
            fields = dict(UNPAID_FIELDS)
        await self._store.update(self.ref(installment_id), fields)

        updated = installment.model_copy(update=fields)
        if is_paid:
            await self._audit_logger.log_installment_paid(
                installment_id=installment_id,
                installment_number=installment.installment_number,
                payment_expense_id=None,
                plan_expense_id=installment.expense_id,
            )
        else:
            await self._audit_logger.log_installment_reverted(
                installment_id=installment_id,
                installment_number=installment.installment_number,
                reason="marked unpaid manually",
            )
        return updated

    async def delete_for_expense(self, expense_id: str) -> int:
        """Delete every installment of a plan; returns how many were removed."""
        batch = self._store.batch()
        count = await self.stage_delete_for_expense(batch, expense_id)
        if count:
            await batch.commit()
        return count

    # -------------------------------------------------------------------------
    # Batch staging used by the expense ledger and card registry
    # -------------------------------------------------------------------------

    def stage_create(
        self,
        batch: WriteBatch,
        expense_id: str,
        drafts: list[InstallmentDraft],
    ) -> list[Installment]:
        """Stage one document per draft; returns the installments as they will be stored."""
        created_at = self._store.now()
        installments = []
        for draft in drafts:
            ref = self._store.new_ref(self._collection)
            installment = Installment.from_draft(draft, expense_id, created_at)
            batch.set(ref, installment.to_document())
            installments.append(installment.model_copy(update={"id": ref.id}))
        return installments

    async def stage_delete_for_expense(self, batch: WriteBatch, expense_id: str) -> int:
        docs = await self._store.query(
            self._collection,
            filters=[Filter(field="expense_id", value=expense_id)],
        )
        for doc in docs:
            batch.delete(self.ref(doc.id))
        return len(docs)

    def stage_mark_paid(
        self,
        batch: WriteBatch,
        installment: Installment,
        payment_expense_id: str,
        paid_at: datetime,
    ) -> None:
        batch.update(self.ref(installment.id), {
            "is_paid": True,
            "paid_at": paid_at,
            "paid_by_expense_id": payment_expense_id,
        })

    async def stage_reversal(
        self,
        batch: WriteBatch,
        payment_expense_id: str,
        plan_expense_id: str,
        applied_installment_number: Optional[int] = None,
    ) -> list[Installment]:
        """
        Stage the un-pay of whatever installment(s) a payment expense paid.

        Returns the installments that will be reverted (possibly none).
        """
        targets = [i for i in await self.list_paid_by(payment_expense_id) if i.is_paid]

        if not targets and plan_expense_id:
            plan = await self.list_for_expense(plan_expense_id)
            if applied_installment_number:
                targets = [
                    i for i in plan
                    if i.installment_number == applied_installment_number and i.is_paid
                ][:1]
            else:
                # Ambiguous when several were paid out of order; latest number wins
                paid = [i for i in plan if i.is_paid]
                if paid:
                    targets = [max(paid, key=lambda i: i.installment_number)]

        for installment in targets:
            batch.update(self.ref(installment.id), dict(UNPAID_FIELDS))
        return targets

    @staticmethod
    def select_payable(
        installments: list[Installment],
        installment_number: Optional[int] = None,
    ) -> Optional[Installment]:
        """
        Pick the installment a payment applies to.

        An explicit number must match exactly (even if already paid);
        otherwise the lowest-numbered unpaid installment is chosen.
        """
        ordered = sorted(installments, key=_number_then_due)
        if installment_number:
            return next((i for i in ordered if i.installment_number == installment_number), None)
        return next((i for i in ordered if not i.is_paid), None)
