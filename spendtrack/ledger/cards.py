"""
Credit Card Registry

Cards are referenced from expenses and installments by a card key.
Older documents use either the card's internal id or its user-facing
card_id, so the registry is the one place that resolves a key to the
canonical internal id, and deletion matches both.
"""

from decimal import Decimal
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from spendtrack.audit import AuditLogger
from spendtrack.ledger.collections import (
    CREDIT_CARDS,
    EXPENSES,
    INSTALLMENTS,
    parse_documents,
    user_collection,
)
from spendtrack.ledger.errors import ValidationError
from spendtrack.models.card import CreditCard
from spendtrack.services.storage import DocRef, DocumentStore, Filter, OrderBy


class CreditCardRegistry:
    """Catalog of one user's credit cards."""

    def __init__(
        self,
        store: DocumentStore,
        uid: str,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._collection = user_collection(uid, CREDIT_CARDS)
        self._installments = user_collection(uid, INSTALLMENTS)
        self._expenses = user_collection(uid, EXPENSES)
        self._audit_logger = audit_logger or AuditLogger()

    def ref(self, card_doc_id: str) -> DocRef:
        return DocRef(collection=self._collection, id=card_doc_id)

    async def add_card(
        self,
        name: str,
        bank: Optional[str] = None,
        card_id: Optional[str] = None,
        limit: Union[Decimal, float, str] = Decimal("0"),
    ) -> str:
        """
        Register a card.

        card_id defaults to the name lower-cased with spaces as underscores.

        Returns:
            The card's internal id

        Raises:
            ValidationError: Missing name or negative limit
        """
        try:
            card = CreditCard(
                name=name,
                bank=bank or None,
                card_id=card_id or None,
                limit=limit if limit not in (None, "") else Decimal("0"),
                created_at=self._store.now(),
            )
        except PydanticValidationError as e:
            error = ValidationError.from_pydantic(e)
            await self._audit_logger.log_validation_failed("add_card", str(error))
            raise error

        card_doc_id = await self._store.create(self._collection, card.to_document())
        await self._audit_logger.log_card_added(card_doc_id, card.name)
        return card_doc_id

    async def list_cards(self) -> list[CreditCard]:
        docs = await self._store.query(self._collection, order_by=OrderBy(field="created_at"))
        return parse_documents(docs, CreditCard)

    async def get_card(self, card_doc_id: str) -> Optional[CreditCard]:
        data = await self._store.get(self.ref(card_doc_id))
        if data is None:
            return None
        return CreditCard.from_document(card_doc_id, data)

    async def resolve_card_key(self, key: Optional[str]) -> Optional[str]:
        """
        Canonical internal id for a card key.

        An internal id match wins over a user-facing card_id match;
        unknown keys are returned unchanged.
        """
        if not key:
            return key
        cards = await self.list_cards()
        for card in cards:
            if card.id == key:
                return card.id
        for card in cards:
            if card.card_id == key:
                return card.id
        return key

    async def delete_card(self, card_doc_id: str) -> bool:
        """
        Delete a card and cascade.

        In one batch: removes the card, removes every installment charged to
        it (by internal id or user-facing card_id) and clears credit_data on
        expenses charged to it. The expenses themselves are kept.

        Returns:
            True if the card existed, False if only stray references
            to the id were cleaned up

        Raises:
            ValidationError: If no card id is given
        """
        if not card_doc_id:
            raise ValidationError("Missing card id", field="card_id")

        card = await self.get_card(card_doc_id)
        keys = [card_doc_id]
        if card and card.card_id and card.card_id != card_doc_id:
            keys.append(card.card_id)

        batch = self._store.batch()
        batch.delete(self.ref(card_doc_id))

        installment_ids: set[str] = set()
        expense_ids: set[str] = set()
        for key in keys:
            for doc in await self._store.query(
                self._installments, filters=[Filter(field="card_id", value=key)]
            ):
                installment_ids.add(doc.id)
            for doc in await self._store.query(
                self._expenses, filters=[Filter(field="credit_data.card_id", value=key)]
            ):
                expense_ids.add(doc.id)

        for installment_id in sorted(installment_ids):
            batch.delete(DocRef(collection=self._installments, id=installment_id))
        for expense_id in sorted(expense_ids):
            batch.update(DocRef(collection=self._expenses, id=expense_id), {"credit_data": None})

        await batch.commit()

        await self._audit_logger.log_card_deleted(
            card_id=card_doc_id,
            deleted_installments=len(installment_ids),
            detached_expenses=len(expense_ids),
        )
        return card is not None
