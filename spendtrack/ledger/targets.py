"""Self-set daily spending targets."""

from datetime import date
from decimal import Decimal
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from spendtrack.audit import AuditLogger
from spendtrack.ledger.collections import DAILY_TARGETS, parse_documents, user_collection
from spendtrack.ledger.errors import ValidationError
from spendtrack.models.card import DailyTarget
from spendtrack.services.storage import DocumentStore, Filter, OrderBy


class DailyTargetService:
    """Daily targets for one user. Several targets may exist for a date; the first set wins."""

    def __init__(
        self,
        store: DocumentStore,
        uid: str,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._collection = user_collection(uid, DAILY_TARGETS)
        self._audit_logger = audit_logger or AuditLogger()

    async def set_daily_target(
        self,
        amount: Union[Decimal, float, str],
        on_date: Optional[date] = None,
    ) -> str:
        """
        Record a target for a date (today by default).

        Raises:
            ValidationError: If the amount is not a positive number
        """
        try:
            target = DailyTarget(
                amount=amount,
                date=on_date or date.today(),
                created_at=self._store.now(),
            )
        except PydanticValidationError as e:
            error = ValidationError.from_pydantic(e)
            await self._audit_logger.log_validation_failed("set_daily_target", str(error))
            raise error

        target_id = await self._store.create(self._collection, target.to_document())
        await self._audit_logger.log_daily_target_set(
            target_id=target_id,
            amount=str(target.amount),
            date=target.date.isoformat(),
        )
        return target_id

    async def get_daily_target(self, on_date: Optional[date] = None) -> Optional[DailyTarget]:
        docs = await self._store.query(
            self._collection,
            filters=[Filter(field="date", value=on_date or date.today())],
            order_by=OrderBy(field="created_at"),
        )
        targets = parse_documents(docs, DailyTarget)
        return targets[0] if targets else None
