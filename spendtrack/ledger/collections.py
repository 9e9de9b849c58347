"""Per-user collection paths and document parsing shared by the ledgers."""

import structlog
from pydantic import ValidationError as PydanticValidationError

from spendtrack.ledger.errors import ValidationError
from spendtrack.services.storage import Document


EXPENSES = "expenses"
INSTALLMENTS = "installments"
CREDIT_CARDS = "creditCards"
DAILY_TARGETS = "dailyTargets"
AUDIT_LOG = "auditLog"

logger = structlog.get_logger(__name__)


def user_collection(uid: str, name: str) -> str:
    """Collection path inside one user's namespace, e.g. users/u1/expenses."""
    if not uid:
        raise ValidationError("A user id is required", field="uid")
    return f"users/{uid}/{name}"


def parse_documents(docs: list[Document], model: type) -> list:
    """Convert stored documents to models, skipping (and logging) malformed ones."""
    parsed = []
    for doc in docs:
        try:
            parsed.append(model.from_document(doc.id, doc.data))
        except PydanticValidationError as e:
            logger.warning(
                "malformed_document_skipped",
                model=model.__name__,
                document_id=doc.id,
                error=str(e),
            )
    return parsed
