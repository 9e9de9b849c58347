"""
Component Wiring for Spendtrack

This module ties the ledgers, the dashboard queries and the audit logger
to one document store for one user.

DESIGN DECISION: Everything is scoped to a uid at construction time.
There is no process-wide "current user" or "selected date"; callers
hold that context and pass dates into the dashboard queries.
"""

import logging
from typing import Optional

import structlog

from spendtrack.audit import AuditLogger
from spendtrack.config import StorageBackend, get_settings
from spendtrack.ledger import (
    CreditCardRegistry,
    DailyTargetService,
    ExpenseLedger,
    InstallmentLedger,
)
from spendtrack.ledger.collections import AUDIT_LOG, user_collection
from spendtrack.queries import DashboardQueries
from spendtrack.services.storage import (
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
)


logger = structlog.get_logger(__name__)


class SpendtrackApp:
    """All components for one user, sharing one store and one audit logger."""

    def __init__(
        self,
        store: DocumentStore,
        uid: str,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.uid = uid
        self.store = store
        self.audit_logger = audit_logger or AuditLogger()

        self.cards = CreditCardRegistry(store, uid, self.audit_logger)
        self.installments = InstallmentLedger(store, uid, self.audit_logger)
        self.expenses = ExpenseLedger(
            store,
            uid,
            installments=self.installments,
            cards=self.cards,
            audit_logger=self.audit_logger,
        )
        self.targets = DailyTargetService(store, uid, self.audit_logger)
        self.dashboard = DashboardQueries(
            self.expenses,
            self.installments,
            self.cards,
            self.targets,
        )


def configure_logging(level: str) -> None:
    """Route structlog output through stdlib logging at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))


def create_store() -> DocumentStore:
    """Document store for the configured backend."""
    backend = get_settings().app.storage_backend
    if backend == StorageBackend.GOOGLE_SHEETS:
        return GoogleSheetsDocumentStore(GoogleSheetsClient())
    return InMemoryDocumentStore()


def create_app_components(
    uid: str,
    store: Optional[DocumentStore] = None,
) -> SpendtrackApp:
    """
    Factory function to create all application components for one user.

    Args:
        uid: The signed-in user's id
        store: Document store to use. Defaults to the configured backend.

    Returns:
        SpendtrackApp with ledgers, card registry, targets and dashboard
    """
    app_settings = get_settings().app
    configure_logging(app_settings.log_level)

    store = store or create_store()

    audit_logger = AuditLogger()
    if app_settings.persist_audit_events:
        audit_logger = AuditLogger(store, user_collection(uid, AUDIT_LOG))

    logger.info(
        "components_created",
        uid=uid,
        store=type(store).__name__,
        environment=app_settings.app_environment,
    )
    return SpendtrackApp(store, uid, audit_logger)
