"""
Shared fixtures for the Spendtrack tests

Everything runs against the in-memory document store; no network.
Ledger coroutines are driven with asyncio.run through the `run` fixture.
"""

import asyncio

import pytest

from spendtrack.config import LedgerSettings, ScheduleVariant, get_settings
from spendtrack.orchestrator import SpendtrackApp
from spendtrack.services.storage import InMemoryDocumentStore


UID = "user-1"


@pytest.fixture
def run():
    """Run a coroutine to completion."""
    return asyncio.run


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    for name in (
        "LEDGER_SCHEDULE_VARIANT",
        "LEDGER_DEFAULT_CARD_ID",
        "STORAGE_BACKEND",
        "PERSIST_AUDIT_EVENTS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def app(store):
    return SpendtrackApp(store, UID)


@pytest.fixture
def variant_b_settings():
    return LedgerSettings(schedule_variant=ScheduleVariant.FIRST_DUE_ON_PURCHASE)
