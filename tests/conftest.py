"""Shared fixtures for the money ledger tests."""

from datetime import date

import pytest

from money_ledger.audit import AuditLogger
from money_ledger.config import AppSettings
from money_ledger.engine import InvestmentEngine, TransactionEngine
from money_ledger.orchestrator import LedgerService
from money_ledger.services.storage import InMemoryAuditStorage, InMemorySnapshotStorage
from money_ledger.store import LedgerStore


DAY_1 = date(2024, 1, 10)
DAY_2 = date(2024, 2, 10)
DAY_3 = date(2024, 3, 10)


@pytest.fixture
def store() -> LedgerStore:
    return LedgerStore.empty()


@pytest.fixture
def investments(store) -> InvestmentEngine:
    return InvestmentEngine(store)


@pytest.fixture
def transactions(store, investments) -> TransactionEngine:
    return TransactionEngine(store, investments)


@pytest.fixture
def person(transactions):
    """A person who has handed over 500."""
    p = transactions.add_person("Ravi")
    transactions.apply_person_transaction("Receipt", p.id, 500, DAY_1)
    return p


@pytest.fixture
def two_people(transactions):
    """P1 with 600 and P2 with 400 available."""
    p1 = transactions.add_person("Asha")
    p2 = transactions.add_person("Vikram")
    transactions.apply_person_transaction("Receipt", p1.id, 600, DAY_1)
    transactions.apply_person_transaction("Receipt", p2.id, 400, DAY_1)
    return p1, p2


@pytest.fixture
def loan(transactions):
    return transactions.add_loan("Suresh")


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def snapshot_storage() -> InMemorySnapshotStorage:
    return InMemorySnapshotStorage()


@pytest.fixture
def service(snapshot_storage, audit_storage) -> LedgerService:
    return LedgerService(
        snapshot_storage=snapshot_storage,
        audit_logger=AuditLogger(audit_storage),
        settings=AppSettings(),
    )
