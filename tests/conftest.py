"""
Shared fixtures.

Everything runs against the in-memory store and explicit settings;
no test reads credentials or touches the network.
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import SecretStr

from coloc_ledger.audit import AuditLogger
from coloc_ledger.book import LedgerBook
from coloc_ledger.config import LedgerSettings
from coloc_ledger.lifecycle import MonthLifecycle
from coloc_ledger.models import Member, Month, Transaction, TransactionType
from coloc_ledger.services.storage import InMemoryLedgerStore
from coloc_ledger.validation import SettlementAllocator


PASSPHRASE = "ouvre-toi"


def due(member: str, amount: str, deducted: bool = False, day: int = 1) -> Transaction:
    return Transaction(
        type=TransactionType.DUE,
        member_name=member,
        date=date(2025, 3, day),
        description="Cotisation mensuelle",
        amount=Decimal(amount),
        deducted_at_purchase=deducted,
    )


def expense(member: str, amount: str, day: int = 2) -> Transaction:
    return Transaction(
        type=TransactionType.EXPENSE,
        member_name=member,
        date=date(2025, 3, day),
        description="Courses",
        amount=Decimal(amount),
    )


def alice_bob_transactions() -> list[Transaction]:
    """Dues [Alice 200, Bob 200], expenses [Alice 85.50, Bob 120]."""
    return [
        due("Alice", "200"),
        due("Bob", "200"),
        expense("Alice", "85.50"),
        expense("Bob", "120"),
    ]


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(
        reopen_passphrase=SecretStr(PASSPHRASE),
        amount_tolerance=Decimal("0.01"),
    )


@pytest.fixture
def allocator(ledger_settings) -> SettlementAllocator:
    return SettlementAllocator(ledger_settings)


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def book(store, audit_logger) -> LedgerBook:
    return LedgerBook(store, audit_logger=audit_logger)


@pytest.fixture
def lifecycle(store, allocator, ledger_settings, audit_logger) -> MonthLifecycle:
    return MonthLifecycle(
        store,
        allocator=allocator,
        settings=ledger_settings,
        audit_logger=audit_logger,
    )


@pytest.fixture
def march(store) -> Month:
    """Open month Mars-2025 with the Alice/Bob scenario, both on the roster."""
    store.save_members([
        Member(name="Alice", email="alice@example.org"),
        Member(name="Bob", email="bob@example.org"),
    ])
    month = Month(month_name="Mars", year=2025, transactions=alice_bob_transactions())
    store.save_months([month])
    return month
