"""
Shared fixtures for the ledger tests.

Everything runs against the in-memory backend with a controllable
clock. No network, no Google credentials.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from money_manager.audit import AuditLogger
from money_manager.ledger import (
    AccountLockRegistry,
    BalanceAuditor,
    BalanceReconciliationEngine,
)
from money_manager.models.ledger import Account, AccountType
from money_manager.services.accounts import AccountService
from money_manager.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


USER = "user-1"


class FakeClock:
    """Callable clock that only moves when a test tells it to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def locks():
    return AccountLockRegistry()


@pytest.fixture
def engine(storage, audit_logger, locks, clock):
    return BalanceReconciliationEngine(
        storage,
        audit_logger=audit_logger,
        locks=locks,
        edit_window_hours=12,
        clock=clock,
    )


@pytest.fixture
def account_service(storage, audit_logger, locks):
    return AccountService(storage, audit_logger=audit_logger, locks=locks)


@pytest.fixture
def auditor(storage, audit_logger):
    return BalanceAuditor(storage, audit_logger=audit_logger)


@pytest.fixture
def make_account(storage):
    """Factory saving an account straight to storage."""

    async def _make(balance="0", user_id=USER, name="Wallet", account_type=AccountType.CASH):
        return await storage.save_account(Account(
            user_id=user_id,
            name=name,
            type=account_type,
            balance=Decimal(balance),
        ))

    return _make


@pytest.fixture
def balance_of(storage):
    """Read an account's current stored balance."""

    async def _balance(account_id):
        account = await storage.get_account(account_id)
        return account.balance

    return _balance
