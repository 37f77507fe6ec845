"""
In-Memory Storage Implementation

Holds the whole ledger in process memory. Used by the test suite and
for single-process use where persistence is not needed.

Records are copied on the way in and on the way out, so callers can
never mutate stored state by accident.
"""

import asyncio
from decimal import Decimal
from typing import Optional
from uuid import UUID

from money_manager.models.audit import AuditEvent
from money_manager.models.ledger import (
    Account,
    Transaction,
    TransactionFilter,
    Transfer,
    utc_now,
)
from money_manager.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Dict-backed ledger storage.

    A single asyncio lock guards every write, so each write
    (including the three-record transfer commit) is atomic with
    respect to other coroutines.
    """

    def __init__(self):
        self._accounts: dict[UUID, Account] = {}
        self._transactions: dict[UUID, Transaction] = {}
        self._transfers: dict[UUID, Transfer] = {}
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def get_account(self, account_id: UUID) -> Optional[Account]:
        account = self._accounts.get(account_id)
        return account.model_copy(deep=True) if account else None

    async def save_account(self, account: Account) -> Account:
        async with self._lock:
            stored = account.model_copy(deep=True)
            self._accounts[stored.id] = stored
            return stored.model_copy(deep=True)

    async def list_accounts(self, user_id: str) -> list[Account]:
        accounts = [
            a.model_copy(deep=True)
            for a in self._accounts.values()
            if a.user_id == user_id
        ]
        accounts.sort(key=lambda a: a.created_at, reverse=True)
        return accounts

    async def delete_account(self, account_id: UUID) -> bool:
        async with self._lock:
            return self._accounts.pop(account_id, None) is not None

    async def apply_balance_delta(
        self,
        account_id: UUID,
        delta: Decimal,
    ) -> Optional[Account]:
        async with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return None
            updated = account.model_copy(
                update={"balance": account.balance + delta, "updated_at": utc_now()}
            )
            self._accounts[account_id] = updated
            return updated.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        transaction = self._transactions.get(transaction_id)
        return transaction.model_copy(deep=True) if transaction else None

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            if transaction.id in self._transactions:
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            self._transactions[transaction.id] = transaction.model_copy(deep=True)
            return transaction.model_copy(deep=True)

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            if transaction.id not in self._transactions:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            self._transactions[transaction.id] = transaction.model_copy(deep=True)
            return transaction.model_copy(deep=True)

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        async with self._lock:
            return self._transactions.pop(transaction_id, None) is not None

    async def list_transactions(
        self,
        user_id: str,
        filters: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        filters = filters or TransactionFilter()
        transactions = [
            t.model_copy(deep=True)
            for t in self._transactions.values()
            if t.user_id == user_id and filters.matches(t)
        ]
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def list_transactions_for_account(self, account_id: UUID) -> list[Transaction]:
        return [
            t.model_copy(deep=True)
            for t in self._transactions.values()
            if t.account_id == account_id
        ]

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    async def get_transfer(self, transfer_id: UUID) -> Optional[Transfer]:
        return self._transfers.get(transfer_id)

    async def create_transfer(self, transfer: Transfer) -> Transfer:
        async with self._lock:
            if transfer.id in self._transfers:
                raise DuplicateError(f"Transfer already exists: {transfer.id}")
            self._transfers[transfer.id] = transfer
            return transfer

    async def list_transfers(self, user_id: str) -> list[Transfer]:
        transfers = [t for t in self._transfers.values() if t.user_id == user_id]
        transfers.sort(key=lambda t: t.date, reverse=True)
        return transfers

    async def list_transfers_for_account(self, account_id: UUID) -> list[Transfer]:
        return [
            t for t in self._transfers.values()
            if account_id in (t.from_account_id, t.to_account_id)
        ]

    async def commit_transfer(self, transfer: Transfer) -> tuple[Account, Account]:
        async with self._lock:
            if transfer.id in self._transfers:
                raise DuplicateError(f"Transfer already exists: {transfer.id}")
            source = self._accounts.get(transfer.from_account_id)
            destination = self._accounts.get(transfer.to_account_id)
            if source is None or destination is None:
                raise NotFoundError("One or both transfer accounts not found")

            now = utc_now()
            source = source.model_copy(
                update={"balance": source.balance - transfer.amount, "updated_at": now}
            )
            destination = destination.model_copy(
                update={"balance": destination.balance + transfer.amount, "updated_at": now}
            )

            # No awaits between these writes: all three land together
            self._transfers[transfer.id] = transfer
            self._accounts[source.id] = source
            self._accounts[destination.id] = destination

            return source.model_copy(deep=True), destination.model_copy(deep=True)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
