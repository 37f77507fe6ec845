"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a document database later
2. Use in-memory storage for testing
3. Keep the balance rules decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations the ledger needs.

CRITICAL: Stores hold no business rules. Ownership checks, the edit
window and sign conventions live in the reconciliation engine.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from money_manager.models.audit import AuditEvent
from money_manager.models.ledger import (
    Account,
    Transaction,
    TransactionFilter,
    Transfer,
)


class AccountStorageInterface(ABC):
    """Persistence contract for accounts."""

    @abstractmethod
    async def get_account(self, account_id: UUID) -> Optional[Account]:
        """
        Retrieve an account by its ID.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_account(self, account: Account) -> Account:
        """
        Insert or replace an account (upsert by ID).

        Returns:
            The stored account

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def list_accounts(self, user_id: str) -> list[Account]:
        """
        List a user's accounts, newest first.
        """
        pass

    @abstractmethod
    async def delete_account(self, account_id: UUID) -> bool:
        """
        Delete an account by ID.

        Returns:
            True if an account was deleted
        """
        pass

    @abstractmethod
    async def apply_balance_delta(
        self,
        account_id: UUID,
        delta: Decimal,
    ) -> Optional[Account]:
        """
        Atomically add a signed delta to an account's balance.

        This is the only write path for balances after creation.
        Implementations must not lose concurrent deltas.

        Args:
            account_id: Account to adjust
            delta: Signed amount to add

        Returns:
            The updated account, or None if it no longer exists
        """
        pass


class TransactionStorageInterface(ABC):
    """Persistence contract for income/expense transactions."""

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_transaction(self, transaction: Transaction) -> Transaction:
        """
        Persist a new transaction.

        Raises:
            DuplicateError: If the ID is already used
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace an existing transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if a transaction was deleted
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        user_id: str,
        filters: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        """
        List a user's transactions matching the filters, newest date first.

        Args:
            user_id: Owner the listing is scoped to
            filters: Optional date/category/division/type/amount filters
        """
        pass

    @abstractmethod
    async def list_transactions_for_account(self, account_id: UUID) -> list[Transaction]:
        """
        List every transaction linked to an account.
        """
        pass

    async def list_transactions_in_range(
        self,
        user_id: str,
        start_date: datetime,
        end_date: datetime,
    ) -> list[Transaction]:
        """Transactions dated within [start_date, end_date]."""
        return await self.list_transactions(
            user_id,
            TransactionFilter(start_date=start_date, end_date=end_date),
        )


class TransferStorageInterface(ABC):
    """Persistence contract for transfers. Transfers are never updated or deleted."""

    @abstractmethod
    async def get_transfer(self, transfer_id: UUID) -> Optional[Transfer]:
        pass

    @abstractmethod
    async def create_transfer(self, transfer: Transfer) -> Transfer:
        """
        Persist a transfer record without touching balances.

        Raises:
            DuplicateError: If the ID is already used
        """
        pass

    @abstractmethod
    async def list_transfers(self, user_id: str) -> list[Transfer]:
        """
        List a user's transfers, newest date first.
        """
        pass

    @abstractmethod
    async def list_transfers_for_account(self, account_id: UUID) -> list[Transfer]:
        """
        List every transfer touching an account, as source or destination.
        """
        pass


class LedgerStorageInterface(
    AccountStorageInterface,
    TransactionStorageInterface,
    TransferStorageInterface,
):
    """
    One backend holding accounts, transactions and transfers.

    Combining the three lets a backend offer writes that span
    several records as one unit.
    """

    @abstractmethod
    async def commit_transfer(self, transfer: Transfer) -> tuple[Account, Account]:
        """
        Persist a transfer and move its money as a single unit.

        Writes the transfer record, debits the source account and
        credits the destination account. Either all three writes
        happen or none do.

        Returns:
            (source_account, destination_account) after the move

        Raises:
            NotFoundError: If either account is missing (nothing written)
            StorageError: If the commit fails (nothing written)
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one transaction and its balance change).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
