"""
Balance Reconciliation Engine

The single authority for changing an account's balance after it is
created. Every create/update/delete of a transaction and every
transfer goes through here, so the cached balance always equals the
opening balance plus the signed contributions of the records that
currently exist.

SIGN CONVENTION:
- income:   +amount on the linked account
- expense:  -amount on the linked account
- transfer: -amount on the source, +amount on the destination

GUARANTEES:
- Rule violations raise a LedgerError before anything is written
- Balance changes run under per-account locks and use the store's
  atomic delta, so concurrent operations never lose an update
- A transfer is committed as one unit (record + both balances)
- If the second write of a two-write operation fails, the first is
  compensated before the storage error propagates
- A link to a missing or foreign account is tolerated: the record
  is kept, the balance step is skipped and audited
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Union
from uuid import UUID

from pydantic import ValidationError

from money_manager.audit import AuditLogger, create_correlation_id
from money_manager.config import get_settings
from money_manager.ledger.amounts import parse_positive_amount
from money_manager.ledger.errors import (
    EditWindowExpiredError,
    EntityNotFoundError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidPayloadError,
    LedgerError,
    SameAccountError,
)
from money_manager.ledger.locks import AccountLockRegistry
from money_manager.models.audit import AuditEventType
from money_manager.models.ledger import (
    Account,
    Division,
    Transaction,
    TransactionChanges,
    TransactionType,
    Transfer,
    TransferReceipt,
    utc_now,
)
from money_manager.services.storage import LedgerStorageInterface, StorageError


def as_uuid(value: Union[UUID, str], field_name: str) -> UUID:
    """Accept UUIDs or their string form from the HTTP layer."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidPayloadError(f"{field_name} is not a valid id")


def payload_error(error: ValidationError) -> InvalidPayloadError:
    """Turn the first pydantic complaint into a caller-facing error."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "payload"
    return InvalidPayloadError(f"{location}: {first['msg']}")


class BalanceReconciliationEngine:
    """
    Applies ledger operations and keeps balances consistent.

    Args:
        storage: Backend holding accounts, transactions and transfers
        audit_logger: Optional audit trail; every mutation is recorded
        locks: Lock registry shared with anything else that writes accounts
        edit_window_hours: Defaults to the LEDGER_EDIT_WINDOW_HOURS setting
        clock: Returns "now"; injectable so tests can move time
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        locks: Optional[AccountLockRegistry] = None,
        edit_window_hours: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._locks = locks or AccountLockRegistry()
        if edit_window_hours is None:
            edit_window_hours = get_settings().ledger.edit_window_hours
        self._edit_window_hours = edit_window_hours
        self._clock = clock or utc_now

    @property
    def locks(self) -> AccountLockRegistry:
        return self._locks

    @property
    def edit_window_hours(self) -> int:
        return self._edit_window_hours

    # =========================================================================
    # Transactions
    # =========================================================================

    async def create_transaction(
        self,
        user_id: str,
        transaction_type: Union[TransactionType, str],
        amount: Any,
        category: str,
        division: Union[Division, str],
        description: str = "",
        date: Optional[datetime] = None,
        account_id: Optional[Union[UUID, str]] = None,
    ) -> Transaction:
        """
        Record an income or expense and move the linked account's balance.

        The record is persisted even when the account link cannot be
        honoured (account missing or owned by someone else).

        Raises:
            InvalidAmountError: Amount missing, non-numeric or not positive
            InvalidPayloadError: Any other field invalid
        """
        amount = parse_positive_amount(amount)
        linked_id = as_uuid(account_id, "account_id") if account_id else None

        now = self._clock()
        fields = {
            "user_id": user_id,
            "type": transaction_type,
            "amount": amount,
            "category": category,
            "division": division,
            "description": description or "",
            "date": date or now,
            "account_id": linked_id,
            "created_at": now,
            "updated_at": now,
        }
        try:
            transaction = Transaction(**fields)
        except ValidationError as e:
            raise payload_error(e)

        correlation_id = create_correlation_id()

        async with self._locks.hold(transaction.account_id):
            created = await self._storage.create_transaction(transaction)
            if created.account_id:
                try:
                    await self._apply_contribution(
                        user_id, created.account_id, created.signed_amount(), correlation_id
                    )
                except StorageError as e:
                    await self._storage.delete_transaction(created.id)
                    await self._log_error("transaction_create_rolled_back", e, correlation_id)
                    raise

        if self._audit_logger:
            await self._audit_logger.log_transaction(
                event_type=AuditEventType.TRANSACTION_CREATED,
                user_id=user_id,
                transaction_id=created.id,
                transaction_type=created.type.value,
                amount=created.amount,
                account_id=created.account_id,
                correlation_id=correlation_id,
            )

        return created

    async def update_transaction(
        self,
        user_id: str,
        transaction_id: Union[UUID, str],
        changes: Union[TransactionChanges, dict[str, Any]],
    ) -> Transaction:
        """
        Change a transaction inside its edit window.

        When type or amount changes, the old contribution is reversed and
        the new one applied as a single net delta on the linked account.

        Raises:
            InvalidAmountError: New amount not a positive number
            InvalidPayloadError: Any other change invalid
            EntityNotFoundError: Transaction doesn't exist
            ForbiddenError: Transaction belongs to another user
            EditWindowExpiredError: Created more than the window ago
        """
        changes = self.parse_changes(changes)
        transaction_id = as_uuid(transaction_id, "transaction_id")

        existing = await self._load_owned_transaction(user_id, transaction_id)

        async with self._locks.hold(existing.account_id, existing.id):
            # Re-read under the lock: a concurrent edit may have landed
            existing = await self._load_owned_transaction(user_id, transaction_id)

            now = self._clock()
            if not existing.is_editable(now, self._edit_window_hours):
                if self._audit_logger:
                    await self._audit_logger.log_edit_rejected(
                        user_id=user_id,
                        transaction_id=existing.id,
                        created_at=existing.created_at,
                        window_hours=self._edit_window_hours,
                    )
                raise EditWindowExpiredError(
                    existing.id, existing.created_at, self._edit_window_hours
                )

            try:
                updated = Transaction.model_validate({
                    **existing.model_dump(),
                    **changes.model_dump(exclude_none=True),
                    "updated_at": now,
                })
            except ValidationError as e:
                raise payload_error(e)

            correlation_id = create_correlation_id()
            delta = Decimal("0")
            adjusted: Optional[Account] = None
            if changes.affects_balance and existing.account_id:
                delta = updated.signed_amount() - existing.signed_amount()
            if delta:
                adjusted = await self._apply_contribution(
                    user_id, existing.account_id, delta, correlation_id
                )

            try:
                saved = await self._storage.update_transaction(updated)
            except StorageError as e:
                if adjusted is not None:
                    await self._storage.apply_balance_delta(existing.account_id, -delta)
                await self._log_error("transaction_update_rolled_back", e, correlation_id)
                raise

        if self._audit_logger:
            await self._audit_logger.log_transaction(
                event_type=AuditEventType.TRANSACTION_UPDATED,
                user_id=user_id,
                transaction_id=saved.id,
                transaction_type=saved.type.value,
                amount=saved.amount,
                account_id=saved.account_id,
                correlation_id=correlation_id,
            )

        return saved

    async def delete_transaction(
        self,
        user_id: str,
        transaction_id: Union[UUID, str],
    ) -> Transaction:
        """
        Delete a transaction and reverse its contribution.

        Deletion has no time limit, unlike editing.

        Returns:
            The deleted transaction

        Raises:
            EntityNotFoundError: Transaction doesn't exist
            ForbiddenError: Transaction belongs to another user
        """
        transaction_id = as_uuid(transaction_id, "transaction_id")
        existing = await self._load_owned_transaction(user_id, transaction_id)

        async with self._locks.hold(existing.account_id, existing.id):
            existing = await self._load_owned_transaction(user_id, transaction_id)
            correlation_id = create_correlation_id()

            reversed_account: Optional[Account] = None
            if existing.account_id:
                reversed_account = await self._apply_contribution(
                    user_id, existing.account_id, -existing.signed_amount(), correlation_id
                )

            try:
                await self._storage.delete_transaction(existing.id)
            except StorageError as e:
                if reversed_account is not None:
                    await self._storage.apply_balance_delta(
                        existing.account_id, existing.signed_amount()
                    )
                await self._log_error("transaction_delete_rolled_back", e, correlation_id)
                raise

        if self._audit_logger:
            await self._audit_logger.log_transaction(
                event_type=AuditEventType.TRANSACTION_DELETED,
                user_id=user_id,
                transaction_id=existing.id,
                transaction_type=existing.type.value,
                amount=existing.amount,
                account_id=existing.account_id,
                correlation_id=correlation_id,
            )

        return existing

    # =========================================================================
    # Transfers
    # =========================================================================

    async def transfer(
        self,
        user_id: str,
        from_account_id: Optional[Union[UUID, str]],
        to_account_id: Optional[Union[UUID, str]],
        amount: Any,
        description: str = "",
        date: Optional[datetime] = None,
    ) -> TransferReceipt:
        """
        Move money between two of the user's accounts.

        Transfers are final. To undo one, transfer the money back.

        Raises:
            InvalidPayloadError: An account id is missing or malformed
            SameAccountError: Source and destination are the same account
            InvalidAmountError: Amount missing or not positive
            EntityNotFoundError: Either account doesn't exist
            ForbiddenError: Either account belongs to another user
            InsufficientFundsError: Source balance is below the amount
        """
        source_id: Optional[UUID] = None
        destination_id: Optional[UUID] = None
        try:
            if not from_account_id or not to_account_id:
                raise InvalidPayloadError(
                    "Please provide fromAccount, toAccount, and amount"
                )
            source_id = as_uuid(from_account_id, "from_account_id")
            destination_id = as_uuid(to_account_id, "to_account_id")
            if source_id == destination_id:
                raise SameAccountError(source_id)
            amount = parse_positive_amount(amount)

            receipt = await self._commit_transfer(
                user_id, source_id, destination_id, amount, description, date
            )
        except LedgerError as e:
            if self._audit_logger:
                await self._audit_logger.log_transfer_rejected(
                    user_id=user_id,
                    from_account_id=source_id,
                    to_account_id=destination_id,
                    error_code=e.error_code,
                    error_message=e.message,
                )
            raise

        if self._audit_logger:
            transfer = receipt.transfer
            await self._audit_logger.log_transfer_recorded(
                user_id=user_id,
                transfer_id=transfer.id,
                from_account_id=transfer.from_account_id,
                to_account_id=transfer.to_account_id,
                amount=transfer.amount,
                correlation_id=create_correlation_id(),
            )

        return receipt

    async def _commit_transfer(
        self,
        user_id: str,
        source_id: UUID,
        destination_id: UUID,
        amount: Decimal,
        description: str,
        date: Optional[datetime],
    ) -> TransferReceipt:
        async with self._locks.hold(source_id, destination_id):
            source = await self._storage.get_account(source_id)
            destination = await self._storage.get_account(destination_id)

            if source is None:
                raise EntityNotFoundError("account", source_id)
            if destination is None:
                raise EntityNotFoundError("account", destination_id)
            if source.user_id != user_id:
                raise ForbiddenError("account", source_id)
            if destination.user_id != user_id:
                raise ForbiddenError("account", destination_id)

            if source.balance < amount:
                raise InsufficientFundsError(source.id, source.balance, amount)

            now = self._clock()
            try:
                transfer = Transfer(
                    user_id=user_id,
                    from_account_id=source_id,
                    to_account_id=destination_id,
                    amount=amount,
                    description=description or "",
                    date=date or now,
                    created_at=now,
                )
            except ValidationError as e:
                raise payload_error(e)

            source, destination = await self._storage.commit_transfer(transfer)

        return TransferReceipt(
            transfer=transfer,
            source_account=source,
            destination_account=destination,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def parse_changes(changes: Union[TransactionChanges, dict[str, Any]]) -> TransactionChanges:
        """
        Validate an update payload.

        The amount is checked first so a bad amount always surfaces
        as InvalidAmountError rather than a generic payload error.
        """
        if isinstance(changes, TransactionChanges):
            return changes
        payload = dict(changes)
        if payload.get("amount") is not None:
            payload["amount"] = parse_positive_amount(payload["amount"])
        try:
            return TransactionChanges.model_validate(payload)
        except ValidationError as e:
            raise payload_error(e)

    async def _load_owned_transaction(self, user_id: str, transaction_id: UUID) -> Transaction:
        transaction = await self._storage.get_transaction(transaction_id)
        if transaction is None:
            raise EntityNotFoundError("transaction", transaction_id)
        if transaction.user_id != user_id:
            raise ForbiddenError("transaction", transaction_id)
        return transaction

    async def _apply_contribution(
        self,
        user_id: str,
        account_id: UUID,
        delta: Decimal,
        correlation_id: UUID,
    ) -> Optional[Account]:
        """
        Add a signed delta to an account the user owns.

        Caller must hold the account's lock.

        Returns:
            The updated account, or None when the step was skipped
        """
        account = await self._storage.get_account(account_id)
        if account is None:
            await self._skip(user_id, account_id, "account not found", correlation_id)
            return None
        if account.user_id != user_id:
            await self._skip(user_id, account_id, "account belongs to another user", correlation_id)
            return None

        updated = await self._storage.apply_balance_delta(account_id, delta)
        if updated is None:
            await self._skip(user_id, account_id, "account not found", correlation_id)
            return None

        if self._audit_logger:
            await self._audit_logger.log_balance_adjusted(
                user_id=user_id,
                account_id=account_id,
                delta=delta,
                new_balance=updated.balance,
                correlation_id=correlation_id,
            )
        return updated

    async def _skip(self, user_id: str, account_id: UUID, reason: str, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_balance_skipped(
                user_id=user_id,
                account_id=account_id,
                reason=reason,
                correlation_id=correlation_id,
            )

    async def _log_error(self, error_type: str, error: Exception, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_error(
                error_type=error_type,
                error_message=str(error),
                correlation_id=correlation_id,
            )
