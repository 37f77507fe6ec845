"""
Account Service

Create, read, rename and delete accounts.

CRITICAL: This service never changes a balance after creation. The
opening balance is set here once; every later change goes through
the BalanceReconciliationEngine. Writes take the same per-account
lock the engine uses, so a rename can't overwrite a concurrent
balance change with a stale snapshot.
"""

from typing import Any, Optional, Union
from uuid import UUID

from pydantic import ValidationError

from money_manager.audit import AuditLogger
from money_manager.ledger.amounts import parse_decimal
from money_manager.ledger.engine import as_uuid, payload_error
from money_manager.ledger.errors import (
    EntityNotFoundError,
    ForbiddenError,
    InvalidPayloadError,
)
from money_manager.ledger.locks import AccountLockRegistry
from money_manager.models.ledger import Account, AccountType, Transfer, utc_now
from money_manager.services.storage import LedgerStorageInterface


EDITABLE_ACCOUNT_FIELDS = frozenset({"name", "type"})
BALANCE_FIELDS = frozenset({"balance", "opening_balance"})


class AccountService:
    """
    Account lifecycle operations, scoped to the calling user.

    Args:
        storage: Ledger storage backend
        audit_logger: Optional audit trail
        locks: Must be the engine's registry when both run together
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        locks: Optional[AccountLockRegistry] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._locks = locks or AccountLockRegistry()

    async def create_account(
        self,
        user_id: str,
        name: str,
        account_type: Union[AccountType, str],
        balance: Any = 0,
    ) -> Account:
        """
        Open a new account.

        The balance may be negative (a credit card that starts in debt).

        Raises:
            InvalidAmountError: Balance is not a number
            InvalidPayloadError: Name empty or type unknown
        """
        opening = parse_decimal(balance)
        try:
            account = Account(
                user_id=user_id,
                name=name,
                type=account_type,
                balance=opening,
                opening_balance=opening,
            )
        except ValidationError as e:
            raise payload_error(e)

        saved = await self._storage.save_account(account)

        if self._audit_logger:
            await self._audit_logger.log_account_created(
                user_id=user_id,
                account_id=saved.id,
                name=saved.name,
                opening_balance=saved.opening_balance,
            )

        return saved

    async def get_account(self, user_id: str, account_id: Union[UUID, str]) -> Account:
        """
        Raises:
            EntityNotFoundError: Account doesn't exist
            ForbiddenError: Account belongs to another user
        """
        account_id = as_uuid(account_id, "account_id")
        account = await self._storage.get_account(account_id)
        if account is None:
            raise EntityNotFoundError("account", account_id)
        if account.user_id != user_id:
            raise ForbiddenError("account", account_id)
        return account

    async def list_accounts(self, user_id: str) -> list[Account]:
        """The user's accounts, newest first."""
        return await self._storage.list_accounts(user_id)

    async def update_account(
        self,
        user_id: str,
        account_id: Union[UUID, str],
        changes: dict[str, Any],
    ) -> Account:
        """
        Rename an account or change its type.

        Raises:
            InvalidPayloadError: A balance field or unknown field was supplied
            EntityNotFoundError: Account doesn't exist
            ForbiddenError: Account belongs to another user
        """
        if BALANCE_FIELDS & changes.keys():
            raise InvalidPayloadError(
                "Account balance can only change through transactions and transfers"
            )
        unknown = changes.keys() - EDITABLE_ACCOUNT_FIELDS
        if unknown:
            raise InvalidPayloadError(f"Unknown account fields: {', '.join(sorted(unknown))}")

        account = await self.get_account(user_id, account_id)

        async with self._locks.hold(account.id):
            # Fresh snapshot so the stored balance is carried over untouched
            account = await self.get_account(user_id, account.id)
            supplied = {k: v for k, v in changes.items() if v is not None}
            try:
                updated = Account.model_validate({
                    **account.model_dump(),
                    **supplied,
                    "updated_at": utc_now(),
                })
            except ValidationError as e:
                raise payload_error(e)
            saved = await self._storage.save_account(updated)

        if self._audit_logger:
            await self._audit_logger.log_account_updated(
                user_id=user_id,
                account_id=saved.id,
                changed_fields=sorted(supplied),
            )

        return saved

    async def delete_account(self, user_id: str, account_id: Union[UUID, str]) -> Account:
        """
        Delete an account.

        Linked transactions are left in place with a dangling reference;
        later edits or deletes of those transactions skip the balance step.

        Returns:
            The deleted account

        Raises:
            EntityNotFoundError: Account doesn't exist
            ForbiddenError: Account belongs to another user
        """
        account = await self.get_account(user_id, account_id)

        async with self._locks.hold(account.id):
            account = await self.get_account(user_id, account.id)
            await self._storage.delete_account(account.id)

        if self._audit_logger:
            await self._audit_logger.log_account_deleted(
                user_id=user_id,
                account_id=account.id,
                balance=account.balance,
            )

        return account

    async def list_transfers(self, user_id: str) -> list[Transfer]:
        """Transfer history, newest date first."""
        return await self._storage.list_transfers(user_id)
