"""
Balance Auditor

Recomputes an account's balance from scratch and compares it with the
cached value:

    expected = opening_balance
             + sum(signed amounts of the owner's linked transactions)
             + sum(transfer contributions)

Read-only. A mismatch is reported and audited, never repaired here.
"""

from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from money_manager.audit import AuditLogger
from money_manager.ledger.engine import as_uuid
from money_manager.ledger.errors import EntityNotFoundError, ForbiddenError
from money_manager.models.ledger import Account, BalanceReport
from money_manager.services.storage import LedgerStorageInterface


class BalanceAuditor:
    """Checks cached balances against the ledger records."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def reconcile(self, user_id: str, account_id: Union[UUID, str]) -> BalanceReport:
        """
        Build a balance report for one of the user's accounts.

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
        return await self._report(account)

    async def reconcile_all(self, user_id: str) -> list[BalanceReport]:
        """Balance reports for every account the user owns."""
        accounts = await self._storage.list_accounts(user_id)
        return [await self._report(account) for account in accounts]

    async def _report(self, account: Account) -> BalanceReport:
        transactions = [
            t for t in await self._storage.list_transactions_for_account(account.id)
            if t.user_id == account.user_id
        ]
        transfers = await self._storage.list_transfers_for_account(account.id)

        expected = account.opening_balance
        expected += sum((t.signed_amount() for t in transactions), Decimal("0"))
        expected += sum((t.contribution_to(account.id) for t in transfers), Decimal("0"))

        report = BalanceReport(
            account_id=account.id,
            opening_balance=account.opening_balance,
            expected_balance=expected,
            actual_balance=account.balance,
            transaction_count=len(transactions),
            transfer_count=len(transfers),
        )

        if not report.is_consistent and self._audit_logger:
            await self._audit_logger.log_drift_detected(
                user_id=account.user_id,
                account_id=account.id,
                expected=report.expected_balance,
                actual=report.actual_balance,
            )

        return report
