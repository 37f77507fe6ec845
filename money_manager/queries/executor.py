"""
Transaction Query Executor

DESIGN DECISION: Reads are separate from writes.
Nothing here can change a balance; it only answers "which
transactions does this user have" from stored data.

Every query is scoped to the calling user. A user can never see
another user's transactions, even by guessing an ID.
"""

from datetime import datetime
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import ValidationError

from money_manager.ledger.engine import as_uuid, payload_error
from money_manager.ledger.errors import (
    EntityNotFoundError,
    ForbiddenError,
    InvalidPayloadError,
)
from money_manager.models.ledger import Transaction, TransactionFilter
from money_manager.services.storage import TransactionStorageInterface


class TransactionQueryExecutor:
    """
    Executes transaction lookups against storage.

    GUARANTEES:
    - Only returns the caller's own records
    - Results are sorted by date, newest first
    - Empty list (never an error) when nothing matches
    """

    def __init__(self, storage: TransactionStorageInterface):
        self._storage = storage

    async def get_transaction(
        self,
        user_id: str,
        transaction_id: Union[UUID, str],
    ) -> Transaction:
        """
        Raises:
            EntityNotFoundError: Transaction doesn't exist
            ForbiddenError: Transaction belongs to another user
        """
        transaction_id = as_uuid(transaction_id, "transaction_id")
        transaction = await self._storage.get_transaction(transaction_id)
        if transaction is None:
            raise EntityNotFoundError("transaction", transaction_id)
        if transaction.user_id != user_id:
            raise ForbiddenError("transaction", transaction_id)
        return transaction

    async def list_transactions(
        self,
        user_id: str,
        filters: Optional[Union[TransactionFilter, dict[str, Any]]] = None,
    ) -> list[Transaction]:
        """
        List transactions matching the filters.

        Filters may be a TransactionFilter or the raw query dict,
        e.g. {"type": "expense", "categories": ["Food & Dining"]}.
        """
        if isinstance(filters, dict):
            try:
                filters = TransactionFilter.model_validate(filters)
            except ValidationError as e:
                raise payload_error(e)
        return await self._storage.list_transactions(user_id, filters)

    async def list_transactions_in_range(
        self,
        user_id: str,
        start_date: Optional[datetime],
        end_date: Optional[datetime],
    ) -> list[Transaction]:
        """
        Transactions dated within an inclusive range.

        Raises:
            InvalidPayloadError: Either bound is missing, or start is after end
        """
        if start_date is None or end_date is None:
            raise InvalidPayloadError("Please provide startDate and endDate")
        try:
            filters = TransactionFilter(start_date=start_date, end_date=end_date)
        except ValidationError as e:
            raise payload_error(e)
        if filters.start_date > filters.end_date:
            raise InvalidPayloadError("startDate must not be after endDate")
        return await self._storage.list_transactions_in_range(
            user_id, filters.start_date, filters.end_date
        )
