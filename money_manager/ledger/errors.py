"""
Ledger Errors

Every failure the ledger reports to its caller is one of these.
All of them are raised before any write, so a caller that catches
one knows nothing was persisted.

Each error carries a stable `error_code` the HTTP layer can map
to a status code without parsing messages.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID


class LedgerError(Exception):
    """Base exception for ledger rule violations."""

    error_code = "ledger_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidAmountError(LedgerError):
    """Amount is missing, non-numeric, or not positive."""

    error_code = "invalid_amount"


class InvalidPayloadError(LedgerError):
    """A non-amount field failed validation."""

    error_code = "invalid_payload"


class EntityNotFoundError(LedgerError):
    """Referenced account, transaction or transfer doesn't exist."""

    error_code = "not_found"

    def __init__(self, entity_type: str, entity_id: Optional[UUID] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} not found")


class ForbiddenError(LedgerError):
    """Entity exists but belongs to another user."""

    error_code = "forbidden"

    def __init__(self, entity_type: str, entity_id: Optional[UUID] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__("Not authorized")


class SameAccountError(LedgerError):
    """Transfer source and destination are the same account."""

    error_code = "same_account"

    def __init__(self, account_id: UUID):
        self.account_id = account_id
        super().__init__("Cannot transfer to the same account")


class InsufficientFundsError(LedgerError):
    """Transfer amount exceeds the source account's balance."""

    error_code = "insufficient_funds"

    def __init__(self, account_id: UUID, balance: Decimal, requested: Decimal):
        self.account_id = account_id
        self.balance = balance
        self.requested = requested
        super().__init__("Insufficient balance in source account")


class EditWindowExpiredError(LedgerError):
    """Update attempted after the edit window closed."""

    error_code = "edit_window_expired"

    def __init__(self, transaction_id: UUID, created_at: datetime, window_hours: int):
        self.transaction_id = transaction_id
        self.created_at = created_at
        self.window_hours = window_hours
        super().__init__(
            f"Transaction can only be edited within {window_hours} hours of creation"
        )
