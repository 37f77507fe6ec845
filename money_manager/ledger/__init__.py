"""
Ledger Module

Balance rules for accounts, transactions and transfers.
"""

from money_manager.ledger.auditor import BalanceAuditor
from money_manager.ledger.engine import BalanceReconciliationEngine
from money_manager.ledger.errors import (
    EditWindowExpiredError,
    EntityNotFoundError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidPayloadError,
    LedgerError,
    SameAccountError,
)
from money_manager.ledger.locks import AccountLockRegistry

__all__ = [
    "AccountLockRegistry",
    "BalanceAuditor",
    "BalanceReconciliationEngine",
    "EditWindowExpiredError",
    "EntityNotFoundError",
    "ForbiddenError",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidPayloadError",
    "LedgerError",
    "SameAccountError",
]
