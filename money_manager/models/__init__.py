"""
Data Models Package

This package contains all Pydantic models used in the Money Manager ledger.
All data flowing through the system must conform to these schemas.
"""

from money_manager.models.ledger import (
    Account,
    AccountType,
    BalanceReport,
    Division,
    Transaction,
    TransactionChanges,
    TransactionFilter,
    TransactionType,
    Transfer,
    TransferReceipt,
    signed_amount,
    utc_now,
)
from money_manager.models.category import (
    DEFAULT_CATEGORIES,
    Category,
    CategoryType,
    list_categories,
)
from money_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountType",
    "BalanceReport",
    "Division",
    "Transaction",
    "TransactionChanges",
    "TransactionFilter",
    "TransactionType",
    "Transfer",
    "TransferReceipt",
    "signed_amount",
    "utc_now",
    # Category models
    "DEFAULT_CATEGORIES",
    "Category",
    "CategoryType",
    "list_categories",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
