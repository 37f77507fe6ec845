"""
Storage Services Package

Provides abstract interfaces and concrete implementations for ledger storage.
Two backends ship: in-memory (tests, single process) and Google Sheets.
"""

from money_manager.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    TransferStorageInterface,
)
from money_manager.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from money_manager.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AccountStorageInterface",
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "TransactionStorageInterface",
    "TransferStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
