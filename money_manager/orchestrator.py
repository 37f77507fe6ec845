"""
Main Orchestrator for Money Manager

Wires storage, audit logging and the ledger services together.

DESIGN DECISION: The engine and the account service must share one
AccountLockRegistry and one storage backend, so they are only ever
built together here.
"""

from dataclasses import dataclass
from typing import Optional

from money_manager.audit import AuditLogger
from money_manager.config import get_settings
from money_manager.ledger import (
    AccountLockRegistry,
    BalanceAuditor,
    BalanceReconciliationEngine,
)
from money_manager.queries import TransactionQueryExecutor
from money_manager.services.accounts import AccountService
from money_manager.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)


@dataclass
class LedgerComponents:
    """Everything a caller needs to serve ledger requests."""

    storage: LedgerStorageInterface
    audit_storage: AuditStorageInterface
    audit_logger: AuditLogger
    engine: BalanceReconciliationEngine
    accounts: AccountService
    queries: TransactionQueryExecutor
    auditor: BalanceAuditor
    sheets_client: Optional[GoogleSheetsClient] = None


def create_ledger_components(
    storage_backend: Optional[str] = None,
    edit_window_hours: Optional[int] = None,
) -> LedgerComponents:
    """
    Factory function to create all ledger components.

    Args:
        storage_backend: "memory" or "google_sheets".
                        Defaults to LEDGER_STORAGE_BACKEND.
        edit_window_hours: Defaults to LEDGER_EDIT_WINDOW_HOURS.

    Raises:
        ValueError: Unknown storage backend
        pydantic.ValidationError: Google Sheets selected but not configured
    """
    ledger_settings = get_settings().ledger
    backend = storage_backend or ledger_settings.storage_backend
    if edit_window_hours is None:
        edit_window_hours = ledger_settings.edit_window_hours

    sheets_client = None
    if backend == "memory":
        storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()
    elif backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        storage = GoogleSheetsLedgerStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    audit_logger = AuditLogger(audit_storage)
    locks = AccountLockRegistry()

    return LedgerComponents(
        storage=storage,
        audit_storage=audit_storage,
        audit_logger=audit_logger,
        engine=BalanceReconciliationEngine(
            storage,
            audit_logger=audit_logger,
            locks=locks,
            edit_window_hours=edit_window_hours,
        ),
        accounts=AccountService(storage, audit_logger=audit_logger, locks=locks),
        queries=TransactionQueryExecutor(storage),
        auditor=BalanceAuditor(storage, audit_logger=audit_logger),
        sheets_client=sheets_client,
    )
