"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the persistent storage backend because:
1. Users can look at their own ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No multi-sheet transactions, so a transfer is written with ONE
  values.batchUpdate request covering the transfer row and both
  balance cells (the API applies a batch as a whole or not at all)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to a document database later without changing the balance rules.
"""

import asyncio
import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import gspread
import structlog
from gspread.utils import rowcol_to_a1
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from money_manager.config import get_settings
from money_manager.models.audit import AuditEvent, AuditEventType, AuditSeverity
from money_manager.models.ledger import (
    Account,
    AccountType,
    Division,
    Transaction,
    TransactionFilter,
    TransactionType,
    Transfer,
    utc_now,
)
from money_manager.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


ACCOUNT_COLUMNS = [
    "id",
    "user_id",
    "name",
    "type",
    "balance",
    "opening_balance",
    "created_at",
    "updated_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "type",
    "amount",
    "category",
    "division",
    "description",
    "date",
    "account_id",
    "created_at",
    "updated_at",
]

TRANSFER_COLUMNS = [
    "id",
    "user_id",
    "from_account_id",
    "to_account_id",
    "amount",
    "description",
    "date",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]


def _row_range(sheet: gspread.Worksheet, row_index: int, width: int) -> str:
    """A1 range covering one full row, qualified with the sheet title."""
    return f"'{sheet.title}'!A{row_index}:{rowcol_to_a1(row_index, width)}"


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the Accounts worksheet."""
        return self._get_or_create_sheet(
            self._settings.accounts_sheet_name, ACCOUNT_COLUMNS
        )

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )

    def get_transfers_sheet(self) -> gspread.Worksheet:
        """Get or create the Transfers worksheet."""
        return self._get_or_create_sheet(
            self._settings.transfers_sheet_name, TRANSFER_COLUMNS
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def _safe_getter(row: list):
    """Index into a sheet row, treating missing cells as empty."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Accounts, transactions and transfers each live in their own
    worksheet, one record per row, keyed by the ID in column A.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    def _account_to_row(self, account: Account) -> list:
        return [
            str(account.id),
            account.user_id,
            account.name,
            account.type.value,
            str(account.balance),
            str(account.opening_balance),
            account.created_at.isoformat(),
            account.updated_at.isoformat(),
        ]

    def _row_to_account(self, row: list) -> Account:
        safe_get = _safe_getter(row)
        return Account(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            name=safe_get(2),
            type=AccountType(safe_get(3)),
            balance=Decimal(safe_get(4, "0")),
            opening_balance=Decimal(safe_get(5, "0")),
            created_at=datetime.fromisoformat(safe_get(6)),
            updated_at=datetime.fromisoformat(safe_get(7)),
        )

    def _transaction_to_row(self, transaction: Transaction) -> list:
        return [
            str(transaction.id),
            transaction.user_id,
            transaction.type.value,
            str(transaction.amount),
            transaction.category,
            transaction.division.value,
            transaction.description,
            transaction.date.isoformat(),
            str(transaction.account_id) if transaction.account_id else "",
            transaction.created_at.isoformat(),
            transaction.updated_at.isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        safe_get = _safe_getter(row)
        return Transaction(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            type=TransactionType(safe_get(2)),
            amount=Decimal(safe_get(3)),
            category=safe_get(4),
            division=Division(safe_get(5)),
            description=safe_get(6),
            date=datetime.fromisoformat(safe_get(7)),
            account_id=UUID(safe_get(8)) if safe_get(8) else None,
            created_at=datetime.fromisoformat(safe_get(9)),
            updated_at=datetime.fromisoformat(safe_get(10)),
        )

    def _transfer_to_row(self, transfer: Transfer) -> list:
        return [
            str(transfer.id),
            transfer.user_id,
            str(transfer.from_account_id),
            str(transfer.to_account_id),
            str(transfer.amount),
            transfer.description,
            transfer.date.isoformat(),
            transfer.created_at.isoformat(),
        ]

    def _row_to_transfer(self, row: list) -> Transfer:
        safe_get = _safe_getter(row)
        return Transfer(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            from_account_id=UUID(safe_get(2)),
            to_account_id=UUID(safe_get(3)),
            amount=Decimal(safe_get(4)),
            description=safe_get(5),
            date=datetime.fromisoformat(safe_get(6)),
            created_at=datetime.fromisoformat(safe_get(7)),
        )

    # -------------------------------------------------------------------------
    # Sheet helpers
    # -------------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        """All data rows (header excluded)."""
        return sheet.get_all_values()[1:]

    def _find_row(self, sheet: gspread.Worksheet, record_id: UUID) -> tuple[Optional[int], Optional[list]]:
        """
        Locate a record by ID.

        Returns:
            (1-based sheet row index, row values), or (None, None)
        """
        for idx, row in enumerate(self._read_rows(sheet), start=2):  # Row 1 is header
            if row and row[0] == str(record_id):
                return idx, row
        return None, None

    def _write_row(self, sheet: gspread.Worksheet, row_index: int, values: list) -> None:
        sheet.update(
            range_name=_row_range(sheet, row_index, len(values)),
            values=[values],
            value_input_option="RAW",
        )

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def get_account(self, account_id: UUID) -> Optional[Account]:
        try:
            sheet = self._client.get_accounts_sheet()
            _, row = self._find_row(sheet, account_id)
            return self._row_to_account(row) if row else None
        except Exception as e:
            raise StorageError(f"Failed to get account: {e}") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_account(self, account: Account) -> Account:
        async with self._lock:
            try:
                sheet = self._client.get_accounts_sheet()
                idx, _ = self._find_row(sheet, account.id)
                account = account.model_copy(update={"updated_at": utc_now()})
                row = self._account_to_row(account)
                if idx is None:
                    sheet.append_row(row, value_input_option="RAW")
                else:
                    self._write_row(sheet, idx, row)
                return account
            except Exception as e:
                raise StorageError(f"Failed to save account: {e}") from e

    async def list_accounts(self, user_id: str) -> list[Account]:
        try:
            sheet = self._client.get_accounts_sheet()
            accounts = []
            for row in self._read_rows(sheet):
                if len(row) < 2 or not row[0] or row[1] != user_id:
                    continue
                try:
                    accounts.append(self._row_to_account(row))
                except (ValueError, InvalidOperation):
                    logger.warning("malformed_account_row", row_id=row[0])
            accounts.sort(key=lambda a: a.created_at, reverse=True)
            return accounts
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}") from e

    async def delete_account(self, account_id: UUID) -> bool:
        async with self._lock:
            try:
                sheet = self._client.get_accounts_sheet()
                idx, _ = self._find_row(sheet, account_id)
                if idx is None:
                    return False
                sheet.delete_rows(idx)
                return True
            except Exception as e:
                raise StorageError(f"Failed to delete account: {e}") from e

    async def apply_balance_delta(
        self,
        account_id: UUID,
        delta: Decimal,
    ) -> Optional[Account]:
        async with self._lock:
            try:
                sheet = self._client.get_accounts_sheet()
                idx, row = self._find_row(sheet, account_id)
                if idx is None:
                    return None
                account = self._row_to_account(row)
                updated = account.model_copy(
                    update={"balance": account.balance + delta, "updated_at": utc_now()}
                )
                self._write_row(sheet, idx, self._account_to_row(updated))
                return updated
            except Exception as e:
                raise StorageError(f"Failed to adjust balance: {e}") from e

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            _, row = self._find_row(sheet, transaction_id)
            return self._row_to_transaction(row) if row else None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}") from e

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            try:
                sheet = self._client.get_transactions_sheet()
                idx, _ = self._find_row(sheet, transaction.id)
                if idx is not None:
                    raise DuplicateError(f"Transaction already exists: {transaction.id}")
                sheet.append_row(self._transaction_to_row(transaction), value_input_option="RAW")
                return transaction
            except DuplicateError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to save transaction: {e}") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(NotFoundError),
        reraise=True,
    )
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            try:
                sheet = self._client.get_transactions_sheet()
                idx, _ = self._find_row(sheet, transaction.id)
                if idx is None:
                    raise NotFoundError(f"Transaction not found: {transaction.id}")
                self._write_row(sheet, idx, self._transaction_to_row(transaction))
                return transaction
            except NotFoundError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to update transaction: {e}") from e

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        async with self._lock:
            try:
                sheet = self._client.get_transactions_sheet()
                idx, _ = self._find_row(sheet, transaction_id)
                if idx is None:
                    return False
                sheet.delete_rows(idx)
                return True
            except Exception as e:
                raise StorageError(f"Failed to delete transaction: {e}") from e

    def _all_transactions(self) -> list[Transaction]:
        sheet = self._client.get_transactions_sheet()
        transactions = []
        for row in self._read_rows(sheet):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except (ValueError, InvalidOperation):
                logger.warning("malformed_transaction_row", row_id=row[0])
        return transactions

    async def list_transactions(
        self,
        user_id: str,
        filters: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        filters = filters or TransactionFilter()
        try:
            transactions = [
                t for t in self._all_transactions()
                if t.user_id == user_id and filters.matches(t)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}") from e
        # Sort by date descending (newest first)
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def list_transactions_for_account(self, account_id: UUID) -> list[Transaction]:
        try:
            return [t for t in self._all_transactions() if t.account_id == account_id]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}") from e

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    async def get_transfer(self, transfer_id: UUID) -> Optional[Transfer]:
        try:
            sheet = self._client.get_transfers_sheet()
            _, row = self._find_row(sheet, transfer_id)
            return self._row_to_transfer(row) if row else None
        except Exception as e:
            raise StorageError(f"Failed to get transfer: {e}") from e

    async def create_transfer(self, transfer: Transfer) -> Transfer:
        async with self._lock:
            try:
                sheet = self._client.get_transfers_sheet()
                idx, _ = self._find_row(sheet, transfer.id)
                if idx is not None:
                    raise DuplicateError(f"Transfer already exists: {transfer.id}")
                sheet.append_row(self._transfer_to_row(transfer), value_input_option="RAW")
                return transfer
            except DuplicateError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to save transfer: {e}") from e

    def _all_transfers(self) -> list[Transfer]:
        sheet = self._client.get_transfers_sheet()
        transfers = []
        for row in self._read_rows(sheet):
            if not row or not row[0]:
                continue
            try:
                transfers.append(self._row_to_transfer(row))
            except (ValueError, InvalidOperation):
                logger.warning("malformed_transfer_row", row_id=row[0])
        return transfers

    async def list_transfers(self, user_id: str) -> list[Transfer]:
        try:
            transfers = [t for t in self._all_transfers() if t.user_id == user_id]
        except Exception as e:
            raise StorageError(f"Failed to list transfers: {e}") from e
        transfers.sort(key=lambda t: t.date, reverse=True)
        return transfers

    async def list_transfers_for_account(self, account_id: UUID) -> list[Transfer]:
        try:
            return [
                t for t in self._all_transfers()
                if account_id in (t.from_account_id, t.to_account_id)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list transfers: {e}") from e

    async def commit_transfer(self, transfer: Transfer) -> tuple[Account, Account]:
        async with self._lock:
            try:
                accounts_sheet = self._client.get_accounts_sheet()
                transfers_sheet = self._client.get_transfers_sheet()

                source_idx, source_row = self._find_row(accounts_sheet, transfer.from_account_id)
                dest_idx, dest_row = self._find_row(accounts_sheet, transfer.to_account_id)
                if source_idx is None or dest_idx is None:
                    raise NotFoundError("One or both transfer accounts not found")

                now = utc_now()
                source = self._row_to_account(source_row)
                source = source.model_copy(
                    update={"balance": source.balance - transfer.amount, "updated_at": now}
                )
                destination = self._row_to_account(dest_row)
                destination = destination.model_copy(
                    update={"balance": destination.balance + transfer.amount, "updated_at": now}
                )

                # The transfer row goes to an explicit index so it can ride
                # in the same batch as the two balance rows
                transfer_idx = len(transfers_sheet.get_all_values()) + 1
                if transfer_idx > transfers_sheet.row_count:
                    transfers_sheet.add_rows(100)

                body = {
                    "valueInputOption": "RAW",
                    "data": [
                        {
                            "range": _row_range(transfers_sheet, transfer_idx, len(TRANSFER_COLUMNS)),
                            "values": [self._transfer_to_row(transfer)],
                        },
                        {
                            "range": _row_range(accounts_sheet, source_idx, len(ACCOUNT_COLUMNS)),
                            "values": [self._account_to_row(source)],
                        },
                        {
                            "range": _row_range(accounts_sheet, dest_idx, len(ACCOUNT_COLUMNS)),
                            "values": [self._account_to_row(destination)],
                        },
                    ],
                }
                self._client.get_spreadsheet().values_batch_update(body)
                return source, destination
            except NotFoundError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to commit transfer: {e}") from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_code=safe_get(10) or None,
            error_message=safe_get(11) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}") from e

    def _load_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, InvalidOperation):
                logger.warning("malformed_audit_row", row_id=row[0])
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._load_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = [
                e for e in self._load_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._load_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
