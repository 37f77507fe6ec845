"""
Audit Logger

DESIGN DECISION: Every balance-affecting action in the system is logged.
This provides:
1. Complete traceability of how a balance was reached
2. Debugging capability when drift is detected
3. User can see history of their account changes

The audit logger:
- Gracefully handles storage failures (an audit write never undoes a ledger write)
- Supports correlation IDs to tie a record to the balance change it caused
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from money_manager.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from money_manager.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("money_manager.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_account_created(
        self,
        user_id: str,
        account_id: UUID,
        name: str,
        opening_balance: Decimal,
    ) -> None:
        """Log account creation."""
        await self.log(AuditEventBuilder.account_created(
            user_id=user_id,
            account_id=account_id,
            name=name,
            opening_balance=opening_balance,
        ))

    async def log_account_updated(
        self,
        user_id: str,
        account_id: UUID,
        changed_fields: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.account_updated(
            user_id=user_id,
            account_id=account_id,
            changed_fields=changed_fields,
        ))

    async def log_account_deleted(
        self,
        user_id: str,
        account_id: UUID,
        balance: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.account_deleted(
            user_id=user_id,
            account_id=account_id,
            balance=balance,
        ))

    async def log_transaction(
        self,
        event_type: AuditEventType,
        user_id: str,
        transaction_id: UUID,
        transaction_type: str,
        amount: Decimal,
        account_id: Optional[UUID],
        correlation_id: UUID,
    ) -> None:
        """Log a transaction create, update or delete."""
        await self.log(AuditEventBuilder.transaction_recorded(
            event_type=event_type,
            user_id=user_id,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            account_id=account_id,
            correlation_id=correlation_id,
        ))

    async def log_edit_rejected(
        self,
        user_id: str,
        transaction_id: UUID,
        created_at: datetime,
        window_hours: int,
    ) -> None:
        await self.log(AuditEventBuilder.edit_rejected(
            user_id=user_id,
            transaction_id=transaction_id,
            created_at=created_at,
            window_hours=window_hours,
        ))

    async def log_balance_adjusted(
        self,
        user_id: str,
        account_id: UUID,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Log a balance change."""
        await self.log(AuditEventBuilder.balance_adjusted(
            user_id=user_id,
            account_id=account_id,
            delta=delta,
            new_balance=new_balance,
            correlation_id=correlation_id,
        ))

    async def log_balance_skipped(
        self,
        user_id: str,
        account_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a tolerated dangling or foreign account reference."""
        await self.log(AuditEventBuilder.balance_adjustment_skipped(
            user_id=user_id,
            account_id=account_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_transfer_recorded(
        self,
        user_id: str,
        transfer_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transfer_recorded(
            user_id=user_id,
            transfer_id=transfer_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_transfer_rejected(
        self,
        user_id: str,
        from_account_id: Optional[UUID],
        to_account_id: Optional[UUID],
        error_code: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.transfer_rejected(
            user_id=user_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            error_code=error_code,
            error_message=error_message,
        ))

    async def log_drift_detected(
        self,
        user_id: str,
        account_id: UUID,
        expected: Decimal,
        actual: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.drift_detected(
            user_id=user_id,
            account_id=account_id,
            expected=expected,
            actual=actual,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a ledger operation and pass it to
    every event the operation produces.
    """
    return uuid4()
