"""
Audit Models for Money Manager

Every balance-affecting action in the system is logged for audit purposes.
This provides:
1. Complete traceability of every balance change
2. Debugging information when a balance drifts
3. Ability to reconstruct how an account reached its balance

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from money_manager.models.ledger import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger mutation has its own event type.
    """
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    EDIT_REJECTED = "edit_rejected"

    # Balances
    BALANCE_ADJUSTED = "balance_adjusted"
    BALANCE_ADJUSTMENT_SKIPPED = "balance_adjustment_skipped"

    # Transfers
    TRANSFER_RECORDED = "transfer_recorded"
    TRANSFER_REJECTED = "transfer_rejected"

    # Reconciliation
    DRIFT_DETECTED = "drift_detected"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who did it
    user_id: Optional[str] = Field(
        default=None,
        description="User on whose behalf the action ran"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction', 'transfer')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a transaction and its balance change)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_code,
         error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_recorded(event_type, user_id, txn_id, ...)
        event = AuditEventBuilder.balance_adjusted(user_id, account_id, delta, balance, correlation_id)
    """

    @staticmethod
    def account_created(
        user_id: str,
        account_id: UUID,
        name: str,
        opening_balance: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            description=f"Account created: {name}",
            details={
                "name": name,
                "opening_balance": str(opening_balance),
            },
        )

    @staticmethod
    def account_updated(
        user_id: str,
        account_id: UUID,
        changed_fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_UPDATED,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            description=f"Account updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def account_deleted(
        user_id: str,
        account_id: UUID,
        balance: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            description="Account deleted; linked transactions keep a dangling reference",
            details={"final_balance": str(balance)},
        )

    @staticmethod
    def transaction_recorded(
        event_type: AuditEventType,
        user_id: str,
        transaction_id: UUID,
        transaction_type: str,
        amount: Decimal,
        account_id: Optional[UUID],
        correlation_id: UUID,
    ) -> AuditEvent:
        verb = event_type.value.rsplit("_", 1)[-1]
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction {verb}: {transaction_type} {amount}",
            details={
                "type": transaction_type,
                "amount": str(amount),
                "account_id": str(account_id) if account_id else None,
            },
        )

    @staticmethod
    def edit_rejected(
        user_id: str,
        transaction_id: UUID,
        created_at: datetime,
        window_hours: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EDIT_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Edit rejected: older than {window_hours} hours",
            details={"created_at": created_at.isoformat()},
            error_code="edit_window_expired",
        )

    @staticmethod
    def balance_adjusted(
        user_id: str,
        account_id: UUID,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_ADJUSTED,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance adjusted by {delta}",
            details={
                "delta": str(delta),
                "new_balance": str(new_balance),
            },
        )

    @staticmethod
    def balance_adjustment_skipped(
        user_id: str,
        account_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_ADJUSTMENT_SKIPPED,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance step skipped: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def transfer_recorded(
        user_id: str,
        transfer_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_RECORDED,
            user_id=user_id,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=correlation_id,
            description=f"Transfer of {amount} recorded",
            details={
                "from_account_id": str(from_account_id),
                "to_account_id": str(to_account_id),
                "amount": str(amount),
            },
        )

    @staticmethod
    def transfer_rejected(
        user_id: str,
        from_account_id: Optional[UUID],
        to_account_id: Optional[UUID],
        error_code: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="transfer",
            description=f"Transfer rejected: {error_code}",
            details={
                "from_account_id": str(from_account_id) if from_account_id else None,
                "to_account_id": str(to_account_id) if to_account_id else None,
            },
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def drift_detected(
        user_id: str,
        account_id: UUID,
        expected: Decimal,
        actual: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRIFT_DETECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            description=f"Balance drift of {actual - expected}",
            details={
                "expected_balance": str(expected),
                "actual_balance": str(actual),
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
