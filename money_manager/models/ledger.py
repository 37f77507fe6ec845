"""
Core Ledger Models for Money Manager

These models define the strict schemas for accounts and the ledger
records that move their balances. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Money is always Decimal. Floats never touch a balance.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so every comparison is tz-aware."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Kinds of account a user can hold."""
    CASH = "cash"
    BANK = "bank"
    CREDIT_CARD = "credit_card"


class TransactionType(str, Enum):
    """
    Direction of a transaction.

    INCOME adds to the linked account, EXPENSE subtracts from it.
    """
    INCOME = "income"
    EXPENSE = "expense"


class Division(str, Enum):
    """Tag separating work money from household money."""
    OFFICE = "office"
    PERSONAL = "personal"


# =============================================================================
# ACCOUNT
# =============================================================================

class Account(BaseModel):
    """
    A place money lives: a wallet, a bank account, a credit card.

    CRITICAL: `balance` is a cached value. Only the reconciliation
    engine changes it after creation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the account"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    type: AccountType
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Current balance (may be negative for credit cards)"
    )
    opening_balance: Decimal = Field(
        default=Decimal("0"),
        description="Balance supplied when the account was created"
    )
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)

    @model_validator(mode='before')
    @classmethod
    def default_opening_balance(cls, data):
        """A new account opens at whatever balance it was created with."""
        if isinstance(data, dict) and "opening_balance" not in data and "balance" in data:
            data = {**data, "opening_balance": data["balance"]}
        return data


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A single income or expense entry.

    The account link is a weak reference: the account may be deleted
    later, leaving the transaction in place for reporting.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    user_id: str = Field(..., min_length=1)
    type: TransactionType
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Always positive; direction comes from `type`"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    division: Division
    description: str = Field(default="", max_length=500)
    date: UtcDatetime = Field(
        default_factory=utc_now,
        description="When the money moved (user supplied, used for reporting)"
    )
    account_id: Optional[UUID] = None
    created_at: UtcDatetime = Field(
        default_factory=utc_now,
        description="When the record was created (anchors the edit window)"
    )
    updated_at: UtcDatetime = Field(default_factory=utc_now)

    def signed_amount(self) -> Decimal:
        """Contribution this transaction makes to its linked account."""
        return signed_amount(self.type, self.amount)

    def is_editable(self, now: Optional[datetime] = None, window_hours: int = 12) -> bool:
        """Whether the edit window is still open at `now`."""
        now = now or utc_now()
        return now - self.created_at <= timedelta(hours=window_hours)


class TransactionChanges(BaseModel):
    """
    Fields a caller may change on an existing transaction.

    The account link is deliberately absent: moving a transaction
    to another account is done by deleting and re-creating it.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    division: Optional[Division] = None
    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[UtcDatetime] = None

    @property
    def affects_balance(self) -> bool:
        return self.type is not None or self.amount is not None


class TransactionFilter(BaseModel):
    """
    Filters for listing a user's transactions.

    Every bound is inclusive. Empty filters match everything.
    """

    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    categories: Optional[list[str]] = None
    divisions: Optional[list[Division]] = None
    type: Optional[TransactionType] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None

    @field_validator('type', mode='before')
    @classmethod
    def all_means_any(cls, v):
        """The frontend sends type=all for "no type filter"."""
        if v == "all":
            return None
        return v

    def matches(self, transaction: Transaction) -> bool:
        if self.start_date and transaction.date < self.start_date:
            return False
        if self.end_date and transaction.date > self.end_date:
            return False
        if self.categories and transaction.category not in self.categories:
            return False
        if self.divisions and transaction.division not in self.divisions:
            return False
        if self.type and transaction.type != self.type:
            return False
        if self.min_amount is not None and transaction.amount < self.min_amount:
            return False
        if self.max_amount is not None and transaction.amount > self.max_amount:
            return False
        return True


# =============================================================================
# TRANSFER
# =============================================================================

class Transfer(BaseModel):
    """
    Money moved between two of the same user's accounts.

    Transfers are immutable. A mistaken transfer is corrected with
    an opposite transfer, never edited or deleted.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    from_account_id: UUID
    to_account_id: UUID
    amount: Decimal = Field(..., gt=0)
    description: str = Field(default="", max_length=500)
    date: UtcDatetime = Field(default_factory=utc_now)
    created_at: UtcDatetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_distinct_accounts(self) -> 'Transfer':
        if self.from_account_id == self.to_account_id:
            raise ValueError("Cannot transfer to the same account")
        return self

    def contribution_to(self, account_id: UUID) -> Decimal:
        """Signed effect of this transfer on one account's balance."""
        if account_id == self.from_account_id:
            return -self.amount
        if account_id == self.to_account_id:
            return self.amount
        return Decimal("0")


class TransferReceipt(BaseModel):
    """A committed transfer together with both accounts after the move."""

    transfer: Transfer
    source_account: Account
    destination_account: Account


# =============================================================================
# RECONCILIATION
# =============================================================================

class BalanceReport(BaseModel):
    """Result of recomputing an account's balance from its ledger."""

    account_id: UUID
    checked_at: UtcDatetime = Field(default_factory=utc_now)
    opening_balance: Decimal
    expected_balance: Decimal
    actual_balance: Decimal
    transaction_count: int = Field(ge=0)
    transfer_count: int = Field(ge=0)

    @property
    def drift(self) -> Decimal:
        """Positive when the cached balance is higher than the ledger says."""
        return self.actual_balance - self.expected_balance

    @property
    def is_consistent(self) -> bool:
        return self.drift == 0


def signed_amount(transaction_type: TransactionType, amount: Decimal) -> Decimal:
    """Income counts up, expense counts down."""
    if transaction_type == TransactionType.INCOME:
        return amount
    return -amount
