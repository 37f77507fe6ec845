"""
Tests for the Account Service
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from money_manager.ledger import (
    EntityNotFoundError,
    ForbiddenError,
    InvalidAmountError,
    InvalidPayloadError,
)
from money_manager.models.audit import AuditEventType
from money_manager.models.ledger import Account, AccountType


USER = "user-1"
OTHER_USER = "user-2"


class TestCreateAccount:
    """Tests for opening accounts."""

    @pytest.mark.asyncio
    async def test_create_account(self, account_service, storage):
        """Test the opening balance is recorded on both balance fields."""
        account = await account_service.create_account(USER, "  HDFC Savings  ", "bank", "1500.50")

        assert account.name == "HDFC Savings"
        assert account.type == AccountType.BANK
        assert account.balance == Decimal("1500.50")
        assert account.opening_balance == Decimal("1500.50")
        assert await storage.get_account(account.id) == account

    @pytest.mark.asyncio
    async def test_default_balance_is_zero(self, account_service):
        account = await account_service.create_account(USER, "Wallet", AccountType.CASH)

        assert account.balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_credit_card_may_open_negative(self, account_service):
        """Test a negative opening balance is accepted."""
        account = await account_service.create_account(USER, "Visa", "credit_card", -2500)

        assert account.balance == Decimal("-2500")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,account_type", [
        ("", "bank"),
        ("   ", "bank"),
        ("Locker", "gold"),
    ])
    async def test_invalid_fields_rejected(self, account_service, storage, name, account_type):
        with pytest.raises(InvalidPayloadError):
            await account_service.create_account(USER, name, account_type)

        assert await storage.list_accounts(USER) == []

    @pytest.mark.asyncio
    async def test_non_numeric_balance_rejected(self, account_service):
        with pytest.raises(InvalidAmountError):
            await account_service.create_account(USER, "Wallet", "cash", "a lot")

    @pytest.mark.asyncio
    async def test_creation_is_audited(self, account_service, audit_storage):
        account = await account_service.create_account(USER, "Wallet", "cash", "10")

        events = await audit_storage.get_events_by_entity("account", account.id)
        assert events[0].event_type == AuditEventType.ACCOUNT_CREATED
        assert events[0].details["opening_balance"] == "10"


class TestReadAccounts:
    """Tests for fetching and listing accounts."""

    @pytest.mark.asyncio
    async def test_get_own_account(self, account_service):
        created = await account_service.create_account(USER, "Wallet", "cash")

        fetched = await account_service.get_account(USER, str(created.id))

        assert fetched.id == created.id

    @pytest.mark.asyncio
    async def test_get_missing_account(self, account_service):
        with pytest.raises(EntityNotFoundError):
            await account_service.get_account(USER, uuid4())

    @pytest.mark.asyncio
    async def test_get_foreign_account(self, account_service):
        created = await account_service.create_account(OTHER_USER, "Wallet", "cash")

        with pytest.raises(ForbiddenError):
            await account_service.get_account(USER, created.id)

    @pytest.mark.asyncio
    async def test_malformed_id(self, account_service):
        with pytest.raises(InvalidPayloadError):
            await account_service.get_account(USER, "not-a-uuid")

    @pytest.mark.asyncio
    async def test_list_is_scoped_and_newest_first(self, account_service, storage):
        """Test each user only sees their own accounts, newest first."""
        first = await storage.save_account(Account(
            user_id=USER, name="First", type="cash",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        ))
        second = await storage.save_account(Account(
            user_id=USER, name="Second", type="bank",
            created_at=datetime(2024, 2, 1, tzinfo=timezone.utc),
        ))
        await account_service.create_account(OTHER_USER, "Theirs", "bank")

        accounts = await account_service.list_accounts(USER)

        assert [a.id for a in accounts] == [second.id, first.id]


class TestUpdateAccount:
    """Tests for renaming accounts."""

    @pytest.mark.asyncio
    async def test_rename_and_retype(self, account_service):
        account = await account_service.create_account(USER, "Card", "bank", "100")

        updated = await account_service.update_account(
            USER, account.id, {"name": "Amex", "type": "credit_card"}
        )

        assert updated.name == "Amex"
        assert updated.type == AccountType.CREDIT_CARD
        assert updated.balance == Decimal("100")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["balance", "opening_balance"])
    async def test_balance_cannot_be_set(self, account_service, field):
        """Test balances only move through transactions and transfers."""
        account = await account_service.create_account(USER, "Wallet", "cash", "100")

        with pytest.raises(InvalidPayloadError):
            await account_service.update_account(USER, account.id, {field: "1000000"})

        assert (await account_service.get_account(USER, account.id)).balance == Decimal("100")

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, account_service):
        account = await account_service.create_account(USER, "Wallet", "cash")

        with pytest.raises(InvalidPayloadError):
            await account_service.update_account(USER, account.id, {"user_id": OTHER_USER})

    @pytest.mark.asyncio
    async def test_rename_keeps_concurrent_balance_change(
        self, account_service, engine, balance_of
    ):
        """Test a rename after an expense doesn't restore the old balance."""
        account = await account_service.create_account(USER, "Wallet", "cash", "100")
        await engine.create_transaction(
            USER, "expense", "40", "Food & Dining", "personal", account_id=account.id
        )

        await account_service.update_account(USER, account.id, {"name": "Pocket"})

        assert await balance_of(account.id) == Decimal("60")

    @pytest.mark.asyncio
    async def test_update_foreign_account(self, account_service):
        account = await account_service.create_account(OTHER_USER, "Wallet", "cash")

        with pytest.raises(ForbiddenError):
            await account_service.update_account(USER, account.id, {"name": "Mine now"})


class TestDeleteAccount:
    """Tests for deleting accounts."""

    @pytest.mark.asyncio
    async def test_delete_leaves_transactions(self, account_service, engine, storage):
        """Test transactions keep their (now dangling) account reference."""
        account = await account_service.create_account(USER, "Wallet", "cash", "100")
        transaction = await engine.create_transaction(
            USER, "expense", "40", "Food & Dining", "personal", account_id=account.id
        )

        deleted = await account_service.delete_account(USER, account.id)

        assert deleted.balance == Decimal("60")
        assert await storage.get_account(account.id) is None
        remaining = await storage.get_transaction(transaction.id)
        assert remaining.account_id == account.id

    @pytest.mark.asyncio
    async def test_delete_foreign_account(self, account_service, storage):
        account = await account_service.create_account(OTHER_USER, "Wallet", "cash")

        with pytest.raises(ForbiddenError):
            await account_service.delete_account(USER, account.id)

        assert await storage.get_account(account.id) is not None

    @pytest.mark.asyncio
    async def test_delete_is_audited(self, account_service, audit_storage):
        account = await account_service.create_account(USER, "Wallet", "cash")

        await account_service.delete_account(USER, account.id)

        events = await audit_storage.get_events_by_entity("account", account.id)
        assert events[-1].event_type == AuditEventType.ACCOUNT_DELETED


class TestTransferHistory:
    """Tests for listing transfers."""

    @pytest.mark.asyncio
    async def test_list_transfers_newest_date_first(self, account_service, engine):
        a = await account_service.create_account(USER, "Bank", "bank", "1000")
        b = await account_service.create_account(USER, "Cash", "cash")
        older = await engine.transfer(
            USER, a.id, b.id, "10", date=datetime(2024, 1, 1, tzinfo=timezone.utc)
        )
        newer = await engine.transfer(
            USER, a.id, b.id, "20", date=datetime(2024, 2, 1, tzinfo=timezone.utc)
        )

        transfers = await account_service.list_transfers(USER)

        assert [t.id for t in transfers] == [newer.transfer.id, older.transfer.id]
        assert await account_service.list_transfers(OTHER_USER) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
