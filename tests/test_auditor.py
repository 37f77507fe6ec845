"""
Tests for the Balance Auditor

The auditor recomputes each balance from the ledger. After any legal
sequence of operations it must find nothing; after a balance is
tampered with it must report exactly how far off it is.
"""

import random
from decimal import Decimal
from uuid import uuid4

import pytest

from money_manager.ledger import EntityNotFoundError, ForbiddenError, LedgerError
from money_manager.models.audit import AuditEventType


USER = "user-1"
OTHER_USER = "user-2"


class TestReconcile:
    """Tests for single-account reconciliation."""

    @pytest.mark.asyncio
    async def test_fresh_account_is_consistent(self, auditor, make_account):
        account = await make_account("250")

        report = await auditor.reconcile(USER, account.id)

        assert report.is_consistent
        assert report.expected_balance == Decimal("250")
        assert report.transaction_count == 0
        assert report.transfer_count == 0

    @pytest.mark.asyncio
    async def test_counts_transactions_and_transfers(self, auditor, engine, make_account):
        """Test both kinds of ledger record feed the expected balance."""
        a = await make_account("1000")
        b = await make_account("500")
        await engine.create_transaction(USER, "expense", "200", "Rent", "personal", account_id=a.id)
        await engine.create_transaction(USER, "income", "50", "Gift", "personal", account_id=a.id)
        await engine.transfer(USER, a.id, b.id, "300")

        report = await auditor.reconcile(USER, a.id)

        assert report.expected_balance == Decimal("550")
        assert report.actual_balance == Decimal("550")
        assert report.transaction_count == 2
        assert report.transfer_count == 1

    @pytest.mark.asyncio
    async def test_reports_exact_drift(self, auditor, engine, storage, make_account, audit_storage):
        """Test a balance changed behind the engine's back is caught."""
        account = await make_account("1000")
        await engine.create_transaction(
            USER, "expense", "200", "Rent", "personal", account_id=account.id
        )
        await storage.apply_balance_delta(account.id, Decimal("75.25"))

        report = await auditor.reconcile(USER, account.id)

        assert not report.is_consistent
        assert report.drift == Decimal("75.25")
        events = await audit_storage.get_events_by_entity("account", account.id)
        assert events[-1].event_type == AuditEventType.DRIFT_DETECTED

    @pytest.mark.asyncio
    async def test_foreign_transactions_on_account_are_ignored(self, auditor, engine, make_account):
        """Test another user's transaction linked to my account doesn't count."""
        account = await make_account("1000")
        await engine.create_transaction(
            OTHER_USER, "expense", "999", "Rent", "personal", account_id=account.id
        )

        report = await auditor.reconcile(USER, account.id)

        assert report.is_consistent
        assert report.transaction_count == 0

    @pytest.mark.asyncio
    async def test_missing_account(self, auditor):
        with pytest.raises(EntityNotFoundError):
            await auditor.reconcile(USER, uuid4())

    @pytest.mark.asyncio
    async def test_foreign_account(self, auditor, make_account):
        account = await make_account("0", user_id=OTHER_USER)

        with pytest.raises(ForbiddenError):
            await auditor.reconcile(USER, account.id)


class TestReconcileAll:
    """Tests for whole-user reconciliation."""

    @pytest.mark.asyncio
    async def test_one_report_per_owned_account(self, auditor, make_account):
        await make_account("1")
        await make_account("2")
        await make_account("3", user_id=OTHER_USER)

        reports = await auditor.reconcile_all(USER)

        assert len(reports) == 2
        assert all(r.is_consistent for r in reports)

    @pytest.mark.asyncio
    async def test_random_operation_sequence_stays_consistent(
        self, auditor, engine, make_account, clock
    ):
        """Test no drift after a long mix of creates, edits, deletes and transfers."""
        rng = random.Random(20240301)
        accounts = [await make_account(str(rng.randint(0, 2000))) for _ in range(3)]
        live = []

        for _ in range(200):
            action = rng.choice(["create", "create", "update", "delete", "transfer", "tick"])
            try:
                if action == "create":
                    account = rng.choice(accounts + [None])
                    transaction = await engine.create_transaction(
                        USER,
                        rng.choice(["income", "expense"]),
                        str(rng.randint(1, 500)),
                        "Other Expense",
                        "personal",
                        account_id=account.id if account else None,
                    )
                    live.append(transaction.id)
                elif action == "update" and live:
                    await engine.update_transaction(USER, rng.choice(live), {
                        "type": rng.choice(["income", "expense"]),
                        "amount": str(rng.randint(1, 500)),
                    })
                elif action == "delete" and live:
                    transaction_id = live.pop(rng.randrange(len(live)))
                    await engine.delete_transaction(USER, transaction_id)
                elif action == "transfer":
                    source, destination = rng.sample(accounts, 2)
                    await engine.transfer(
                        USER, source.id, destination.id, str(rng.randint(1, 800))
                    )
                elif action == "tick":
                    clock.advance(hours=rng.randint(1, 6))
            except LedgerError:
                # Late edits and overdrawn transfers are expected rejections
                pass

        reports = await auditor.reconcile_all(USER)

        assert len(reports) == 3
        assert all(r.is_consistent for r in reports), [r.drift for r in reports]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
