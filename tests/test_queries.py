"""
Tests for the Transaction Query Executor
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from money_manager.ledger import EntityNotFoundError, ForbiddenError, InvalidPayloadError
from money_manager.models.ledger import Transaction, TransactionFilter
from money_manager.queries import TransactionQueryExecutor


USER = "user-1"
OTHER_USER = "user-2"


def day(n: int) -> datetime:
    return datetime(2024, 3, n, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def executor(storage):
    return TransactionQueryExecutor(storage)


@pytest.fixture
def seeded(storage):
    """A small ledger spread over early March 2024."""

    async def _seed():
        rows = [
            (USER, "expense", "120", "Groceries", "personal", day(1)),
            (USER, "income", "5000", "Salary", "office", day(2)),
            (USER, "expense", "45.50", "Food & Dining", "office", day(3)),
            (USER, "expense", "800", "Rent", "personal", day(5)),
            (OTHER_USER, "expense", "10", "Groceries", "personal", day(3)),
        ]
        created = []
        for user_id, kind, amount, category, division, date in rows:
            created.append(await storage.create_transaction(Transaction(
                user_id=user_id,
                type=kind,
                amount=Decimal(amount),
                category=category,
                division=division,
                date=date,
            )))
        return created

    return _seed


class TestGetTransaction:

    @pytest.mark.asyncio
    async def test_get_own(self, executor, seeded):
        created = await seeded()

        fetched = await executor.get_transaction(USER, created[0].id)

        assert fetched.category == "Groceries"

    @pytest.mark.asyncio
    async def test_get_missing(self, executor):
        with pytest.raises(EntityNotFoundError):
            await executor.get_transaction(USER, uuid4())

    @pytest.mark.asyncio
    async def test_get_foreign(self, executor, seeded):
        created = await seeded()

        with pytest.raises(ForbiddenError):
            await executor.get_transaction(USER, created[-1].id)


class TestListTransactions:
    """Tests for filtered listings."""

    @pytest.mark.asyncio
    async def test_unfiltered_is_scoped_and_newest_first(self, executor, seeded):
        await seeded()

        results = await executor.list_transactions(USER)

        assert [t.date for t in results] == [day(5), day(3), day(2), day(1)]

    @pytest.mark.asyncio
    async def test_type_all_means_no_filter(self, executor, seeded):
        await seeded()

        results = await executor.list_transactions(USER, {"type": "all"})

        assert len(results) == 4

    @pytest.mark.asyncio
    async def test_filter_by_type_and_division(self, executor, seeded):
        await seeded()

        results = await executor.list_transactions(
            USER, {"type": "expense", "divisions": ["personal"]}
        )

        assert [t.category for t in results] == ["Rent", "Groceries"]

    @pytest.mark.asyncio
    async def test_amount_bounds_are_inclusive(self, executor, seeded):
        await seeded()

        results = await executor.list_transactions(
            USER, TransactionFilter(min_amount=Decimal("45.50"), max_amount=Decimal("800"))
        )

        assert sorted(t.amount for t in results) == [Decimal("45.50"), Decimal("120"), Decimal("800")]

    @pytest.mark.asyncio
    async def test_filter_by_category(self, executor, seeded):
        await seeded()

        results = await executor.list_transactions(USER, {"categories": ["Salary", "Rent"]})

        assert {t.category for t in results} == {"Salary", "Rent"}

    @pytest.mark.asyncio
    async def test_invalid_filter(self, executor):
        with pytest.raises(InvalidPayloadError):
            await executor.list_transactions(USER, {"divisions": ["garage"]})

    @pytest.mark.asyncio
    async def test_no_matches_is_empty(self, executor, seeded):
        await seeded()

        assert await executor.list_transactions(USER, {"categories": ["Travel"]}) == []


class TestDateRange:
    """Tests for the by-date-range listing."""

    @pytest.mark.asyncio
    async def test_bounds_are_inclusive(self, executor, seeded):
        await seeded()

        results = await executor.list_transactions_in_range(USER, day(2), day(3))

        assert [t.date for t in results] == [day(3), day(2)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start,end", [(None, day(3)), (day(1), None)])
    async def test_both_bounds_required(self, executor, start, end):
        with pytest.raises(InvalidPayloadError):
            await executor.list_transactions_in_range(USER, start, end)

    @pytest.mark.asyncio
    async def test_reversed_range_rejected(self, executor):
        with pytest.raises(InvalidPayloadError):
            await executor.list_transactions_in_range(USER, day(5), day(1))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
