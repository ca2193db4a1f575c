"""
Tests for the read side: snapshot cache and dashboard queries.

Views must be recomputed after the store publishes a change and served
from the cache otherwise.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal

from cashflow.models.forecast import BudgetStatus
from cashflow.models.records import (
    BillingMonth,
    Category,
    RecordTable,
    Transaction,
    TransactionPatch,
    TransactionStatus,
    TransactionType,
)
from cashflow.queries import DashboardQueries, SnapshotCache
from cashflow.services.notifications import ChangeNotifier
from cashflow.services.storage import ConnectionError, InMemoryRecordStore, StorageError


def _txn(amount, day, txn_type="expense", status="cleared", **kwargs) -> Transaction:
    return Transaction(
        user_id="u1",
        amount=Decimal(str(amount)),
        date=day,
        type=TransactionType(txn_type),
        status=TransactionStatus(status),
        **kwargs,
    )


class CountingStore(InMemoryRecordStore):
    """In-memory store that counts snapshot loads."""

    def __init__(self, notifier=None):
        super().__init__(notifier)
        self.list_calls = 0

    async def list_transactions(self, filter=None):
        self.list_calls += 1
        return await super().list_transactions(filter)


class UnreachableStore(InMemoryRecordStore):
    """Store whose reads always fail."""

    async def list_transactions(self, filter=None):
        raise ConnectionError("Sheets API unavailable")


class TestSnapshotCache:
    """Tests for SnapshotCache."""

    def test_computes_once_until_invalidated(self):
        notifier = ChangeNotifier()
        cache = SnapshotCache(notifier)
        calls = []

        async def loader():
            calls.append(1)
            return len(calls)

        key = SnapshotCache.key("view", 1)
        assert asyncio.run(cache.get_or_compute(key, [RecordTable.TRANSACTIONS], loader)) == 1
        assert asyncio.run(cache.get_or_compute(key, [RecordTable.TRANSACTIONS], loader)) == 1

        notifier.publish(RecordTable.TRANSACTIONS)
        assert key not in cache
        assert asyncio.run(cache.get_or_compute(key, [RecordTable.TRANSACTIONS], loader)) == 2

    def test_only_dependent_entries_dropped(self):
        notifier = ChangeNotifier()
        cache = SnapshotCache(notifier)

        async def loader():
            return "value"

        txn_key = SnapshotCache.key("balance")
        cat_key = SnapshotCache.key("categories")
        asyncio.run(cache.get_or_compute(txn_key, [RecordTable.TRANSACTIONS], loader))
        asyncio.run(cache.get_or_compute(cat_key, [RecordTable.CATEGORIES], loader))

        notifier.publish(RecordTable.CATEGORIES)
        assert txn_key in cache
        assert cat_key not in cache

    def test_failed_load_not_cached(self):
        cache = SnapshotCache(ChangeNotifier())

        async def loader():
            raise ConnectionError("offline")

        with pytest.raises(StorageError):
            asyncio.run(cache.get_or_compute(SnapshotCache.key("x"), [RecordTable.TRANSACTIONS], loader))
        assert len(cache) == 0

    def test_close_stops_invalidation(self):
        notifier = ChangeNotifier()
        cache = SnapshotCache(notifier)
        cache.close()
        assert notifier.subscriber_count(RecordTable.TRANSACTIONS) == 0


class TestDashboardQueries:
    """Tests for DashboardQueries."""

    def test_balance_summary_cached_until_store_changes(self):
        store = CountingStore(ChangeNotifier())
        asyncio.run(store.insert_transactions([_txn(1000, date(2024, 1, 1), "income")]))
        queries = DashboardQueries(store)
        today = date(2024, 1, 5)

        first = asyncio.run(queries.balance_summary(today))
        second = asyncio.run(queries.balance_summary(today))
        assert first.current_balance == Decimal("1000")
        assert second is first
        assert store.list_calls == 1

        asyncio.run(store.insert_transactions([_txn(100, date(2024, 1, 2))]))
        third = asyncio.run(queries.balance_summary(today))
        assert third.current_balance == Decimal("900")
        assert store.list_calls == 2

    def test_different_days_are_different_entries(self):
        store = CountingStore(ChangeNotifier())
        queries = DashboardQueries(store)

        asyncio.run(queries.balance_summary(date(2024, 1, 5)))
        asyncio.run(queries.balance_summary(date(2024, 1, 6)))
        assert store.list_calls == 2

    def test_budget_summary_recomputed_on_category_change(self):
        store = InMemoryRecordStore(ChangeNotifier())
        food = Category(name="Food", type=TransactionType.EXPENSE, budget_limit=Decimal("100"))
        asyncio.run(store.save_category(food))
        asyncio.run(store.insert_transactions([
            _txn(90, date(2024, 4, 3), category_id=food.id),
            _txn(500, date(2024, 3, 3), category_id=food.id),
        ]))
        queries = DashboardQueries(store)
        april = BillingMonth(year=2024, month=4)

        summary = asyncio.run(queries.budget_summary(april))
        assert summary.total_spent == Decimal("90")
        assert summary.category("Food").status == BudgetStatus.WARNING

        asyncio.run(store.save_category(food.model_copy(update={"budget_limit": Decimal("200")})))
        summary = asyncio.run(queries.budget_summary(april))
        assert summary.category("Food").status == BudgetStatus.ON_TRACK

    def test_calendar(self):
        store = InMemoryRecordStore(ChangeNotifier())
        asyncio.run(store.insert_transactions([
            _txn(300, date(2024, 3, 30), "income"),
            _txn(50, date(2024, 4, 2), "expense", "pending"),
            _txn(70, date(2024, 5, 2), "expense", "pending"),
        ]))
        days = asyncio.run(DashboardQueries(store).calendar(BillingMonth(year=2024, month=4)))

        assert len(days) == 30
        assert days[0].running_balance == Decimal("300")
        assert days[-1].running_balance == Decimal("250")

    def test_totals(self):
        store = InMemoryRecordStore(ChangeNotifier())
        asyncio.run(store.insert_transactions([
            _txn(400, date(2024, 2, 1), "income"),
            _txn(80, date(2024, 2, 20), "expense", "pending"),
            _txn(20, date(2024, 2, 3), "expense"),
        ]))
        queries = DashboardQueries(store)

        assert asyncio.run(queries.outstanding_bills_total()) == Decimal("80")
        assert asyncio.run(queries.income_month_to_date(date(2024, 2, 14))) == Decimal("400")
        assert [t.amount for t in asyncio.run(queries.pending_bills())] == [Decimal("80")]

    def test_review_inbox_newest_first(self):
        store = InMemoryRecordStore(ChangeNotifier())
        old = _txn(1, date(2024, 1, 1))
        new = _txn(2, date(2024, 1, 9))
        done = _txn(3, date(2024, 1, 5), reviewed=True)
        asyncio.run(store.insert_transactions([old, new, done]))
        queries = DashboardQueries(store)

        assert [t.id for t in asyncio.run(queries.review_inbox())] == [new.id, old.id]

        asyncio.run(store.update_transaction(new.id, TransactionPatch(reviewed=True)))
        assert [t.id for t in asyncio.run(queries.review_inbox())] == [old.id]

    def test_store_errors_propagate(self):
        queries = DashboardQueries(UnreachableStore(ChangeNotifier()))
        with pytest.raises(StorageError):
            asyncio.run(queries.balance_summary(date(2024, 1, 5)))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
