"""
Dashboard Queries

DESIGN DECISION: Every dashboard view is computed by the pure engine from
a snapshot of the record store. Nothing here writes.

Views are served from the SnapshotCache and recomputed after the store
reports a change to a table they depend on.

GUARANTEES:
- Only returns values derived from stored records
- Store failures propagate as StorageError (the caller decides how to show them)
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from cashflow.engine import (
    BalanceProjector,
    BudgetAggregator,
    income_month_to_date,
    outstanding_bills_total,
)
from cashflow.models.forecast import BalanceSummary, BudgetSummary, CalendarDay
from cashflow.models.records import (
    BillingMonth,
    RecordTable,
    Transaction,
    TransactionFilter,
    TransactionStatus,
    TransactionType,
)
from cashflow.queries.cache import SnapshotCache
from cashflow.services.storage import RecordStoreInterface


class DashboardQueries:
    """Read-side facade used by the UI."""

    def __init__(
        self,
        store: RecordStoreInterface,
        cache: Optional[SnapshotCache] = None,
        projector: Optional[BalanceProjector] = None,
        aggregator: Optional[BudgetAggregator] = None,
    ):
        self._store = store
        self._cache = cache or SnapshotCache(store.notifier)
        self._projector = projector or BalanceProjector()
        self._aggregator = aggregator or BudgetAggregator()

    @property
    def cache(self) -> SnapshotCache:
        return self._cache

    async def balance_summary(self, today: date) -> BalanceSummary:
        """Current balance, safe-to-spend and the 30-day projection."""
        async def load() -> BalanceSummary:
            transactions = await self._store.list_transactions()
            return self._projector.summarize(transactions, today)

        return await self._cache.get_or_compute(
            SnapshotCache.key("balance_summary", today),
            [RecordTable.TRANSACTIONS],
            load,
        )

    async def budget_summary(self, month: BillingMonth) -> BudgetSummary:
        """Per-group, per-category spending against limits for ``month``."""
        async def load() -> BudgetSummary:
            categories = await self._store.list_categories()
            transactions = await self._store.list_transactions(TransactionFilter(
                date_from=month.first_day,
                date_to=month.last_day,
            ))
            return self._aggregator.summarize(categories, transactions, month)

        return await self._cache.get_or_compute(
            SnapshotCache.key("budget_summary", str(month)),
            [RecordTable.TRANSACTIONS, RecordTable.CATEGORIES],
            load,
        )

    async def calendar(self, month: BillingMonth) -> list[CalendarDay]:
        """Day cells for ``month`` with each day's running balance."""
        async def load() -> list[CalendarDay]:
            transactions = await self._store.list_transactions(
                TransactionFilter(date_to=month.last_day)
            )
            return self._projector.calendar_month(transactions, month)

        return await self._cache.get_or_compute(
            SnapshotCache.key("calendar", str(month)),
            [RecordTable.TRANSACTIONS],
            load,
        )

    async def outstanding_bills_total(self) -> Decimal:
        """Sum of every expense that has not cleared yet."""
        async def load() -> Decimal:
            transactions = await self._store.list_transactions(
                TransactionFilter(type=TransactionType.EXPENSE)
            )
            return outstanding_bills_total(transactions)

        return await self._cache.get_or_compute(
            SnapshotCache.key("outstanding_bills_total"),
            [RecordTable.TRANSACTIONS],
            load,
        )

    async def income_month_to_date(self, today: date) -> Decimal:
        """Cleared income since the first of ``today``'s month."""
        async def load() -> Decimal:
            transactions = await self._store.list_transactions(TransactionFilter(
                type=TransactionType.INCOME,
                status=TransactionStatus.CLEARED,
            ))
            return income_month_to_date(transactions, today)

        return await self._cache.get_or_compute(
            SnapshotCache.key("income_month_to_date", today),
            [RecordTable.TRANSACTIONS],
            load,
        )

    async def pending_bills(self) -> list[Transaction]:
        """Unpaid expenses, soonest first."""
        async def load() -> list[Transaction]:
            transactions = await self._store.list_transactions(
                TransactionFilter(type=TransactionType.EXPENSE)
            )
            return [t for t in transactions if not t.is_cleared]

        return await self._cache.get_or_compute(
            SnapshotCache.key("pending_bills"),
            [RecordTable.TRANSACTIONS],
            load,
        )

    async def review_inbox(self) -> list[Transaction]:
        """Unreviewed transactions, newest first."""
        async def load() -> list[Transaction]:
            transactions = await self._store.list_transactions(
                TransactionFilter(reviewed=False)
            )
            return list(reversed(transactions))

        return await self._cache.get_or_compute(
            SnapshotCache.key("review_inbox"),
            [RecordTable.TRANSACTIONS],
            load,
        )
