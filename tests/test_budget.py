"""Tests for the budget aggregator."""

import pytest
from datetime import date
from decimal import Decimal

from cashflow.engine.budget import BudgetAggregator, progress_percent, spending_by_category
from cashflow.models.forecast import BudgetStatus
from cashflow.models.records import (
    BillingMonth,
    Category,
    Transaction,
    TransactionType,
)


def _spend(category: Category, amount, day=date(2024, 4, 10), txn_type=None) -> Transaction:
    return Transaction(
        user_id="u1",
        amount=Decimal(str(amount)),
        date=day,
        type=txn_type or category.type,
        category=category.name,
        category_id=category.id,
    )


@pytest.fixture
def groceries() -> Category:
    return Category(
        name="Groceries",
        type=TransactionType.EXPENSE,
        group="Living",
        budget_limit=Decimal("100"),
    )


class TestProgressPercent:
    """Tests for the clamped progress ratio."""

    def test_clamped_to_hundred(self):
        assert progress_percent(Decimal("250"), Decimal("100")) == Decimal("100")

    def test_zero_limit_is_zero_percent(self):
        assert progress_percent(Decimal("50"), Decimal("0")) == Decimal("0")

    def test_partial(self):
        assert progress_percent(Decimal("25"), Decimal("200")) == Decimal("12.5")


class TestCategoryStatus:
    """Tests for traffic-light thresholds."""

    def test_ninety_percent_is_warning(self, groceries):
        """90 of 100 spent sits between the warning and over-limit thresholds."""
        summary = BudgetAggregator().summarize([groceries], [_spend(groceries, 90)])
        item = summary.category("Groceries")

        assert item.progress_percent == Decimal("90")
        assert item.status == BudgetStatus.WARNING
        assert item.remaining == Decimal("10")

    @pytest.mark.parametrize("spent,expected", [
        ("84.99", BudgetStatus.ON_TRACK),
        ("85", BudgetStatus.WARNING),
        ("99.99", BudgetStatus.WARNING),
        ("100", BudgetStatus.OVER_LIMIT),
        ("400", BudgetStatus.OVER_LIMIT),
    ])
    def test_thresholds(self, groceries, spent, expected):
        assert BudgetAggregator().status_for(groceries, Decimal(spent)) == expected

    def test_zero_limit_never_over_limit(self):
        """A category without a budget is "no budget set", not "over budget"."""
        fun = Category(name="Fun", type=TransactionType.EXPENSE, budget_limit=Decimal("0"))
        summary = BudgetAggregator().summarize([fun], [_spend(fun, 500)])
        item = summary.category("Fun")

        assert item.status == BudgetStatus.ON_TRACK
        assert item.progress_percent == Decimal("0")
        assert item.has_budget is False

    def test_income_always_on_track(self):
        salary = Category(name="Salary", type=TransactionType.INCOME, budget_limit=Decimal("10"))
        summary = BudgetAggregator().summarize([salary], [_spend(salary, 5000)])
        assert summary.category("Salary").status == BudgetStatus.ON_TRACK

    def test_configurable_warning_threshold(self, groceries):
        assert BudgetAggregator(Decimal("95")).status_for(groceries, Decimal("90")) == BudgetStatus.ON_TRACK


class TestBudgetSummary:
    """Tests for grouping and totals."""

    def test_groups_keep_category_order(self):
        categories = [
            Category(name="Rent", type=TransactionType.EXPENSE, group="Housing"),
            Category(name="Food", type=TransactionType.EXPENSE, group="Living"),
            Category(name="Power", type=TransactionType.EXPENSE, group="Housing"),
        ]
        summary = BudgetAggregator().summarize(categories, [])

        assert [g.name for g in summary.groups] == ["Housing", "Living"]
        assert [c.category.name for c in summary.group("Housing").categories] == ["Rent", "Power"]

    def test_totals_only_count_expense_categories(self, groceries):
        salary = Category(name="Salary", type=TransactionType.INCOME, budget_limit=Decimal("3000"))
        transactions = [
            _spend(groceries, 60),
            _spend(groceries, 70),
            _spend(salary, 2500),
        ]
        summary = BudgetAggregator().summarize([groceries, salary], transactions)

        assert summary.total_budget == Decimal("100")
        assert summary.total_spent == Decimal("130")
        assert summary.total_progress_percent == Decimal("130")
        assert summary.display_progress_percent == Decimal("100")
        assert summary.over_budget is True

    def test_per_category_spend_ignores_transaction_type(self, groceries):
        """A refund booked as income against an expense category still adds up."""
        refund = _spend(groceries, 15, txn_type=TransactionType.INCOME)
        assert spending_by_category([_spend(groceries, 10), refund]) == {groceries.id: Decimal("25")}

    def test_uncategorized_transactions_ignored(self, groceries):
        loose = Transaction(
            user_id="u1", amount=Decimal("40"), date=date(2024, 4, 2),
            type=TransactionType.EXPENSE, category="Groceries",
        )
        summary = BudgetAggregator().summarize([groceries], [loose])
        assert summary.total_spent == Decimal("0")

    def test_month_filter(self, groceries):
        transactions = [
            _spend(groceries, 30, day=date(2024, 3, 31)),
            _spend(groceries, 40, day=date(2024, 4, 1)),
            _spend(groceries, 50, day=date(2024, 4, 30)),
            _spend(groceries, 60, day=date(2024, 5, 1)),
        ]
        summary = BudgetAggregator().summarize(
            [groceries], transactions, BillingMonth(year=2024, month=4)
        )
        assert summary.month == "2024-04"
        assert summary.total_spent == Decimal("90")
        assert summary.over_budget is False

    def test_empty_input(self):
        summary = BudgetAggregator().summarize(None, None)
        assert summary.groups == []
        assert summary.total_budget == Decimal("0")
        assert summary.total_progress_percent == Decimal("0")
        assert summary.over_budget is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
