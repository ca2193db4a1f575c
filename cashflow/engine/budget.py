"""
Budget Aggregation

Rolls a month of transactions up against category budgets.

Rules:
- Spend per category sums unsigned amounts by category_id, whatever
  the transaction type. Callers keep income and expense apart by
  convention; the aggregator does not filter.
- Only expense categories contribute to total budget and total spent.
- A limit of zero means "no budget set", never "over budget".
- Income categories are always on track.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from cashflow.models.forecast import (
    BudgetGroup,
    BudgetStatus,
    BudgetSummary,
    CategoryBudget,
)
from cashflow.models.records import (
    BillingMonth,
    Category,
    Transaction,
    TransactionType,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_WARNING_PERCENT = Decimal("85")


def spending_by_category(transactions: Iterable[Transaction]) -> dict[UUID, Decimal]:
    """Unsigned spend per category_id. Transactions without one are ignored."""
    totals: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    for txn in transactions:
        if txn.category_id is not None:
            totals[txn.category_id] += txn.amount
    return dict(totals)


def progress_percent(spent: Decimal, limit: Decimal) -> Decimal:
    """Spend as a percentage of limit, clamped to [0, 100]; 0 without a limit."""
    if limit <= 0:
        return ZERO
    return min(spent / limit * HUNDRED, HUNDRED)


class BudgetAggregator:
    """
    Computes the month-at-a-glance budget view.

    Status thresholds (expense categories with a limit):
    - >= 100%: over limit
    - >= warning_percent (85% by default): warning
    - otherwise: on track
    """

    def __init__(self, warning_percent: Decimal = DEFAULT_WARNING_PERCENT):
        self._warning_percent = Decimal(warning_percent)

    def status_for(self, category: Category, spent: Decimal) -> BudgetStatus:
        if category.type == TransactionType.INCOME or not category.has_budget:
            return BudgetStatus.ON_TRACK

        percentage = spent / category.budget_limit * HUNDRED
        if percentage >= HUNDRED:
            return BudgetStatus.OVER_LIMIT
        if percentage >= self._warning_percent:
            return BudgetStatus.WARNING
        return BudgetStatus.ON_TRACK

    def group_categories(self, categories: Iterable[Category]) -> dict[str, list[Category]]:
        """Partition by group label, preserving category order within and across groups."""
        groups: dict[str, list[Category]] = {}
        for category in categories:
            groups.setdefault(category.group, []).append(category)
        return groups

    def summarize(
        self,
        categories: Optional[Iterable[Category]],
        transactions: Optional[Iterable[Transaction]],
        month: Optional[BillingMonth] = None,
    ) -> BudgetSummary:
        """
        Build the budget summary.

        Args:
            categories: All categories, in display order
            transactions: Transactions for the month (or more, if month is given)
            month: When set, transactions outside the month are dropped

        Returns:
            BudgetSummary with groups, totals and over-budget flag
        """
        categories = list(categories or [])
        transactions = list(transactions or [])

        if month is not None:
            transactions = [
                t for t in transactions
                if month.first_day <= t.date <= month.last_day
            ]

        spending = spending_by_category(transactions)
        categories_by_id = {c.id: c for c in categories}

        groups = []
        for name, members in self.group_categories(categories).items():
            items = []
            for category in members:
                spent = spending.get(category.id, ZERO)
                items.append(CategoryBudget(
                    category=category,
                    spent=spent,
                    progress_percent=progress_percent(spent, category.budget_limit),
                    status=self.status_for(category, spent),
                ))
            groups.append(BudgetGroup(name=name, categories=items))

        total_budget = sum(
            (c.budget_limit for c in categories if c.type == TransactionType.EXPENSE),
            ZERO,
        )
        total_spent = ZERO
        for txn in transactions:
            category = categories_by_id.get(txn.category_id)
            if category is not None and category.type == TransactionType.EXPENSE:
                total_spent += txn.amount

        total_progress = total_spent / total_budget * HUNDRED if total_budget > 0 else ZERO

        return BudgetSummary(
            month=str(month) if month else None,
            groups=groups,
            total_budget=total_budget,
            total_spent=total_spent,
            total_progress_percent=total_progress,
            over_budget=total_spent > total_budget,
        )
