"""
Derived View Models

Everything the forecasting engine produces. These are plain values
computed from a snapshot of records; none of them is ever persisted.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from cashflow.models.records import Category, Transaction, TransactionType


class BudgetStatus(str, Enum):
    """Traffic-light state of a category budget."""
    ON_TRACK = "on_track"
    WARNING = "warning"
    OVER_LIMIT = "over_limit"


# =============================================================================
# BALANCE & PROJECTION
# =============================================================================

class ProjectionPoint(BaseModel):
    """Projected balance at the end of one calendar day."""

    date: dt.date
    balance: Decimal


class BalanceSummary(BaseModel):
    """
    Result of a balance projection.

    safe_to_spend may be negative; the sign only drives presentation.
    """

    today: dt.date
    current_balance: Decimal = Decimal("0")
    next_payday: Optional[dt.date] = None
    bills_due: Decimal = Decimal("0")
    safe_to_spend: Decimal = Decimal("0")
    projection: list[ProjectionPoint] = Field(default_factory=list)

    @property
    def lowest_projected_balance(self) -> Optional[Decimal]:
        if not self.projection:
            return None
        return min(point.balance for point in self.projection)


class CalendarDay(BaseModel):
    """One cell of the month calendar."""

    date: dt.date
    running_balance: Decimal
    transactions: list[Transaction] = Field(default_factory=list)

    @property
    def is_negative(self) -> bool:
        return self.running_balance < 0


# =============================================================================
# BUDGET
# =============================================================================

class CategoryBudget(BaseModel):
    """Spend against the budget of one category for one month."""

    category: Category
    spent: Decimal = Decimal("0")
    progress_percent: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="Spend as a share of the limit, clamped to [0, 100]"
    )
    status: BudgetStatus = BudgetStatus.ON_TRACK

    @property
    def limit(self) -> Decimal:
        return self.category.budget_limit

    @property
    def has_budget(self) -> bool:
        return self.category.has_budget

    @property
    def remaining(self) -> Decimal:
        return self.limit - self.spent


class BudgetGroup(BaseModel):
    """Categories sharing the same group label, in category order."""

    name: str
    categories: list[CategoryBudget] = Field(default_factory=list)

    @property
    def spent(self) -> Decimal:
        return sum(
            (c.spent for c in self.categories if c.category.type == TransactionType.EXPENSE),
            Decimal("0"),
        )


class BudgetSummary(BaseModel):
    """Month-at-a-glance budget rollup."""

    month: Optional[str] = None
    groups: list[BudgetGroup] = Field(default_factory=list)
    total_budget: Decimal = Decimal("0")
    total_spent: Decimal = Decimal("0")
    total_progress_percent: Decimal = Field(
        default=Decimal("0"),
        description="Unclamped share of the total budget spent"
    )
    over_budget: bool = False

    @property
    def display_progress_percent(self) -> Decimal:
        return min(self.total_progress_percent, Decimal("100"))

    def group(self, name: str) -> Optional[BudgetGroup]:
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def category(self, name: str) -> Optional[CategoryBudget]:
        for group in self.groups:
            for item in group.categories:
                if item.category.name == name:
                    return item
        return None


# =============================================================================
# PAYCHECK
# =============================================================================

class PaycheckInput(BaseModel):
    """Hours entered by the user for one pay period."""

    hours: Decimal = Field(default=Decimal("40"), ge=0)
    overtime_hours: Decimal = Field(default=Decimal("0"), ge=0)


class PaycheckEstimate(BaseModel):
    """
    Advisory net pay estimate.

    Used to pre-fill an estimated income transaction. Never negative.
    """

    regular_pay: Decimal = Decimal("0")
    overtime_pay: Decimal = Decimal("0")
    gross_pay: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    fixed_deductions: Decimal = Decimal("0")
    net_pay: Decimal = Field(default=Decimal("0"), ge=0)


# =============================================================================
# WRITE-SIDE RESULTS
# =============================================================================

class BillGenerationResult(BaseModel):
    """Outcome of expanding bill templates for a month."""

    success: bool
    month: str
    generated_count: int = Field(default=0, ge=0)
    skipped_count: int = Field(default=0, ge=0)
    transactions: list[Transaction] = Field(default_factory=list)
    error_message: Optional[str] = None


class OperationResult(BaseModel):
    """Outcome of a single write against the record store."""

    success: bool
    transaction: Optional[Transaction] = None
    error_message: Optional[str] = None
    issues: list[str] = Field(default_factory=list)
