"""Forecasting and aggregation engine."""

from cashflow.engine.balance import (
    PROJECTION_DAYS,
    BalanceProjector,
    SameDayPolicy,
    bills_due,
    current_balance,
    income_month_to_date,
    next_payday,
    outstanding_bills_total,
    running_balance_on,
)
from cashflow.engine.bills import BillScheduler, existing_source_keys, source_key
from cashflow.engine.budget import BudgetAggregator, progress_percent, spending_by_category
from cashflow.engine.paycheck import (
    PaycheckCalculator,
    next_payday_from_settings,
    to_cents,
)

__all__ = [
    "PROJECTION_DAYS",
    "BalanceProjector",
    "SameDayPolicy",
    "bills_due",
    "current_balance",
    "income_month_to_date",
    "next_payday",
    "outstanding_bills_total",
    "running_balance_on",
    "BillScheduler",
    "existing_source_keys",
    "source_key",
    "BudgetAggregator",
    "progress_percent",
    "spending_by_category",
    "PaycheckCalculator",
    "next_payday_from_settings",
    "to_cents",
]
