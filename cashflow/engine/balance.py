"""
Balance Projection

DESIGN DECISION: The projector is a pure function of a transaction
snapshot and "today". It performs no I/O and keeps no state, so the
caller can re-run it whenever the record store reports a change.

Definitions:
- Current balance: signed sum of CLEARED transactions only.
- Next payday: earliest income transaction dated today or later.
- Bills due: unsettled expenses dated between today and next payday.
- Safe-to-spend: current balance minus bills due.
- Projection: one running balance per day for PROJECTION_DAYS days.
"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from cashflow.models.forecast import BalanceSummary, CalendarDay, ProjectionPoint
from cashflow.models.records import (
    BillingMonth,
    Transaction,
    TransactionStatus,
    TransactionType,
)


PROJECTION_DAYS = 30

ZERO = Decimal("0")


class SameDayPolicy(str, Enum):
    """
    How a CLEARED transaction dated exactly today enters the projection.

    COUNT_TWICE: it is part of the current balance AND of day 0's change.
                 This is the observed behaviour of the dashboard.
    BASELINE_ONLY: it is part of the current balance only.
    """
    COUNT_TWICE = "count_twice"
    BASELINE_ONLY = "baseline_only"


def current_balance(transactions: Iterable[Transaction]) -> Decimal:
    """Signed sum of cleared transactions. Pending/estimated never count."""
    return sum((t.signed_amount for t in transactions if t.is_cleared), ZERO)


def next_payday(transactions: Iterable[Transaction], today: date) -> Optional[date]:
    """
    Date of the earliest income transaction on or after ``today``.

    Ties are broken by input order, which only matters for callers
    that want the transaction itself; the date is the same either way.
    """
    payday = None
    for txn in transactions:
        if txn.type != TransactionType.INCOME or txn.date < today:
            continue
        if payday is None or txn.date < payday:
            payday = txn.date
    return payday


def bills_due(
    transactions: Iterable[Transaction],
    today: date,
    payday: Optional[date],
) -> Decimal:
    """Unsettled expenses falling in [today, payday]. Zero without a payday."""
    if payday is None:
        return ZERO
    return sum(
        (
            t.amount
            for t in transactions
            if t.type == TransactionType.EXPENSE
            and t.status != TransactionStatus.CLEARED
            and today <= t.date <= payday
        ),
        ZERO,
    )


def running_balance_on(transactions: Iterable[Transaction], day: date) -> Decimal:
    """
    Signed sum of every transaction dated on or before ``day``.

    Status is ignored: the calendar shows where the account is heading
    if everything scheduled actually happens.
    """
    return sum((t.signed_amount for t in transactions if t.date <= day), ZERO)


def outstanding_bills_total(transactions: Iterable[Transaction]) -> Decimal:
    """All pending and estimated expenses, whatever their date."""
    return sum(
        (
            t.amount
            for t in transactions
            if t.type == TransactionType.EXPENSE and t.status != TransactionStatus.CLEARED
        ),
        ZERO,
    )


def income_month_to_date(transactions: Iterable[Transaction], today: date) -> Decimal:
    """Cleared income dated on or after the first day of today's month."""
    start = today.replace(day=1)
    return sum(
        (
            t.amount
            for t in transactions
            if t.type == TransactionType.INCOME and t.is_cleared and t.date >= start
        ),
        ZERO,
    )


class BalanceProjector:
    """
    Computes current balance, safe-to-spend and the 30-day projection.

    GUARANTEES:
    - Never raises on empty input (everything degrades to zero)
    - Projection has exactly PROJECTION_DAYS consecutive entries from today
    """

    def __init__(self, same_day_policy: SameDayPolicy = SameDayPolicy.COUNT_TWICE):
        self._same_day_policy = SameDayPolicy(same_day_policy)

    @property
    def same_day_policy(self) -> SameDayPolicy:
        return self._same_day_policy

    def summarize(
        self,
        transactions: Optional[Iterable[Transaction]],
        today: date,
    ) -> BalanceSummary:
        """Build the full balance summary for ``today``."""
        snapshot = list(transactions or [])

        balance = current_balance(snapshot)
        payday = next_payday(snapshot, today)
        due = bills_due(snapshot, today, payday)

        return BalanceSummary(
            today=today,
            current_balance=balance,
            next_payday=payday,
            bills_due=due,
            safe_to_spend=balance - due,
            projection=self.project(snapshot, today, baseline=balance),
        )

    def project(
        self,
        transactions: Iterable[Transaction],
        today: date,
        baseline: Optional[Decimal] = None,
    ) -> list[ProjectionPoint]:
        """
        Day-by-day projected balance starting at ``today`` (inclusive).

        Every transaction dated inside the window contributes on its own
        day regardless of status.
        """
        snapshot = list(transactions)
        running = current_balance(snapshot) if baseline is None else baseline

        daily_changes: dict[date, Decimal] = defaultdict(lambda: ZERO)
        for txn in snapshot:
            if txn.date < today:
                continue
            if (
                txn.date == today
                and txn.is_cleared
                and self._same_day_policy == SameDayPolicy.BASELINE_ONLY
            ):
                continue
            daily_changes[txn.date] += txn.signed_amount

        points = []
        for offset in range(PROJECTION_DAYS):
            day = today + timedelta(days=offset)
            running += daily_changes.get(day, ZERO)
            points.append(ProjectionPoint(date=day, balance=running))
        return points

    def calendar_month(
        self,
        transactions: Optional[Iterable[Transaction]],
        month: BillingMonth,
    ) -> list[CalendarDay]:
        """One CalendarDay per day of ``month`` with its running balance."""
        snapshot = sorted(transactions or [], key=lambda t: t.date)

        by_day: dict[date, list[Transaction]] = defaultdict(list)
        for txn in snapshot:
            by_day[txn.date].append(txn)

        running = sum(
            (t.signed_amount for t in snapshot if t.date < month.first_day), ZERO
        )
        days = []
        for day_number in range(1, month.days_in_month + 1):
            day = date(month.year, month.month, day_number)
            todays = by_day.get(day, [])
            running += sum((t.signed_amount for t in todays), ZERO)
            days.append(CalendarDay(date=day, running_balance=running, transactions=todays))
        return days
