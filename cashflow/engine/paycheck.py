"""
Paycheck Estimation

regular  = hours * rate
overtime = overtime_hours * rate * 1.5
gross    = regular + overtime
tax      = gross * tax_rate_percent / 100
net      = max(0, gross - tax - fixed_deductions)

The estimate is advisory: it pre-fills an ESTIMATED income transaction.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from cashflow.models.forecast import PaycheckEstimate, PaycheckInput
from cashflow.models.records import BillingMonth, UserSettings


DEFAULT_OVERTIME_MULTIPLIER = Decimal("1.5")
CENTS = Decimal("0.01")


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def next_payday_from_settings(today: date, custom_payday: Optional[int]) -> Optional[date]:
    """
    Next date on or after ``today`` that falls on the user's payday.

    Paydays past the end of a month are clamped to its last day.
    """
    if custom_payday is None:
        return None

    month = BillingMonth.of(today)
    candidate = month.clamp_day(custom_payday)
    if candidate >= today:
        return candidate

    if month.month == 12:
        following = BillingMonth(year=month.year + 1, month=1)
    else:
        following = BillingMonth(year=month.year, month=month.month + 1)
    return following.clamp_day(custom_payday)


class PaycheckCalculator:
    """Pure wage arithmetic. Missing settings yield an all-zero estimate."""

    def __init__(self, overtime_multiplier: Decimal = DEFAULT_OVERTIME_MULTIPLIER):
        self._overtime_multiplier = Decimal(overtime_multiplier)

    def estimate(
        self,
        hours: PaycheckInput,
        settings: Optional[UserSettings],
    ) -> PaycheckEstimate:
        if settings is None:
            return PaycheckEstimate()

        rate = settings.hourly_rate
        regular_pay = hours.hours * rate
        overtime_pay = hours.overtime_hours * rate * self._overtime_multiplier
        gross_pay = regular_pay + overtime_pay
        tax_amount = gross_pay * (settings.tax_rate_percent / Decimal("100"))
        net_pay = gross_pay - tax_amount - settings.fixed_deductions

        return PaycheckEstimate(
            regular_pay=regular_pay,
            overtime_pay=overtime_pay,
            gross_pay=gross_pay,
            tax_amount=tax_amount,
            fixed_deductions=settings.fixed_deductions,
            net_pay=max(Decimal("0"), net_pay),
        )
