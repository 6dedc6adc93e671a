"""
Proration of monthly coverage prices over a partial billing period.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from insurance_billing.errors import BillingValidationError
from insurance_billing.utils.time_conversion import days_in_month, inclusive_days

CENTS = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_prorated_amount(
    coverage_prices: Iterable[Decimal],
    period_start: date,
    period_end: date,
) -> Decimal:
    """
    Prorate the summed monthly prices over a billing period.

    amount = sum(prices) * days_in_period / days_in_month(period_start),
    where both period ends are billed. A period spanning several months is
    still divided by the length of the month it starts in.

    Args:
        coverage_prices: Monthly prices of the active coverages
        period_start: First billed day
        period_end: Last billed day

    Returns:
        Amount rounded to 2 decimal places

    Raises:
        BillingValidationError: If period_start is after period_end

    Example:
        >>> calculate_prorated_amount([Decimal("100"), Decimal("200")], date(2024, 6, 15), date(2024, 6, 30))
        Decimal('160.00')
    """
    if period_start > period_end:
        raise BillingValidationError(
            "Billing period start is after its end",
            period_start=period_start.isoformat(),
            period_end=period_end.isoformat(),
        )

    total = sum((Decimal(p) for p in coverage_prices), Decimal("0"))
    if total == 0:
        return round_money(total)

    days_in_period = inclusive_days(period_start, period_end)
    return round_money(total * days_in_period / days_in_month(period_start))
