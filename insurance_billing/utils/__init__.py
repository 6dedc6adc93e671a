"""
Utility modules for the billing pipeline.

Provides:
- Billing period date helpers
- Injectable clock
- Structured logging configuration
"""

from insurance_billing.utils.clock import Clock, FixedClock, SystemClock
from insurance_billing.utils.logging import configure_logging, get_logger
from insurance_billing.utils.time_conversion import (
    add_months,
    days_in_month,
    first_of_month,
    first_of_next_month,
    inclusive_days,
    last_of_month,
    next_month_window,
    overlap,
)

__all__ = [
    # Dates
    "add_months",
    "days_in_month",
    "first_of_month",
    "first_of_next_month",
    "inclusive_days",
    "last_of_month",
    "next_month_window",
    "overlap",
    # Clock
    "Clock",
    "FixedClock",
    "SystemClock",
    # Logging
    "configure_logging",
    "get_logger",
]
