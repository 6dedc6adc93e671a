"""
Injectable clock.

Billing windows, issue dates and invoice numbers all derive from "now", so
services receive a Clock instead of calling datetime.now() directly.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def now_utc(self) -> datetime:
        """Current time as a timezone-aware UTC datetime."""
        ...

    def today(self) -> date:
        """Current UTC date."""
        return self.now_utc().date()


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """
    Test clock frozen at a given instant.

    Naive datetimes are interpreted as UTC.
    """

    def __init__(self, fixed: datetime):
        if fixed.tzinfo is None:
            fixed = fixed.replace(tzinfo=timezone.utc)
        self._fixed = fixed.astimezone(timezone.utc)

    def now_utc(self) -> datetime:
        return self._fixed

    def set(self, fixed: datetime) -> None:
        """Move the clock to a new instant."""
        if fixed.tzinfo is None:
            fixed = fixed.replace(tzinfo=timezone.utc)
        self._fixed = fixed.astimezone(timezone.utc)
