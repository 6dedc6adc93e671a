"""
Policy, customer and coverage models (read-only from the billing pipeline).
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from insurance_billing.domain.enums import (
    CoverageLinkStatus,
    CoverageStatus,
    PolicyStatus,
)


class Customer(BaseModel):
    """Policy holder."""

    model_config = ConfigDict(from_attributes=True)

    customer_id: UUID
    name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=256)
    phone_number: str = Field(default="", max_length=20)
    address: str = Field(default="", max_length=500)


class Policy(BaseModel):
    """A bound vehicle insurance contract."""

    model_config = ConfigDict(from_attributes=True)

    policy_id: UUID
    customer_id: UUID
    policy_number: Optional[str] = Field(None, max_length=100)

    status: PolicyStatus = PolicyStatus.ACTIVE

    start_date: date
    end_date: date
    renewal_date: date

    # Informational only; billing sums coverage prices
    total_premium: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def is_billable(self) -> bool:
        return self.status == PolicyStatus.ACTIVE


class Coverage(BaseModel):
    """Rate-card item with a monthly price."""

    model_config = ConfigDict(from_attributes=True)

    coverage_id: UUID
    name: str = Field(..., max_length=200)
    price: Decimal = Field(..., ge=0)
    status: CoverageStatus = CoverageStatus.ACTIVE


class CoverageLink(BaseModel):
    """Coverage attached to a policy with its own active window."""

    model_config = ConfigDict(from_attributes=True)

    link_id: UUID
    policy_id: UUID
    coverage_id: UUID

    start_date: date
    end_date: date
    status: CoverageLinkStatus = CoverageLinkStatus.ACTIVE

    premium_amount: Decimal = Field(default=Decimal("0"), ge=0)

    def contributes_to(self, period_start: date, period_end: date) -> bool:
        """
        Whether this link is billable for the period.

        Args:
            period_start: First billed day
            period_end: Last billed day

        Returns:
            True when active and its window overlaps the period
        """
        return (
            self.status == CoverageLinkStatus.ACTIVE
            and self.start_date <= period_end
            and self.end_date >= period_start
        )
