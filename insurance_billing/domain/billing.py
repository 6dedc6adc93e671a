"""
Invoice domain models.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from insurance_billing.domain.enums import InvoiceStatus

INVOICE_NUMBER_PATTERN = r"^INV-\d{8}-[0-9A-F]{8}$"


class InvoiceCreate(BaseModel):
    """Model for creating an invoice."""

    invoice_id: UUID
    invoice_number: str = Field(..., max_length=50, pattern=INVOICE_NUMBER_PATTERN)

    policy_id: UUID

    status: InvoiceStatus = InvoiceStatus.PENDING

    amount: Decimal = Field(..., ge=0, decimal_places=2)
    paid_amount: Decimal = Field(default=Decimal("0.00"), ge=0)

    issued_date: datetime
    due_date: datetime
    period_start: date
    period_end: date

    notes: Optional[str] = Field(None, max_length=1000)
    document_url: Optional[str] = Field(None, max_length=500)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("amount", "paid_amount", mode="before")
    @classmethod
    def quantize_money(cls, v):
        return Decimal(str(v)).quantize(Decimal("0.01"))

    @model_validator(mode="after")
    def period_in_order(self) -> "InvoiceCreate":
        if self.period_start > self.period_end:
            raise ValueError("period_start must not be after period_end")
        return self

    def model_dump_db(self) -> dict:
        """Convert to dictionary for database insertion."""
        data = self.model_dump()
        data["invoice_id"] = str(self.invoice_id)
        data["policy_id"] = str(self.policy_id)
        data["status"] = self.status.value
        return data


class Invoice(InvoiceCreate):
    """Invoice as read back from the policy store."""

    model_config = ConfigDict(from_attributes=True)
