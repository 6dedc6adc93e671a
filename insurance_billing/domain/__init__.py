"""
Domain models for the billing pipeline.

Pydantic models representing policies, coverages, invoices and messages.
"""

from insurance_billing.domain.enums import (
    CoverageLinkStatus,
    CoverageStatus,
    InvoiceStatus,
    MessageType,
    PolicyStatus,
)
from insurance_billing.domain.billing import Invoice, InvoiceCreate
from insurance_billing.domain.messages import (
    InvoiceGenerationRequested,
    InvoiceNotification,
    TransportMessage,
    decode_message,
)
from insurance_billing.domain.policy import Coverage, CoverageLink, Customer, Policy

__all__ = [
    # Enums
    "CoverageLinkStatus",
    "CoverageStatus",
    "InvoiceStatus",
    "MessageType",
    "PolicyStatus",
    # Policy
    "Coverage",
    "CoverageLink",
    "Customer",
    "Policy",
    # Billing
    "Invoice",
    "InvoiceCreate",
    # Messages
    "InvoiceGenerationRequested",
    "InvoiceNotification",
    "TransportMessage",
    "decode_message",
]
