"""
Enumeration types for billing domain models.
"""

from enum import Enum


class PolicyStatus(str, Enum):
    """Vehicle insurance policy status."""
    ACTIVE = "Active"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"
    SUSPENDED = "Suspended"
    PENDING_PAYMENT = "PendingPayment"


class CoverageLinkStatus(str, Enum):
    """Status of a coverage attached to a policy."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"


class CoverageStatus(str, Enum):
    """Rate-card coverage status."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class InvoiceStatus(str, Enum):
    """
    Invoice status.

    This pipeline only creates PENDING invoices; the other values are written
    by payment processing.
    """
    UNDER_CALCULATION = "UnderCalculation"
    PENDING = "Pending"
    PAID = "Paid"
    CANCELLED = "Cancelled"
    OVERDUE = "Overdue"
    PARTIALLY_PAID = "PartiallyPaid"


class MessageType(str, Enum):
    """Tags for messages crossing the transport."""
    INVOICE_GENERATION_REQUESTED = "invoice.generation_requested"
    INVOICE_NOTIFICATION = "invoice.notification"
