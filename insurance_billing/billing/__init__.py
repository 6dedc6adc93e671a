"""
Billing core: proration, invoice generation, orchestration and notifications.
"""

from insurance_billing.billing.invoice_generator import InvoiceGenerator, invoice_notes
from insurance_billing.billing.notification import (
    BATCH_MESSAGE_SUBJECT,
    build_invoice_notification,
    email_subject,
    message_subject,
)
from insurance_billing.billing.orchestrator import BatchReport, BillingOrchestrator
from insurance_billing.billing.proration import calculate_prorated_amount, round_money

__all__ = [
    "BATCH_MESSAGE_SUBJECT",
    "BatchReport",
    "BillingOrchestrator",
    "InvoiceGenerator",
    "build_invoice_notification",
    "calculate_prorated_amount",
    "email_subject",
    "invoice_notes",
    "message_subject",
    "round_money",
]
