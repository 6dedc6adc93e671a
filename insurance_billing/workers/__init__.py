"""
Queue-triggered workers.
"""

from insurance_billing.workers.base import DEAD_LETTER_KINDS, QueueWorker
from insurance_billing.workers.invoice_requests import InvoiceRequestWorker
from insurance_billing.workers.notifications import NotificationWorker

__all__ = [
    "DEAD_LETTER_KINDS",
    "InvoiceRequestWorker",
    "NotificationWorker",
    "QueueWorker",
]
