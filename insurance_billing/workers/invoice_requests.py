"""
Worker consuming on-demand invoice generation requests.
"""

from insurance_billing.domain.enums import MessageType
from insurance_billing.domain.messages import InvoiceGenerationRequested, InvoiceNotification
from insurance_billing.errors import PermanentError
from insurance_billing.service import BillingService
from insurance_billing.workers.base import QueueWorker


class InvoiceRequestWorker(QueueWorker):
    """Runs the single-policy billing path for each request message."""

    default_type = MessageType.INVOICE_GENERATION_REQUESTED.value

    def __init__(self, service: BillingService, **kwargs):
        transport_config = service.config.transport
        kwargs.setdefault("max_delivery_attempts", transport_config.max_delivery_attempts)
        kwargs.setdefault("batch_size", transport_config.receive_batch_size)
        kwargs.setdefault("poll_interval_seconds", transport_config.poll_interval_seconds)
        super().__init__(service.transport, service.generation_queue, **kwargs)
        self.service = service

    def handle(self, message: InvoiceGenerationRequested | InvoiceNotification) -> None:
        if not isinstance(message, InvoiceGenerationRequested):
            raise PermanentError(
                "Unexpected message type on invoice generation queue",
                message_type=message.message_type,
            )
        notification = self.service.handle_request(message)
        if notification is None:
            self.increment_stat("no_invoice")
        else:
            self.increment_stat("notifications_issued")
