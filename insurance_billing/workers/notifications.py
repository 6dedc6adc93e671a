"""
Worker consuming invoice notifications.

Stands in for the e-mail service: it validates each notification and logs
its subject. Final delivery belongs to the downstream system.
"""

import structlog

from insurance_billing.domain.enums import MessageType
from insurance_billing.domain.messages import InvoiceGenerationRequested, InvoiceNotification
from insurance_billing.errors import PermanentError
from insurance_billing.transport.client import MessageTransport
from insurance_billing.workers.base import QueueWorker

logger = structlog.get_logger()


class NotificationWorker(QueueWorker):
    """Logs each invoice notification taken off the notification queue."""

    default_type = MessageType.INVOICE_NOTIFICATION.value

    def __init__(self, transport: MessageTransport, destination: str, **kwargs):
        super().__init__(transport, destination, **kwargs)
        self.received: list[InvoiceNotification] = []

    def handle(self, message: InvoiceGenerationRequested | InvoiceNotification) -> None:
        if not isinstance(message, InvoiceNotification):
            raise PermanentError(
                "Unexpected message type on notification queue",
                message_type=message.message_type,
            )
        logger.info(
            "invoice_notification_received",
            subject=message.subject,
            invoice_number=message.invoice_number,
        )
        self.received.append(message)
        self.increment_stat("notifications_logged")
