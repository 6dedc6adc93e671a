"""
Billing service: wires configuration into stores, transport and orchestrator.

Entry points (CLI commands, queue workers, the scheduler) go through this
class so that every path sends notifications the same way.
"""

from datetime import date, datetime
from uuid import UUID

import structlog
from sqlalchemy.engine import Engine

from insurance_billing.billing.invoice_generator import InvoiceGenerator
from insurance_billing.billing.notification import BATCH_MESSAGE_SUBJECT, message_subject
from insurance_billing.billing.orchestrator import BatchReport, BillingOrchestrator
from insurance_billing.config.models import BillingServiceConfig
from insurance_billing.db.connection import create_engine_from_config
from insurance_billing.db.protocol import PolicyStore
from insurance_billing.db.store import SqlPolicyStore
from insurance_billing.documents.factory import create_document_store
from insurance_billing.documents.store import DocumentStore
from insurance_billing.domain.messages import InvoiceGenerationRequested, InvoiceNotification
from insurance_billing.generators.id_generator import IDGenerator
from insurance_billing.transport.client import MessageTransport
from insurance_billing.transport.envelope import MessageEnvelope
from insurance_billing.transport.factory import create_transport
from insurance_billing.utils.clock import Clock, SystemClock

logger = structlog.get_logger()


class BillingService:
    """
    Composition root for the billing pipeline.

    Collaborators not passed in are built from configuration. The service
    owns the transport lifecycle and any engine it created.
    """

    def __init__(
        self,
        config: BillingServiceConfig,
        engine: Engine | None = None,
        store: PolicyStore | None = None,
        documents: DocumentStore | None = None,
        transport: MessageTransport | None = None,
        clock: Clock | None = None,
    ):
        self.config = config
        self.clock = clock or SystemClock()

        needs_engine = store is None or (transport is None and config.transport.backend == "sql")
        self._owns_engine = engine is None and needs_engine
        self.engine = engine
        if self._owns_engine:
            self.engine = create_engine_from_config(config.database)

        self.store = store if store is not None else SqlPolicyStore(self.engine)
        self.documents = documents if documents is not None else create_document_store(config.documents)
        self.transport = transport if transport is not None else create_transport(config.transport, self.engine)

        self.generator = InvoiceGenerator(
            store=self.store,
            documents=self.documents,
            id_generator=IDGenerator.from_seed(config.seed),
            clock=self.clock,
            config=config.billing,
        )
        self.orchestrator = BillingOrchestrator(self.store, self.generator, self.clock)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open(self) -> "BillingService":
        if not self.transport.is_open:
            self.transport.open()
        return self

    def close(self) -> None:
        self.transport.close()
        if self._owns_engine and self.engine is not None:
            self.engine.dispose()

    def __enter__(self) -> "BillingService":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def notification_queue(self) -> str:
        return self.config.transport.invoice_notification_queue

    @property
    def generation_queue(self) -> str:
        return self.config.transport.invoice_generation_queue

    # =========================================================================
    # Operations
    # =========================================================================

    def run_monthly_batch(self) -> BatchReport:
        """
        Run the monthly batch and enqueue its notifications.

        A notification that cannot be sent is logged and does not stop the
        remaining sends.
        """
        report = self.orchestrator.run_monthly_batch_report()
        send_failures = 0
        for notification in report.notifications:
            try:
                self.transport.send(notification, self.notification_queue, subject=BATCH_MESSAGE_SUBJECT)
            except Exception as e:
                send_failures += 1
                logger.error(
                    "notification_send_failed",
                    invoice_id=str(notification.invoice_id),
                    error=str(e),
                )
        logger.info(
            "batch_notifications_sent",
            sent=report.generated - send_failures,
            failed=send_failures,
        )
        return report

    def process_policy(
        self,
        policy_id: UUID,
        period_start: date | datetime | None = None,
        period_end: date | datetime | None = None,
    ) -> InvoiceNotification | None:
        """Invoice one policy and enqueue its notification. Errors propagate."""
        notification = self.orchestrator.process_single_insurance(policy_id, period_start, period_end)
        if notification is not None:
            self.transport.send(notification, self.notification_queue, subject=message_subject(policy_id))
        return notification

    def handle_request(self, message: InvoiceGenerationRequested) -> InvoiceNotification | None:
        return self.process_policy(
            message.policy_id,
            message.billing_period_start,
            message.billing_period_end,
        )

    def request_invoice(
        self,
        policy_id: UUID,
        period_start: datetime | None = None,
        period_end: datetime | None = None,
    ) -> MessageEnvelope:
        """Enqueue an on-demand invoice generation request."""
        message = InvoiceGenerationRequested(
            policy_id=policy_id,
            billing_period_start=period_start,
            billing_period_end=period_end,
        )
        envelope = self.transport.send(message, self.generation_queue)
        logger.info("invoice_requested", policy_id=str(policy_id), message_id=envelope.message_id)
        return envelope
