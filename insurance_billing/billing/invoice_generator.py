"""
Invoice generator.

Creates the invoice record for a policy and period, renders and stores its
PDF, persists the invoice and returns the customer notification. A period
that is already invoiced yields the notification for the existing invoice,
so a retried request still notifies the customer without a second invoice.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import structlog
from pydantic import ValidationError

from insurance_billing.billing.notification import build_invoice_notification
from insurance_billing.billing.proration import round_money
from insurance_billing.config.models import BillingConfig
from insurance_billing.db.protocol import PolicyStore
from insurance_billing.documents.renderer import render_invoice_pdf
from insurance_billing.documents.store import PDF_CONTENT_TYPE, DocumentStore, invoice_document_name
from insurance_billing.domain.billing import Invoice, InvoiceCreate
from insurance_billing.domain.enums import InvoiceStatus
from insurance_billing.domain.messages import InvoiceNotification
from insurance_billing.domain.policy import Customer
from insurance_billing.errors import (
    BillingValidationError,
    DuplicateInvoiceError,
    InvoiceNumberConflictError,
    NotFoundError,
    PermanentError,
    TransientInfrastructureError,
)
from insurance_billing.generators.id_generator import IDGenerator
from insurance_billing.instrumentation import instrumented
from insurance_billing.utils.clock import Clock, SystemClock
from insurance_billing.utils.time_conversion import add_days

logger = structlog.get_logger()

INVOICE_NUMBER_ATTEMPTS = 3


def invoice_notes(policy_id: UUID, period_start: date, period_end: date) -> str:
    return (
        f"Invoice for insurance {policy_id} for the period "
        f"{period_start:%m/%d/%Y} to {period_end:%m/%d/%Y}"
    )


class InvoiceGenerator:
    """
    Generates one invoice per policy and billing period.

    The uploaded PDF is removed again when the invoice cannot be persisted,
    so a failed generation leaves neither a record nor an orphan document.
    """

    def __init__(
        self,
        store: PolicyStore,
        documents: DocumentStore,
        id_generator: IDGenerator | None = None,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
    ):
        """
        Initialize the generator.

        Args:
            store: Policy store holding policies, customers and invoices
            documents: Document store receiving the PDFs
            id_generator: Source of invoice ids and numbers
            clock: Clock supplying the issue timestamp
            config: Payment terms and presentation settings
        """
        self.store = store
        self.documents = documents
        self.id_generator = id_generator or IDGenerator()
        self.clock = clock or SystemClock()
        self.config = config or BillingConfig()

    @instrumented("generate")
    def generate_invoice(
        self,
        policy_id: UUID,
        period_start: date,
        period_end: date,
        amount: Decimal,
    ) -> InvoiceNotification:
        """
        Generate, store and persist an invoice.

        Args:
            policy_id: Policy to invoice
            period_start: First billed day
            period_end: Last billed day
            amount: Amount owed for the period

        Returns:
            Notification for the new invoice, or for the invoice that already
            covers this policy and period

        Raises:
            NotFoundError: Policy or customer does not exist
            BillingValidationError: Inverted period or negative amount
            TransientInfrastructureError: A store is unavailable, or no free
                invoice number was found
            PermanentError: The document could not be rendered
        """
        log = logger.bind(
            policy_id=str(policy_id),
            period_start=period_start.isoformat(),
            period_end=period_end.isoformat(),
        )

        policy = self.store.get_policy(policy_id)
        if policy is None:
            raise NotFoundError("Policy not found", policy_id=str(policy_id))

        customer = self.store.get_customer(policy.customer_id)
        if customer is None:
            raise NotFoundError(
                "Customer not found",
                policy_id=str(policy_id),
                customer_id=str(policy.customer_id),
            )

        existing = self.store.find_invoice(policy_id, period_start, period_end)
        if existing is not None:
            log.info("invoice_already_exists", invoice_number=existing.invoice_number)
            return self._reissue(customer, existing)

        for attempt in range(1, INVOICE_NUMBER_ATTEMPTS + 1):
            invoice = self._build_invoice(policy_id, period_start, period_end, amount)
            try:
                return self._store_invoice(customer, invoice, log)
            except InvoiceNumberConflictError:
                log.warning("invoice_number_conflict", invoice_number=invoice.invoice_number, attempt=attempt)
                if attempt == INVOICE_NUMBER_ATTEMPTS:
                    raise

    def _store_invoice(self, customer: Customer, invoice: InvoiceCreate, log) -> InvoiceNotification:
        log = log.bind(invoice_id=str(invoice.invoice_id), invoice_number=invoice.invoice_number)

        pdf = render_invoice_pdf(invoice, customer, self.config.currency_symbol)
        document = self.documents.upload(
            invoice_document_name(invoice.invoice_id),
            pdf,
            PDF_CONTENT_TYPE,
        )
        invoice = invoice.model_copy(update={"document_url": document.url})

        try:
            self.store.add_invoice(invoice)
        except DuplicateInvoiceError:
            self._remove_document(document.name, log)
            winner = self.store.find_invoice(invoice.policy_id, invoice.period_start, invoice.period_end)
            if winner is None:
                raise TransientInfrastructureError(
                    "Concurrently created invoice is not readable yet",
                    policy_id=str(invoice.policy_id),
                )
            log.info("invoice_already_exists", reason="concurrent_insert", existing_number=winner.invoice_number)
            return self._reissue(customer, winner)
        except Exception:
            self._remove_document(document.name, log)
            raise

        log.info("invoice_generated", amount=str(invoice.amount), document_url=document.url)
        return self._notification(customer, invoice, document.url)

    def _reissue(self, customer: Customer, invoice: Invoice) -> InvoiceNotification:
        if not invoice.document_url:
            raise PermanentError(
                "Existing invoice has no document",
                invoice_id=str(invoice.invoice_id),
            )
        return self._notification(customer, invoice, invoice.document_url)

    def _build_invoice(
        self,
        policy_id: UUID,
        period_start: date,
        period_end: date,
        amount: Decimal,
    ) -> InvoiceCreate:
        if period_start > period_end:
            raise BillingValidationError(
                "Billing period start is after its end",
                policy_id=str(policy_id),
                period_start=period_start.isoformat(),
                period_end=period_end.isoformat(),
            )
        if amount < 0:
            raise BillingValidationError(
                "Invoice amount must not be negative",
                policy_id=str(policy_id),
                amount=str(amount),
            )

        issued = self.clock.now_utc()
        try:
            return InvoiceCreate(
                invoice_id=self.id_generator.generate_uuid(),
                invoice_number=self.id_generator.generate_invoice_number(issued),
                policy_id=policy_id,
                status=InvoiceStatus.PENDING,
                amount=round_money(Decimal(amount)),
                paid_amount=Decimal("0.00"),
                issued_date=issued,
                due_date=add_days(issued, self.config.payment_terms_days),
                period_start=period_start,
                period_end=period_end,
                notes=invoice_notes(policy_id, period_start, period_end),
                created_at=issued,
            )
        except ValidationError as e:
            raise BillingValidationError(
                "Invoice failed validation",
                policy_id=str(policy_id),
                errors=e.error_count(),
            ) from e

    def _notification(self, customer: Customer, invoice: InvoiceCreate, document_url: str) -> InvoiceNotification:
        return build_invoice_notification(
            customer,
            invoice,
            document_url,
            currency_symbol=self.config.currency_symbol,
            sender_name=self.config.sender_name,
        )

    def _remove_document(self, name: str, log) -> None:
        try:
            self.documents.delete(name)
        except Exception as e:
            # The original failure is re-raised by the caller
            log.warning("invoice_document_cleanup_failed", document=name, error=str(e))
