"""
In-memory policy store for tests and local runs.
"""

import threading
from datetime import date
from decimal import Decimal
from uuid import UUID

from insurance_billing.domain.billing import Invoice, InvoiceCreate
from insurance_billing.domain.enums import CoverageStatus
from insurance_billing.domain.policy import Coverage, CoverageLink, Customer, Policy
from insurance_billing.errors import DuplicateInvoiceError, InvoiceNumberConflictError


class InMemoryPolicyStore:
    """
    Policy store held in dictionaries.

    Enforces the same uniqueness rules as the SQL schema: one invoice per
    (policy_id, period_start, period_end) and unique invoice numbers.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.customers: dict[UUID, Customer] = {}
        self.policies: dict[UUID, Policy] = {}
        self.coverages: dict[UUID, Coverage] = {}
        self.links: dict[UUID, CoverageLink] = {}
        self.invoices: dict[UUID, Invoice] = {}

    def add_customer(self, customer: Customer) -> None:
        self.customers[customer.customer_id] = customer

    def add_policy(self, policy: Policy) -> None:
        self.policies[policy.policy_id] = policy

    def add_coverage(self, coverage: Coverage) -> None:
        self.coverages[coverage.coverage_id] = coverage

    def add_coverage_link(self, link: CoverageLink) -> None:
        self.links[link.link_id] = link

    def list_active_policies(self) -> list[Policy]:
        return [p for p in self.policies.values() if p.is_billable]

    def get_policy(self, policy_id: UUID) -> Policy | None:
        return self.policies.get(policy_id)

    def get_customer(self, customer_id: UUID) -> Customer | None:
        return self.customers.get(customer_id)

    def get_active_coverage_prices(
        self,
        policy_id: UUID,
        period_start: date,
        period_end: date,
    ) -> list[Decimal]:
        prices = []
        for link in self.links.values():
            if link.policy_id != policy_id or not link.contributes_to(period_start, period_end):
                continue
            coverage = self.coverages.get(link.coverage_id)
            if coverage is not None and coverage.status == CoverageStatus.ACTIVE:
                prices.append(coverage.price)
        return prices

    def find_invoice(
        self,
        policy_id: UUID,
        period_start: date,
        period_end: date,
    ) -> Invoice | None:
        for invoice in self.invoices.values():
            if (
                invoice.policy_id == policy_id
                and invoice.period_start == period_start
                and invoice.period_end == period_end
            ):
                return invoice
        return None

    def list_invoices(self, policy_id: UUID | None = None) -> list[Invoice]:
        return [
            inv for inv in self.invoices.values()
            if policy_id is None or inv.policy_id == policy_id
        ]

    def add_invoice(self, invoice: InvoiceCreate) -> None:
        with self._lock:
            if self.find_invoice(invoice.policy_id, invoice.period_start, invoice.period_end):
                raise DuplicateInvoiceError(
                    "Invoice already exists for policy and period",
                    policy_id=str(invoice.policy_id),
                    period_start=invoice.period_start.isoformat(),
                    period_end=invoice.period_end.isoformat(),
                )
            if any(inv.invoice_number == invoice.invoice_number for inv in self.invoices.values()):
                raise InvoiceNumberConflictError(
                    "Invoice number already in use",
                    invoice_number=invoice.invoice_number,
                )
            self.invoices[invoice.invoice_id] = Invoice(**invoice.model_dump())
