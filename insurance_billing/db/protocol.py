"""
Protocol definition for the policy store.

Defines the contract that both SqlPolicyStore and InMemoryPolicyStore satisfy.
"""

from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from insurance_billing.domain.billing import Invoice, InvoiceCreate
from insurance_billing.domain.policy import Customer, Policy


@runtime_checkable
class PolicyStore(Protocol):
    """
    Persistence operations used by the billing pipeline.

    Implementations raise TransientInfrastructureError when the store is
    unavailable, DuplicateInvoiceError when an invoice for the same
    policy and period already exists, and InvoiceNumberConflictError when
    the invoice number is taken.
    """

    def list_active_policies(self) -> list[Policy]:
        """All policies with status Active."""
        ...

    def get_policy(self, policy_id: UUID) -> Policy | None:
        """Load a policy by id."""
        ...

    def get_customer(self, customer_id: UUID) -> Customer | None:
        """Load a customer by id."""
        ...

    def get_active_coverage_prices(
        self,
        policy_id: UUID,
        period_start: date,
        period_end: date,
    ) -> list[Decimal]:
        """Monthly prices of active coverages whose link is active and overlaps the period."""
        ...

    def find_invoice(
        self,
        policy_id: UUID,
        period_start: date,
        period_end: date,
    ) -> Invoice | None:
        """Existing invoice for the policy and period, if any."""
        ...

    def add_invoice(self, invoice: InvoiceCreate) -> None:
        """Persist a new invoice."""
        ...
