"""
SQLAlchemy-backed policy store.

Reads policies, customers and coverages and writes invoices through
SQLAlchemy Core. Driver errors are translated into the pipeline's error
taxonomy so callers never see SQLAlchemy exceptions.
"""

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Iterator
from uuid import UUID

import structlog
from sqlalchemy import and_, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from insurance_billing.db.schema import (
    coverages,
    customers,
    invoices,
    policies,
    policy_coverages,
)
from insurance_billing.domain.billing import Invoice, InvoiceCreate
from insurance_billing.domain.enums import (
    CoverageLinkStatus,
    CoverageStatus,
    PolicyStatus,
)
from insurance_billing.domain.policy import Coverage, CoverageLink, Customer, Policy
from insurance_billing.errors import (
    DuplicateInvoiceError,
    InvoiceNumberConflictError,
    PermanentError,
    TransientInfrastructureError,
)

logger = structlog.get_logger()


@contextmanager
def translate_errors(operation: str, **context: Any) -> Iterator[None]:
    """
    Re-raise SQLAlchemy failures as TransientInfrastructureError.

    Args:
        operation: Name of the store operation, for logs and error context
        **context: Extra identifiers attached to the error
    """
    try:
        yield
    except SQLAlchemyError as e:
        logger.warning("policy_store_error", operation=operation, error=str(e), **context)
        raise TransientInfrastructureError(
            "Policy store unavailable",
            operation=operation,
            **context,
        ) from e


class SqlPolicyStore:
    """
    Policy store on a relational database.

    Usage:
        store = SqlPolicyStore(engine)
        for policy in store.list_active_policies():
            ...
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    # =========================================================================
    # Reads
    # =========================================================================

    def list_active_policies(self) -> list[Policy]:
        stmt = (
            select(policies)
            .where(policies.c.status == PolicyStatus.ACTIVE.value)
            .order_by(policies.c.start_date, policies.c.policy_id)
        )
        with translate_errors("list_active_policies"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        return [Policy.model_validate(dict(row)) for row in rows]

    def get_policy(self, policy_id: UUID) -> Policy | None:
        stmt = select(policies).where(policies.c.policy_id == policy_id)
        with translate_errors("get_policy", policy_id=str(policy_id)):
            with self.engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        return Policy.model_validate(dict(row)) if row is not None else None

    def get_customer(self, customer_id: UUID) -> Customer | None:
        stmt = select(customers).where(customers.c.customer_id == customer_id)
        with translate_errors("get_customer", customer_id=str(customer_id)):
            with self.engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        return Customer.model_validate(dict(row)) if row is not None else None

    def get_active_coverage_prices(
        self,
        policy_id: UUID,
        period_start: date,
        period_end: date,
    ) -> list[Decimal]:
        """
        Monthly prices of the coverages billable for a policy and period.

        A coverage counts when its link is Active and overlaps the period and
        the coverage itself is Active.
        """
        stmt = (
            select(coverages.c.price)
            .select_from(
                policy_coverages.join(
                    coverages,
                    policy_coverages.c.coverage_id == coverages.c.coverage_id,
                )
            )
            .where(
                and_(
                    policy_coverages.c.policy_id == policy_id,
                    policy_coverages.c.status == CoverageLinkStatus.ACTIVE.value,
                    policy_coverages.c.start_date <= period_end,
                    policy_coverages.c.end_date >= period_start,
                    coverages.c.status == CoverageStatus.ACTIVE.value,
                )
            )
        )
        with translate_errors("get_active_coverage_prices", policy_id=str(policy_id)):
            with self.engine.connect() as conn:
                prices = conn.execute(stmt).scalars().all()
        return [Decimal(str(p)) for p in prices]

    def find_invoice(
        self,
        policy_id: UUID,
        period_start: date,
        period_end: date,
    ) -> Invoice | None:
        stmt = select(invoices).where(
            and_(
                invoices.c.policy_id == policy_id,
                invoices.c.period_start == period_start,
                invoices.c.period_end == period_end,
            )
        )
        with translate_errors("find_invoice", policy_id=str(policy_id)):
            with self.engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        return Invoice.model_validate(dict(row)) if row is not None else None

    def list_invoices(self, policy_id: UUID | None = None) -> list[Invoice]:
        """All invoices, optionally for one policy, oldest first."""
        stmt = select(invoices).order_by(invoices.c.created_at, invoices.c.invoice_number)
        if policy_id is not None:
            stmt = stmt.where(invoices.c.policy_id == policy_id)
        with translate_errors("list_invoices"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        return [Invoice.model_validate(dict(row)) for row in rows]

    def _invoice_number_taken(self, invoice_number: str) -> bool:
        stmt = select(invoices.c.invoice_id).where(invoices.c.invoice_number == invoice_number)
        with translate_errors("add_invoice", invoice_number=invoice_number):
            with self.engine.connect() as conn:
                return conn.execute(stmt).first() is not None

    # =========================================================================
    # Writes
    # =========================================================================

    def add_invoice(self, invoice: InvoiceCreate) -> None:
        """
        Insert an invoice.

        Raises:
            DuplicateInvoiceError: An invoice already exists for the policy
                                   and billing period
            InvoiceNumberConflictError: The invoice number is already taken
            PermanentError: Another constraint rejected the row
            TransientInfrastructureError: The database is unavailable
        """
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(invoices).values(**invoice.model_dump_db()))
        except IntegrityError as e:
            if self.find_invoice(invoice.policy_id, invoice.period_start, invoice.period_end):
                raise DuplicateInvoiceError(
                    "Invoice already exists for policy and period",
                    policy_id=str(invoice.policy_id),
                    period_start=invoice.period_start.isoformat(),
                    period_end=invoice.period_end.isoformat(),
                ) from e
            if self._invoice_number_taken(invoice.invoice_number):
                raise InvoiceNumberConflictError(
                    "Invoice number already in use",
                    invoice_number=invoice.invoice_number,
                    policy_id=str(invoice.policy_id),
                ) from e
            raise PermanentError(
                "Invoice rejected by store constraints",
                invoice_number=invoice.invoice_number,
                policy_id=str(invoice.policy_id),
            ) from e
        except SQLAlchemyError as e:
            raise TransientInfrastructureError(
                "Policy store unavailable",
                operation="add_invoice",
                policy_id=str(invoice.policy_id),
            ) from e

        logger.debug(
            "invoice_persisted",
            invoice_id=str(invoice.invoice_id),
            invoice_number=invoice.invoice_number,
        )

    def add_customer(self, customer: Customer) -> None:
        self._insert(customers, customer.model_dump(), "add_customer")

    def add_policy(self, policy: Policy) -> None:
        data = policy.model_dump()
        data["status"] = policy.status.value
        self._insert(policies, data, "add_policy")

    def add_coverage(self, coverage: Coverage) -> None:
        data = coverage.model_dump()
        data["status"] = coverage.status.value
        self._insert(coverages, data, "add_coverage")

    def add_coverage_link(self, link: CoverageLink) -> None:
        data = link.model_dump()
        data["status"] = link.status.value
        self._insert(policy_coverages, data, "add_coverage_link")

    def _insert(self, table, values: dict, operation: str) -> None:
        with translate_errors(operation):
            with self.engine.begin() as conn:
                conn.execute(insert(table).values(**values))
