"""
Billing orchestrator.

Decides which policies are invoiced for which period. Two entry points:

- run_monthly_batch: every Active policy for the next calendar month.
  Per-policy failures are recorded and never stop the batch.
- process_single_insurance: one policy for an explicit or default period,
  prorated. Failures propagate so the queue worker can retry or
  dead-letter the request.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

import structlog

from insurance_billing.billing.invoice_generator import InvoiceGenerator
from insurance_billing.billing.proration import calculate_prorated_amount, round_money
from insurance_billing.db.protocol import PolicyStore
from insurance_billing.domain.messages import InvoiceGenerationRequested, InvoiceNotification
from insurance_billing.domain.policy import Policy
from insurance_billing.errors import BillingValidationError, NotFoundError
from insurance_billing.instrumentation import instrumented
from insurance_billing.result import Failure, Result
from insurance_billing.utils.clock import Clock, SystemClock
from insurance_billing.utils.time_conversion import (
    as_date,
    last_of_month,
    next_month_window,
    overlap,
)

logger = structlog.get_logger()


@dataclass
class BatchReport:
    """Outcome of one monthly batch run."""

    window_start: date
    window_end: date
    results: dict[UUID, Result[InvoiceNotification]] = field(default_factory=dict)
    listing_failure: Failure | None = None

    @property
    def notifications(self) -> list[InvoiceNotification]:
        return [r.value for r in self.results.values() if r.ok and r.value is not None]

    @property
    def failures(self) -> dict[UUID, Failure]:
        return {pid: r.failure for pid, r in self.results.items() if r.failure is not None}

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def generated(self) -> int:
        """Notifications issued, including re-issues for already invoiced periods."""
        return len(self.notifications)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results.values() if r.ok and r.value is None)

    def summary(self) -> dict[str, object]:
        return {
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "processed": self.processed,
            "generated": self.generated,
            "skipped": self.skipped,
            "failed": len(self.failures),
            "listing_failed": self.listing_failure is not None,
        }


class BillingOrchestrator:
    """
    Selects policies and billing periods and delegates to the InvoiceGenerator.

    Usage:
        orchestrator = BillingOrchestrator(store, generator)
        notifications = orchestrator.run_monthly_batch()
    """

    def __init__(
        self,
        store: PolicyStore,
        generator: InvoiceGenerator,
        clock: Clock | None = None,
    ):
        self.store = store
        self.generator = generator
        self.clock = clock or SystemClock()

    # =========================================================================
    # Monthly batch
    # =========================================================================

    def run_monthly_batch(self) -> list[InvoiceNotification]:
        """
        Invoice every Active policy for the next calendar month.

        Returns:
            Notifications for the invoices created; never raises
        """
        return self.run_monthly_batch_report().notifications

    @instrumented("orchestrate")
    def run_monthly_batch_report(self) -> BatchReport:
        """
        Run the monthly batch and report per-policy outcomes.

        Returns:
            BatchReport with one Result per Active policy
        """
        window_start, window_end = next_month_window(self.clock.today())
        report = BatchReport(window_start=window_start, window_end=window_end)
        log = logger.bind(window_start=window_start.isoformat(), window_end=window_end.isoformat())
        log.info("batch_started")

        try:
            policies = self.store.list_active_policies()
        except Exception as e:
            report.listing_failure = Result.from_exception(e).failure
            log.error("batch_policy_listing_failed", error=str(e))
            return report

        for policy in policies:
            try:
                notification = self._bill_for_window(policy, window_start, window_end)
                report.results[policy.policy_id] = Result.success(notification)
            except Exception as e:
                result = Result.from_exception(e, policy_id=str(policy.policy_id))
                report.results[policy.policy_id] = result
                log.error(
                    "batch_policy_failed",
                    policy_id=str(policy.policy_id),
                    error_kind=result.failure.kind.value,
                    error=str(e),
                )

        log.info("batch_completed", **report.summary())
        return report

    def _bill_for_window(
        self,
        policy: Policy,
        window_start: date,
        window_end: date,
    ) -> InvoiceNotification | None:
        effective = overlap(policy.start_date, policy.end_date, window_start, window_end)
        if effective is None:
            logger.debug("policy_outside_billing_window", policy_id=str(policy.policy_id))
            return None
        period_start, period_end = effective

        prices = self.store.get_active_coverage_prices(policy.policy_id, period_start, period_end)
        # Full monthly price, not prorated to the overlap
        amount = round_money(sum(prices, Decimal("0")))
        if amount <= 0:
            logger.debug("policy_amount_zero", policy_id=str(policy.policy_id))
            return None

        return self.generator.generate_invoice(policy.policy_id, period_start, period_end, amount)

    # =========================================================================
    # Single policy
    # =========================================================================

    @instrumented("orchestrate")
    def process_single_insurance(
        self,
        policy_id: UUID,
        period_start: date | datetime | None = None,
        period_end: date | datetime | None = None,
    ) -> InvoiceNotification | None:
        """
        Invoice one policy, prorating its coverages over the period.

        Args:
            policy_id: Policy to invoice
            period_start: First billed day (defaults to today, UTC)
            period_end: Last billed day (defaults to the last day of the
                        current month, UTC)

        Returns:
            Notification for the new or already existing invoice, or None
            when nothing is owed

        Raises:
            BillingValidationError: The period is inverted, including a
                supplied start after the current month with no end
            BillingError: Any other failure; the caller decides on retry
        """
        start = as_date(period_start) if period_start is not None else self.clock.today()
        end = as_date(period_end) if period_end is not None else last_of_month(self.clock.today())
        log = logger.bind(
            policy_id=str(policy_id),
            period_start=start.isoformat(),
            period_end=end.isoformat(),
        )

        if start > end:
            raise BillingValidationError(
                "Billing period start is after its end",
                policy_id=str(policy_id),
                period_start=start.isoformat(),
                period_end=end.isoformat(),
            )

        if self.store.get_policy(policy_id) is None:
            raise NotFoundError("Policy not found", policy_id=str(policy_id))

        prices = self.store.get_active_coverage_prices(policy_id, start, end)
        amount = calculate_prorated_amount(prices, start, end)
        if amount <= 0:
            log.info("policy_amount_zero")
            return None

        log.info("single_policy_billing", amount=str(amount), coverages=len(prices))
        return self.generator.generate_invoice(policy_id, start, end, amount)

    def handle_request(self, message: InvoiceGenerationRequested) -> InvoiceNotification | None:
        """Process an invoice generation request from the queue."""
        return self.process_single_insurance(
            message.policy_id,
            message.billing_period_start,
            message.billing_period_end,
        )
