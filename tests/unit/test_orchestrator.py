"""
Tests for the billing orchestrator: monthly batch and single-policy paths.
"""

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from structlog.testing import capture_logs

from insurance_billing.billing.orchestrator import BillingOrchestrator
from insurance_billing.domain.billing import INVOICE_NUMBER_PATTERN
from insurance_billing.domain.enums import CoverageLinkStatus, PolicyStatus
from insurance_billing.domain.messages import InvoiceGenerationRequested
from insurance_billing.errors import (
    BillingValidationError,
    ErrorKind,
    NotFoundError,
    TransientInfrastructureError,
)


@pytest.fixture
def batch_orchestrator(orchestrator, fixed_clock) -> BillingOrchestrator:
    """Orchestrator whose clock sits on the scheduled run day (27 June 2025)."""
    fixed_clock.set(datetime(2025, 6, 27, 0, 0, tzinfo=timezone.utc))
    return orchestrator


# =============================================================================
# Single policy
# =============================================================================


class TestProcessSingleInsurance:
    def test_end_to_end_default_period(self, orchestrator, memory_store, make_policy):
        # Run on 2025-06-10: 21 days of June, 300 * 21 / 30
        policy = make_policy(memory_store, prices=("100.00", "200.00"))

        notification = orchestrator.process_single_insurance(policy.policy_id)

        assert notification is not None
        assert notification.amount == Decimal("210.00")
        assert notification.document_url
        invoice = memory_store.find_invoice(policy.policy_id, date(2025, 6, 10), date(2025, 6, 30))
        assert invoice is not None
        assert re.match(INVOICE_NUMBER_PATTERN, invoice.invoice_number)

    def test_explicit_period(self, orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store)

        notification = orchestrator.process_single_insurance(
            policy.policy_id, date(2025, 6, 15), date(2025, 6, 30)
        )

        assert notification.amount == Decimal("160.00")

    def test_start_without_end_runs_to_current_month_end(self, orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store, prices=("300.00",))

        notification = orchestrator.process_single_insurance(policy.policy_id, date(2025, 6, 21))

        # Clock on 10 June: 21..30 June = 10 days of 30
        assert notification.amount == Decimal("100.00")
        assert memory_store.find_invoice(policy.policy_id, date(2025, 6, 21), date(2025, 6, 30))

    def test_start_after_current_month_without_end_is_rejected(self, orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store, prices=("310.00",))

        with pytest.raises(BillingValidationError) as exc_info:
            orchestrator.process_single_insurance(policy.policy_id, date(2025, 7, 22))

        assert exc_info.value.context["period_end"] == "2025-06-30"
        assert memory_store.invoices == {}

    def test_accepts_datetimes(self, orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store)

        notification = orchestrator.process_single_insurance(
            policy.policy_id,
            datetime(2025, 6, 1, tzinfo=timezone.utc),
            datetime(2025, 6, 30, tzinfo=timezone.utc),
        )

        assert notification.amount == Decimal("300.00")

    def test_zero_amount_returns_none(self, orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store, prices=())

        assert orchestrator.process_single_insurance(policy.policy_id) is None
        assert memory_store.invoices == {}

    def test_inactive_links_do_not_contribute(self, orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store, prices=("100.00", "200.00"))
        first_link = next(iter(memory_store.links.values()))
        memory_store.links[first_link.link_id] = first_link.model_copy(
            update={"status": CoverageLinkStatus.CANCELLED}
        )

        notification = orchestrator.process_single_insurance(
            policy.policy_id, date(2025, 6, 1), date(2025, 6, 30)
        )

        assert notification.amount == Decimal("200.00")

    def test_unknown_policy_propagates(self, orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.process_single_insurance(uuid4())

    def test_inverted_period_propagates(self, orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store)

        with pytest.raises(BillingValidationError):
            orchestrator.process_single_insurance(policy.policy_id, date(2025, 6, 30), date(2025, 6, 1))

    def test_store_failure_propagates(self, orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store)

        with patch.object(
            memory_store,
            "get_active_coverage_prices",
            side_effect=TransientInfrastructureError("Policy store unavailable"),
        ):
            with pytest.raises(TransientInfrastructureError):
                orchestrator.process_single_insurance(policy.policy_id)

    def test_repeat_request_reissues_notification(self, orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store)

        first = orchestrator.process_single_insurance(policy.policy_id)
        second = orchestrator.process_single_insurance(policy.policy_id)

        assert second is not None
        assert second.invoice_id == first.invoice_id
        assert len(memory_store.invoices) == 1

    def test_handle_request(self, orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store)
        message = InvoiceGenerationRequested(
            policy_id=policy.policy_id,
            billing_period_start=datetime(2025, 6, 15),
            billing_period_end=datetime(2025, 6, 30),
        )

        notification = orchestrator.handle_request(message)

        assert notification.amount == Decimal("160.00")


# =============================================================================
# Monthly batch
# =============================================================================


class TestRunMonthlyBatch:
    def test_bills_next_month_at_full_monthly_price(self, batch_orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store, prices=("100.00", "200.00"))

        notifications = batch_orchestrator.run_monthly_batch()

        assert len(notifications) == 1
        assert notifications[0].amount == Decimal("300.00")
        assert memory_store.find_invoice(policy.policy_id, date(2025, 7, 1), date(2025, 7, 31))

    def test_partial_overlap_uses_effective_period(self, batch_orchestrator, memory_store, make_policy):
        policy = make_policy(memory_store, end_date=date(2025, 7, 15))

        notifications = batch_orchestrator.run_monthly_batch()

        assert len(notifications) == 1
        # Summed monthly price, not prorated
        assert notifications[0].amount == Decimal("300.00")
        assert memory_store.find_invoice(policy.policy_id, date(2025, 7, 1), date(2025, 7, 15))

    def test_skips_policy_outside_window(self, batch_orchestrator, memory_store, make_policy):
        make_policy(memory_store, start_date=date(2025, 8, 1), end_date=date(2026, 7, 31))
        make_policy(memory_store, start_date=date(2024, 1, 1), end_date=date(2025, 6, 30))

        assert batch_orchestrator.run_monthly_batch() == []
        assert memory_store.invoices == {}

    def test_skips_zero_amount(self, batch_orchestrator, memory_store, make_policy):
        make_policy(memory_store, prices=())

        report = batch_orchestrator.run_monthly_batch_report()

        assert report.generated == 0
        assert report.skipped == 1
        assert memory_store.invoices == {}

    def test_ignores_inactive_policies(self, batch_orchestrator, memory_store, make_policy):
        make_policy(memory_store, status=PolicyStatus.CANCELLED)
        make_policy(memory_store, status=PolicyStatus.SUSPENDED)

        report = batch_orchestrator.run_monthly_batch_report()

        assert report.processed == 0

    def test_batch_isolation(self, batch_orchestrator, memory_store, make_policy):
        policies = [make_policy(memory_store) for _ in range(3)]
        failing = policies[1].policy_id
        original_add = memory_store.add_invoice

        def flaky_add(invoice):
            if invoice.policy_id == failing:
                raise TransientInfrastructureError("Policy store unavailable", policy_id=str(failing))
            original_add(invoice)

        with patch.object(memory_store, "add_invoice", side_effect=flaky_add), capture_logs() as logs:
            report = batch_orchestrator.run_monthly_batch_report()

        assert len(report.notifications) == 2
        [error] = [e for e in logs if e["log_level"] == "error"]
        assert error["event"] == "batch_policy_failed"
        assert error["policy_id"] == str(failing)
        assert error["error_kind"] == "TransientInfrastructure"
        assert list(report.failures) == [failing]
        failure = report.failures[failing]
        assert failure.kind == ErrorKind.TRANSIENT
        assert failure.retryable
        assert failure.context["policy_id"] == str(failing)

    def test_unexpected_exception_is_contained(self, batch_orchestrator, memory_store, make_policy):
        make_policy(memory_store)

        with patch.object(memory_store, "get_active_coverage_prices", side_effect=RuntimeError("boom")):
            notifications = batch_orchestrator.run_monthly_batch()

        assert notifications == []

    def test_listing_failure_returns_empty(self, batch_orchestrator, memory_store):
        with patch.object(
            memory_store,
            "list_active_policies",
            side_effect=TransientInfrastructureError("Policy store unavailable"),
        ):
            report = batch_orchestrator.run_monthly_batch_report()

        assert report.notifications == []
        assert report.listing_failure.kind == ErrorKind.TRANSIENT

    def test_rerun_creates_no_new_invoices(self, batch_orchestrator, memory_store, make_policy):
        make_policy(memory_store)
        make_policy(memory_store)

        first = batch_orchestrator.run_monthly_batch()
        second = batch_orchestrator.run_monthly_batch()

        assert len(memory_store.invoices) == 2
        assert {n.invoice_id for n in second} == {n.invoice_id for n in first}

    def test_window_in_december_rolls_to_january(self, batch_orchestrator, memory_store, make_policy, fixed_clock):
        fixed_clock.set(datetime(2025, 12, 27, tzinfo=timezone.utc))
        make_policy(memory_store, end_date=date(2026, 12, 31))

        report = batch_orchestrator.run_monthly_batch_report()

        assert report.window_start == date(2026, 1, 1)
        assert report.window_end == date(2026, 1, 31)
        assert report.generated == 1

    def test_summary(self, batch_orchestrator, memory_store, make_policy):
        make_policy(memory_store)
        make_policy(memory_store, prices=())

        summary = batch_orchestrator.run_monthly_batch_report().summary()

        assert summary == {
            "window_start": "2025-07-01",
            "window_end": "2025-07-31",
            "processed": 2,
            "generated": 1,
            "skipped": 1,
            "failed": 0,
            "listing_failed": False,
        }
