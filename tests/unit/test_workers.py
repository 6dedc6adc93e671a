"""
Tests for the queue workers and the billing service they drive.
"""

import json
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from insurance_billing.errors import TransientInfrastructureError
from insurance_billing.service import BillingService
from insurance_billing.transport.client import MessageTransport
from insurance_billing.transport.envelope import MessageEnvelope, dead_letter_destination
from insurance_billing.transport.implementations.memory import InMemoryTransport
from insurance_billing.workers.invoice_requests import InvoiceRequestWorker
from insurance_billing.workers.notifications import NotificationWorker


@pytest.fixture
def service(test_config, memory_store, documents, fixed_clock):
    service = BillingService(
        test_config,
        store=memory_store,
        documents=documents,
        transport=MessageTransport(InMemoryTransport()),
        clock=fixed_clock,
    )
    service.open()
    yield service
    service.close()


@pytest.fixture
def request_worker(service) -> InvoiceRequestWorker:
    return InvoiceRequestWorker(service, poll_interval_seconds=0.1)


@pytest.fixture
def notification_worker(service) -> NotificationWorker:
    return NotificationWorker(service.transport, service.notification_queue)


def _send_raw(service: BillingService, destination: str, body: str) -> None:
    """Enqueue a body that did not come from create_envelope."""
    service.transport.backend.send(
        MessageEnvelope(
            message_id=uuid4().hex,
            message_type="unknown",
            schema_version=1,
            destination=destination,
            body=body,
            created_at=datetime(2025, 6, 10),
        )
    )


# =============================================================================
# Invoice request worker
# =============================================================================


class TestInvoiceRequestWorker:
    def test_configured_from_service(self, request_worker, service):
        assert request_worker.destination == "invoice-generation"
        assert request_worker.max_delivery_attempts == 3
        assert request_worker.batch_size == service.config.transport.receive_batch_size
        assert request_worker.poll_interval_seconds == 0.1

    def test_request_produces_notification(self, request_worker, service, memory_store, make_policy):
        policy = make_policy(memory_store)
        service.request_invoice(policy.policy_id)

        assert request_worker.run_once() == 1

        [envelope] = service.transport.backend.peek(service.notification_queue)
        assert envelope.subject == f"Invoice Notification for Insurance {policy.policy_id}"
        notification = envelope.decode()
        assert notification.amount == Decimal("210.00")
        assert envelope.message_id == str(notification.invoice_id)
        assert request_worker.get_stats() == {"received": 1, "notifications_issued": 1, "completed": 1}

    def test_repeat_request_reissues_same_notification(
        self, request_worker, service, memory_store, make_policy
    ):
        policy = make_policy(memory_store)
        service.request_invoice(policy.policy_id)
        service.request_invoice(policy.policy_id)

        request_worker.run_once()

        backend = service.transport.backend
        assert len(memory_store.list_invoices(policy.policy_id)) == 1
        assert len(backend.peek(service.notification_queue)) == 1
        assert backend.stats["duplicates"] == 1
        assert request_worker.get_stats()["notifications_issued"] == 2
        assert request_worker.get_stats()["completed"] == 2

    def test_failed_notification_send_is_retried(self, request_worker, service, memory_store, make_policy):
        policy = make_policy(memory_store)
        service.request_invoice(policy.policy_id)
        backend = service.transport.backend
        deliver = backend.send
        outages = [TransientInfrastructureError("Transport unavailable")]

        def flaky_send(envelope):
            if envelope.destination == service.notification_queue and outages:
                raise outages.pop()
            deliver(envelope)

        with patch.object(backend, "send", side_effect=flaky_send):
            request_worker.run_once()
            request_worker.run_once()

        [invoice] = memory_store.list_invoices(policy.policy_id)
        [envelope] = backend.peek(service.notification_queue)
        assert envelope.decode().invoice_id == invoice.invoice_id
        assert request_worker.get_stats() == {
            "received": 2,
            "abandoned": 1,
            "notifications_issued": 1,
            "completed": 1,
        }

    def test_unknown_policy_is_dead_lettered(self, request_worker, service):
        envelope = service.request_invoice(uuid4())

        request_worker.run_once()

        backend = service.transport.backend
        assert backend.peek(service.generation_queue) == []
        assert len(backend.peek(dead_letter_destination(service.generation_queue))) == 1
        assert backend.dead_letter_reason(envelope.message_id).startswith("NotFound")
        assert request_worker.get_stats()["dead_lettered"] == 1

    def test_transient_failure_retries_then_dead_letters(
        self, request_worker, service, memory_store, make_policy
    ):
        policy = make_policy(memory_store)
        envelope = service.request_invoice(policy.policy_id)
        backend = service.transport.backend

        with patch.object(
            memory_store,
            "get_active_coverage_prices",
            side_effect=TransientInfrastructureError("Policy store unavailable"),
        ):
            request_worker.run_once()
            request_worker.run_once()
            assert len(backend.peek(service.generation_queue)) == 1
            request_worker.run_once()

        assert backend.peek(service.generation_queue) == []
        assert backend.dead_letter_reason(envelope.message_id).startswith("TransientInfrastructure")
        assert request_worker.get_stats()["abandoned"] == 2
        assert request_worker.get_stats()["dead_lettered"] == 1

    def test_inverted_period_is_dead_lettered(self, request_worker, service, memory_store, make_policy):
        policy = make_policy(memory_store)
        envelope = service.request_invoice(policy.policy_id, datetime(2025, 6, 30), datetime(2025, 6, 1))

        request_worker.run_once()

        assert service.transport.backend.dead_letter_reason(envelope.message_id).startswith("Validation")

    def test_malformed_body_is_dead_lettered(self, request_worker, service):
        _send_raw(service, service.generation_queue, "{not json")

        request_worker.run_once()

        assert request_worker.get_stats()["dead_lettered"] == 1
        assert request_worker.get_stats().get("completed", 0) == 0

    def test_bare_payload_is_accepted(self, request_worker, service, memory_store, make_policy):
        policy = make_policy(memory_store)
        _send_raw(service, service.generation_queue, json.dumps({"policyId": str(policy.policy_id)}))

        request_worker.run_once()

        assert request_worker.get_stats()["notifications_issued"] == 1

    def test_wrong_message_type_is_dead_lettered(self, request_worker, service, memory_store, make_policy):
        policy = make_policy(memory_store)
        service.process_policy(policy.policy_id)
        [notification] = service.transport.receive(service.notification_queue)
        service.transport.complete(notification)
        _send_raw(service, service.generation_queue, notification.body)

        request_worker.run_once()

        assert request_worker.get_stats()["dead_lettered"] == 1

    def test_run_stops_after_max_batches(self, request_worker):
        stop_event = MagicMock()
        stop_event.is_set.return_value = False
        stop_event.wait.return_value = False

        stats = request_worker.run(stop_event=stop_event, max_batches=2)

        assert stats == {}
        assert stop_event.wait.call_count == 1

    def test_run_survives_receive_failure(self, request_worker, service):
        with patch.object(
            service.transport,
            "receive",
            side_effect=TransientInfrastructureError("Transport unavailable"),
        ):
            request_worker.run(max_batches=1)

        assert request_worker.get_stats() == {}


# =============================================================================
# Notification worker
# =============================================================================


class TestNotificationWorker:
    def test_logs_notifications(self, notification_worker, service, memory_store, make_policy):
        policy = make_policy(memory_store)
        service.process_policy(policy.policy_id)

        assert notification_worker.run_once() == 1

        [received] = notification_worker.received
        assert received.subject.startswith("Your Insurance Invoice #INV-20250610-")
        assert notification_worker.get_stats()["notifications_logged"] == 1
        assert service.transport.backend.peek(service.notification_queue) == []

    def test_request_on_notification_queue_is_dead_lettered(self, notification_worker, service):
        service.request_invoice(uuid4())
        [request] = service.transport.receive(service.generation_queue)
        service.transport.complete(request)
        _send_raw(service, service.notification_queue, request.body)

        notification_worker.run_once()

        assert notification_worker.received == []
        assert notification_worker.get_stats()["dead_lettered"] == 1


# =============================================================================
# Service
# =============================================================================


class TestBillingService:
    def test_batch_sends_notifications(self, service, memory_store, make_policy, fixed_clock):
        fixed_clock.set(datetime(2025, 6, 27))
        make_policy(memory_store)
        make_policy(memory_store)

        report = service.run_monthly_batch()

        envelopes = service.transport.backend.peek(service.notification_queue)
        assert report.generated == 2
        assert len(envelopes) == 2
        assert {e.subject for e in envelopes} == {"Invoice Notification for Insurance"}

    def test_batch_send_failure_does_not_stop_batch(self, service, memory_store, make_policy, fixed_clock):
        fixed_clock.set(datetime(2025, 6, 27))
        make_policy(memory_store)
        make_policy(memory_store)
        original_send = service.transport.backend.send
        calls = []

        def flaky_send(envelope):
            calls.append(envelope)
            if len(calls) == 1:
                raise TransientInfrastructureError("Transport unavailable")
            original_send(envelope)

        with patch.object(service.transport.backend, "send", side_effect=flaky_send):
            report = service.run_monthly_batch()

        assert report.generated == 2
        assert len(calls) == 2
        assert len(service.transport.backend.peek(service.notification_queue)) == 1

    def test_process_policy_send_failure_propagates(self, service, memory_store, make_policy):
        policy = make_policy(memory_store)

        with patch.object(
            service.transport.backend,
            "send",
            side_effect=TransientInfrastructureError("Transport unavailable"),
        ):
            with pytest.raises(TransientInfrastructureError):
                service.process_policy(policy.policy_id)

    def test_process_policy_nothing_owed(self, service, memory_store, make_policy):
        policy = make_policy(memory_store, prices=())

        assert service.process_policy(policy.policy_id) is None
        assert service.transport.backend.peek(service.notification_queue) == []
