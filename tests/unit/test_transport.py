"""
Tests for the message transport client, envelopes and backends.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from structlog.testing import capture_logs

from insurance_billing.config.models import TransportConfig
from insurance_billing.config.validation import ConfigurationError
from insurance_billing.domain.messages import InvoiceGenerationRequested, InvoiceNotification
from insurance_billing.errors import PermanentError, TransientInfrastructureError
from insurance_billing.transport.client import MessageTransport
from insurance_billing.transport.envelope import (
    create_envelope,
    dead_letter_destination,
)
from insurance_billing.transport.factory import create_backend, create_transport
from insurance_billing.transport.implementations.json_file import JsonFileTransport
from insurance_billing.transport.implementations.log import LogTransport
from insurance_billing.transport.implementations.memory import InMemoryTransport
from insurance_billing.transport.implementations.noop import NoopTransport

DESTINATION = "invoice-email"


@pytest.fixture
def notification() -> InvoiceNotification:
    return InvoiceNotification(
        recipient_email="jane@example.com",
        recipient_name="Jane Doe",
        invoice_id=uuid4(),
        invoice_number="INV-20250610-3FA85F64",
        amount=Decimal("210.00"),
        due_date=datetime(2025, 7, 10, 9, 30, tzinfo=timezone.utc),
        document_url="memory://documents/invoices/x.pdf",
        subject="Your Insurance Invoice",
        html_body="<p>hi</p>",
    )


# =============================================================================
# Envelopes
# =============================================================================


class TestEnvelope:
    def test_notification_envelope(self, notification):
        envelope = create_envelope(notification, DESTINATION, subject="Invoice Notification for Insurance")

        assert envelope.message_id == str(notification.invoice_id)
        assert envelope.message_type == "invoice.notification"
        assert envelope.schema_version == 1
        assert envelope.destination == DESTINATION
        assert envelope.subject == "Invoice Notification for Insurance"
        assert envelope.delivery_count == 0
        assert envelope.created_at.tzinfo is not None
        assert json.loads(envelope.body)["invoiceNumber"] == "INV-20250610-3FA85F64"

    def test_request_gets_random_id(self):
        request = InvoiceGenerationRequested(policy_id=uuid4())

        first = create_envelope(request, "invoice-generation")
        second = create_envelope(request, "invoice-generation")

        assert first.message_id != second.message_id

    def test_explicit_id(self, notification):
        envelope = create_envelope(notification, DESTINATION, message_id="abc")
        assert envelope.message_id == "abc"

    def test_decode_round_trip(self, notification):
        envelope = create_envelope(notification, DESTINATION)
        assert envelope.decode() == notification

    def test_unserializable_message_is_permanent(self):
        message = MagicMock()
        message.to_json.side_effect = ValueError("bad value")

        with pytest.raises(PermanentError):
            create_envelope(message, DESTINATION)

    def test_redelivered(self, notification):
        envelope = create_envelope(notification, DESTINATION)

        again = envelope.redelivered("token-1").redelivered("token-2")

        assert again.delivery_count == 2
        assert again.lock_token == "token-2"
        assert envelope.delivery_count == 0

    def test_to_dict(self, notification):
        data = create_envelope(notification, DESTINATION, subject="s").to_dict()

        assert data["messageId"] == str(notification.invoice_id)
        assert data["messageType"] == "invoice.notification"
        assert data["subject"] == "s"
        assert data["deliveryCount"] == 0

    def test_dead_letter_destination(self):
        assert dead_letter_destination("invoice-email") == "invoice-email/$deadletter"


# =============================================================================
# Client lifecycle and channels
# =============================================================================


class TestMessageTransport:
    def test_send_requires_open(self, notification):
        transport = MessageTransport(InMemoryTransport())

        with pytest.raises(RuntimeError, match="not open"):
            transport.send(notification, DESTINATION)

    def test_cannot_reopen_after_close(self):
        transport = MessageTransport(InMemoryTransport())
        transport.open()
        transport.close()
        transport.close()

        assert not transport.is_open
        with pytest.raises(RuntimeError):
            transport.open()

    def test_context_manager(self, notification):
        backend = InMemoryTransport()

        with MessageTransport(backend) as transport:
            assert transport.is_open
            transport.send(notification, DESTINATION)

        assert not transport.is_open
        assert len(backend.peek(DESTINATION)) == 1

    def test_one_channel_per_destination(self, memory_transport):
        first = memory_transport.channel(DESTINATION)
        second = memory_transport.channel(DESTINATION)
        other = memory_transport.channel("invoice-generation")

        assert first is second
        assert other is not first
        assert memory_transport.stats["channels"] == 2

    def test_send_returns_envelope(self, memory_transport, notification):
        envelope = memory_transport.send(notification, DESTINATION, subject="subject")

        assert envelope.subject == "subject"
        assert memory_transport.channel(DESTINATION).sent_count == 1
        assert memory_transport.backend.peek(DESTINATION) == [envelope]

    def test_send_many(self, memory_transport, notification):
        requests = [InvoiceGenerationRequested(policy_id=uuid4()) for _ in range(3)]

        envelopes = memory_transport.send_many(requests, "invoice-generation")

        assert len(envelopes) == 3
        assert memory_transport.stats["batch_count"] == 1
        assert memory_transport.stats["sent"] == 3

    def test_send_many_empty(self, memory_transport):
        assert memory_transport.send_many([], DESTINATION) == []
        assert memory_transport.stats["batch_count"] == 0

    def test_backend_failure_propagates(self, notification):
        backend = MagicMock()
        backend.send.side_effect = TransientInfrastructureError("Transport unavailable")
        transport = MessageTransport(backend).open()

        with pytest.raises(TransientInfrastructureError):
            transport.send(notification, DESTINATION)

    def test_receive_on_send_only_backend(self):
        transport = MessageTransport(NoopTransport()).open()

        assert not transport.supports_receive
        with pytest.raises(ConfigurationError):
            transport.receive(DESTINATION)


# =============================================================================
# In-memory backend
# =============================================================================


class TestInMemoryTransport:
    def test_receive_complete(self, memory_transport, notification):
        memory_transport.send(notification, DESTINATION)

        [received] = memory_transport.receive(DESTINATION)
        memory_transport.complete(received)

        assert received.delivery_count == 1
        assert received.lock_token
        assert memory_transport.receive(DESTINATION) == []
        assert memory_transport.stats["completed"] == 1
        assert memory_transport.stats["in_flight"] == 0

    def test_abandon_redelivers(self, memory_transport, notification):
        memory_transport.send(notification, DESTINATION)

        [first] = memory_transport.receive(DESTINATION)
        memory_transport.abandon(first)
        [second] = memory_transport.receive(DESTINATION)

        assert second.message_id == first.message_id
        assert second.delivery_count == 2
        assert second.lock_token != first.lock_token

    def test_settling_twice_loses_lock(self, memory_transport, notification):
        memory_transport.send(notification, DESTINATION)
        [received] = memory_transport.receive(DESTINATION)
        memory_transport.complete(received)

        with pytest.raises(TransientInfrastructureError, match="lock lost"):
            memory_transport.complete(received)

    def test_dead_letter(self, memory_transport, notification):
        backend = memory_transport.backend
        memory_transport.send(notification, DESTINATION)
        [received] = memory_transport.receive(DESTINATION)

        memory_transport.dead_letter(received, "Permanent: bad")

        assert backend.peek(DESTINATION) == []
        [dead] = memory_transport.receive(dead_letter_destination(DESTINATION))
        assert dead.message_id == received.message_id
        assert backend.dead_letter_reason(received.message_id) == "Permanent: bad"

    def test_duplicate_message_id_ignored_while_pending(self, memory_transport, notification):
        backend = memory_transport.backend
        memory_transport.send(notification, DESTINATION)
        memory_transport.send(notification, DESTINATION)
        assert len(backend.peek(DESTINATION)) == 1

        [received] = memory_transport.receive(DESTINATION)
        memory_transport.send(notification, DESTINATION)
        assert backend.peek(DESTINATION) == []

        memory_transport.complete(received)
        memory_transport.send(notification, DESTINATION)
        assert len(backend.peek(DESTINATION)) == 1
        assert memory_transport.stats["duplicates"] == 2

    def test_receive_respects_max_messages(self, memory_transport):
        memory_transport.send_many(
            [InvoiceGenerationRequested(policy_id=uuid4()) for _ in range(5)],
            "invoice-generation",
        )

        assert len(memory_transport.receive("invoice-generation", max_messages=2)) == 2
        assert memory_transport.stats["in_flight"] == 2


# =============================================================================
# Send-only backends
# =============================================================================


class TestJsonFileTransport:
    def test_writes_ndjson_per_destination(self, tmp_path, notification):
        backend = JsonFileTransport(str(tmp_path))
        with MessageTransport(backend) as transport:
            transport.send(notification, DESTINATION, subject="s")
            transport.send_many([InvoiceGenerationRequested(policy_id=uuid4())], "invoice-generation")

        lines = (tmp_path / "invoice-email.ndjson").read_text().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["messageId"] == str(notification.invoice_id)
        assert json.loads(record["body"])["recipientEmail"] == "jane@example.com"
        assert (tmp_path / "invoice-generation.ndjson").exists()

    def test_dead_letter_destination_is_sanitized(self, tmp_path, notification):
        backend = JsonFileTransport(str(tmp_path))
        backend.send(create_envelope(notification, dead_letter_destination(DESTINATION)))
        backend.close()

        assert (tmp_path / "invoice-email_deadletter.ndjson").exists()

    def test_unwritable_directory_is_transient(self, tmp_path, notification):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        backend = JsonFileTransport(str(blocker))

        with pytest.raises(TransientInfrastructureError):
            backend.send(create_envelope(notification, DESTINATION))


class TestLogAndNoopTransports:
    def test_log_transport_records_envelopes(self, notification):
        backend = LogTransport(level="debug")

        with capture_logs() as logs:
            backend.send(create_envelope(notification, DESTINATION, subject="Invoice Notification for Insurance"))
            backend.send_batch(DESTINATION, [create_envelope(notification, DESTINATION)] * 2)

        assert [e["event"] for e in logs] == ["message_logged"] * 3
        first = logs[0]
        assert first["log_level"] == "debug"
        assert first["message_id"] == str(notification.invoice_id)
        assert first["schema_version"] == 1
        assert first["subject"] == "Invoice Notification for Insurance"
        assert first["body_bytes"] > 0
        assert backend.stats == {"log_messages": 3, "destinations": 1, "dead_letters": 0}

    def test_log_transport_warns_on_dead_letters(self, notification):
        backend = LogTransport()

        with capture_logs() as logs:
            backend.send(create_envelope(notification, dead_letter_destination(DESTINATION)))

        [event] = logs
        assert event["event"] == "dead_letter_logged"
        assert event["log_level"] == "warning"
        assert event["destination"] == "invoice-email/$deadletter"
        assert backend.stats["dead_letters"] == 1

    def test_noop_transport_warns_once_per_destination(self, notification):
        backend = NoopTransport()

        with capture_logs() as logs:
            backend.send(create_envelope(notification, DESTINATION))
            backend.send_batch(DESTINATION, [create_envelope(notification, DESTINATION)] * 2)
            backend.send(create_envelope(InvoiceGenerationRequested(policy_id=uuid4()), "invoice-generation"))

        assert [(e["event"], e["destination"]) for e in logs] == [
            ("messages_discarded", DESTINATION),
            ("messages_discarded", "invoice-generation"),
        ]
        assert backend.stats == {"discarded": 4}


# =============================================================================
# Factory
# =============================================================================


class TestFactory:
    @pytest.mark.parametrize(
        "backend_name,expected",
        [
            ("memory", InMemoryTransport),
            ("log", LogTransport),
            ("noop", NoopTransport),
            ("NOOP", NoopTransport),
        ],
    )
    def test_create_backend(self, backend_name, expected):
        assert isinstance(create_backend(TransportConfig(backend=backend_name)), expected)

    def test_unknown_backend_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown transport backend: .kafka."):
            create_backend(TransportConfig(backend="kafka"))

    def test_json_file_backend(self, tmp_path):
        config = TransportConfig(backend="json_file", json_file_output_dir=str(tmp_path))
        assert isinstance(create_backend(config), JsonFileTransport)

    def test_sql_requires_engine(self):
        with pytest.raises(ValueError, match="engine"):
            create_backend(TransportConfig(backend="sql"))

    def test_sql_backend(self, sqlite_engine):
        from insurance_billing.transport.implementations.sql import SqlTransport

        backend = create_backend(TransportConfig(backend="sql"), sqlite_engine)
        assert isinstance(backend, SqlTransport)

    def test_create_transport_is_unopened(self):
        transport = create_transport(TransportConfig(backend="memory"))
        assert not transport.is_open
        assert transport.supports_receive
