"""
Message transport client.

MessageTransport owns a backend and a registry of per-destination channels.
Channels are created lazily under a lock and live until the client is
closed:

    with create_transport(config.transport, engine) as transport:
        transport.send(notification, "invoice-email", subject="...")
"""

import threading
from typing import Iterable

import structlog

from insurance_billing.config.validation import ConfigurationError
from insurance_billing.domain.messages import InvoiceGenerationRequested, InvoiceNotification
from insurance_billing.instrumentation import instrumented
from insurance_billing.transport.backend import ReceivingBackend, TransportBackend
from insurance_billing.transport.envelope import MessageEnvelope, create_envelope

logger = structlog.get_logger()

Message = InvoiceGenerationRequested | InvoiceNotification


class DestinationChannel:
    """Sender bound to one destination."""

    def __init__(self, destination: str, backend: TransportBackend) -> None:
        self.destination = destination
        self._backend = backend
        self.sent_count = 0

    def send(self, envelope: MessageEnvelope) -> None:
        self._backend.send(envelope)
        self.sent_count += 1

    def send_batch(self, envelopes: list[MessageEnvelope]) -> None:
        if not envelopes:
            return
        self._backend.send_batch(self.destination, envelopes)
        self.sent_count += len(envelopes)


class MessageTransport:
    """
    Explicitly owned transport client.

    Send failures raise TransientInfrastructureError (from the backend);
    messages that cannot be serialized raise PermanentError.
    """

    def __init__(self, backend: TransportBackend) -> None:
        self._backend = backend
        self._channels: dict[str, DestinationChannel] = {}
        self._lock = threading.Lock()
        self._open = False
        self._closed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open(self) -> "MessageTransport":
        if self._closed:
            raise RuntimeError("Transport has been closed")
        self._open = True
        return self

    def close(self) -> None:
        if self._closed:
            return
        with self._lock:
            self._channels.clear()
        self._backend.flush()
        self._backend.close()
        self._open = False
        self._closed = True
        logger.debug("transport_closed", stats=self._backend.stats)

    def __enter__(self) -> "MessageTransport":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def backend(self) -> TransportBackend:
        return self._backend

    def _ensure_open(self) -> None:
        if not self._open:
            raise RuntimeError("Transport is not open")

    # =========================================================================
    # Sending
    # =========================================================================

    def channel(self, destination: str) -> DestinationChannel:
        """Get or create the channel for a destination."""
        self._ensure_open()
        with self._lock:
            channel = self._channels.get(destination)
            if channel is None:
                channel = DestinationChannel(destination, self._backend)
                self._channels[destination] = channel
                logger.debug("transport_channel_created", destination=destination)
            return channel

    @instrumented("send")
    def send(
        self,
        message: Message,
        destination: str,
        subject: str | None = None,
        message_id: str | None = None,
    ) -> MessageEnvelope:
        """
        Send one message.

        Args:
            message: Tagged message variant
            destination: Queue name
            subject: Broker-visible subject line
            message_id: Explicit message id

        Returns:
            The envelope that was enqueued
        """
        envelope = create_envelope(message, destination, subject=subject, message_id=message_id)
        self.channel(destination).send(envelope)
        logger.debug(
            "message_enqueued",
            destination=destination,
            message_id=envelope.message_id,
            message_type=envelope.message_type,
        )
        return envelope

    def send_many(
        self,
        messages: Iterable[Message],
        destination: str,
        subject: str | None = None,
    ) -> list[MessageEnvelope]:
        """Send messages to one destination as a batch."""
        envelopes = [create_envelope(m, destination, subject=subject) for m in messages]
        self.channel(destination).send_batch(envelopes)
        if envelopes:
            logger.info("message_batch_enqueued", destination=destination, count=len(envelopes))
        return envelopes

    # =========================================================================
    # Receiving
    # =========================================================================

    @property
    def supports_receive(self) -> bool:
        return isinstance(self._backend, ReceivingBackend)

    def _receiver(self) -> ReceivingBackend:
        self._ensure_open()
        if not self.supports_receive:
            raise ConfigurationError(
                f"Transport backend {type(self._backend).__name__} cannot receive messages"
            )
        return self._backend  # type: ignore[return-value]

    def receive(self, destination: str, max_messages: int = 1) -> list[MessageEnvelope]:
        return self._receiver().receive(destination, max_messages)

    def complete(self, envelope: MessageEnvelope) -> None:
        self._receiver().complete(envelope)

    def abandon(self, envelope: MessageEnvelope) -> None:
        self._receiver().abandon(envelope)

    def dead_letter(self, envelope: MessageEnvelope, reason: str) -> None:
        self._receiver().dead_letter(envelope, reason)

    @property
    def stats(self) -> dict[str, int]:
        stats = dict(self._backend.stats)
        stats["channels"] = len(self._channels)
        return stats
