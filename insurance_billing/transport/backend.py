"""
Protocols for transport backends.
"""

from typing import Protocol, runtime_checkable

from insurance_billing.transport.envelope import MessageEnvelope


@runtime_checkable
class TransportBackend(Protocol):
    """Protocol for send-side transport backends."""

    def send(self, envelope: MessageEnvelope) -> None:
        """Enqueue a single envelope."""
        ...

    def send_batch(self, destination: str, envelopes: list[MessageEnvelope]) -> None:
        """Enqueue envelopes for one destination."""
        ...

    def flush(self) -> None:
        """Flush any internal buffers."""
        ...

    def close(self) -> None:
        """Close the backend and release resources."""
        ...

    @property
    def stats(self) -> dict[str, int]:
        """Return transport statistics."""
        ...


@runtime_checkable
class ReceivingBackend(TransportBackend, Protocol):
    """
    Backend that can also deliver messages to workers.

    Delivery is at-least-once: a received message stays locked until it is
    completed, abandoned or dead-lettered.
    """

    def receive(self, destination: str, max_messages: int = 1) -> list[MessageEnvelope]:
        """Lock and return up to max_messages visible messages."""
        ...

    def complete(self, envelope: MessageEnvelope) -> None:
        """Remove a processed message."""
        ...

    def abandon(self, envelope: MessageEnvelope) -> None:
        """Release a message for redelivery."""
        ...

    def dead_letter(self, envelope: MessageEnvelope, reason: str) -> None:
        """Move a message to the destination's dead-letter sub-queue."""
        ...
