"""
In-memory transport for unit testing and local runs.
"""

import threading
from collections import deque
from uuid import uuid4

from insurance_billing.errors import TransientInfrastructureError
from insurance_billing.transport.envelope import MessageEnvelope, dead_letter_destination


class InMemoryTransport:
    """
    Queues held in process memory, with receive/complete/abandon semantics.

    Received messages are kept in flight, keyed by lock token, until they
    are settled. Like the SQL queue, a message id that is already queued or
    in flight on the same destination is ignored.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queues: dict[str, deque[MessageEnvelope]] = {}
        self._in_flight: dict[str, MessageEnvelope] = {}
        self._dead_letter_reasons: dict[str, str] = {}
        self._sent = 0
        self._duplicates = 0
        self._batches = 0
        self._completed = 0
        self._abandoned = 0
        self._dead_lettered = 0

    def _queue(self, destination: str) -> deque[MessageEnvelope]:
        return self._queues.setdefault(destination, deque())

    def _is_pending(self, envelope: MessageEnvelope) -> bool:
        queued = (e.message_id for e in self._queue(envelope.destination))
        in_flight = (
            e.message_id for e in self._in_flight.values() if e.destination == envelope.destination
        )
        return envelope.message_id in {*queued, *in_flight}

    def _enqueue(self, envelope: MessageEnvelope) -> None:
        if self._is_pending(envelope):
            self._duplicates += 1
            return
        self._queue(envelope.destination).append(envelope)
        self._sent += 1

    def send(self, envelope: MessageEnvelope) -> None:
        with self._lock:
            self._enqueue(envelope)

    def send_batch(self, destination: str, envelopes: list[MessageEnvelope]) -> None:
        with self._lock:
            for envelope in envelopes:
                self._enqueue(envelope)
            self._batches += 1

    def receive(self, destination: str, max_messages: int = 1) -> list[MessageEnvelope]:
        received = []
        with self._lock:
            queue = self._queue(destination)
            while queue and len(received) < max_messages:
                envelope = queue.popleft().redelivered(lock_token=uuid4().hex)
                self._in_flight[envelope.lock_token] = envelope
                received.append(envelope)
        return received

    def _settle(self, envelope: MessageEnvelope) -> MessageEnvelope:
        settled = self._in_flight.pop(envelope.lock_token or "", None)
        if settled is None:
            raise TransientInfrastructureError(
                "Message lock lost",
                message_id=envelope.message_id,
                destination=envelope.destination,
            )
        return settled

    def complete(self, envelope: MessageEnvelope) -> None:
        with self._lock:
            self._settle(envelope)
            self._completed += 1

    def abandon(self, envelope: MessageEnvelope) -> None:
        with self._lock:
            settled = self._settle(envelope)
            self._queue(settled.destination).append(settled)
            self._abandoned += 1

    def dead_letter(self, envelope: MessageEnvelope, reason: str) -> None:
        with self._lock:
            settled = self._settle(envelope)
            self._queue(dead_letter_destination(settled.destination)).append(settled)
            self._dead_letter_reasons[settled.message_id] = reason
            self._dead_lettered += 1

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    @property
    def stats(self) -> dict[str, int]:
        return {
            "sent": self._sent,
            "duplicates": self._duplicates,
            "batch_count": self._batches,
            "completed": self._completed,
            "abandoned": self._abandoned,
            "dead_lettered": self._dead_lettered,
            "in_flight": len(self._in_flight),
        }

    # ---- Test helpers ----

    def peek(self, destination: str) -> list[MessageEnvelope]:
        """Queued (not in-flight) messages for a destination."""
        with self._lock:
            return list(self._queue(destination))

    def dead_letter_reason(self, message_id: str) -> str | None:
        return self._dead_letter_reasons.get(message_id)

    def clear(self) -> None:
        with self._lock:
            self._queues.clear()
            self._in_flight.clear()
            self._dead_letter_reasons.clear()
