"""
Log transport: each envelope becomes one structlog event.

Useful for local runs where the notification queue has no consumer.
Envelopes bound for a dead-letter sub-queue are always logged at warning.
"""

from collections import Counter

import structlog

from insurance_billing.transport.envelope import DEAD_LETTER_SUFFIX, MessageEnvelope

logger = structlog.get_logger()


class LogTransport:
    """Send-only backend that records envelope metadata in the log."""

    def __init__(self, level: str = "info") -> None:
        self._level = level.lower()
        self._per_destination: Counter[str] = Counter()
        self._dead_letters = 0

    def _emit(self, envelope: MessageEnvelope) -> None:
        dead_letter = envelope.destination.endswith(DEAD_LETTER_SUFFIX)
        method = "warning" if dead_letter else self._level
        getattr(logger, method, logger.info)(
            "dead_letter_logged" if dead_letter else "message_logged",
            destination=envelope.destination,
            message_id=envelope.message_id,
            message_type=envelope.message_type,
            schema_version=envelope.schema_version,
            subject=envelope.subject,
            body_bytes=len(envelope.body.encode("utf-8")),
        )
        self._per_destination[envelope.destination] += 1
        if dead_letter:
            self._dead_letters += 1

    def send(self, envelope: MessageEnvelope) -> None:
        self._emit(envelope)

    def send_batch(self, destination: str, envelopes: list[MessageEnvelope]) -> None:
        for envelope in envelopes:
            self._emit(envelope)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    @property
    def stats(self) -> dict[str, int]:
        return {
            "log_messages": sum(self._per_destination.values()),
            "destinations": len(self._per_destination),
            "dead_letters": self._dead_letters,
        }
