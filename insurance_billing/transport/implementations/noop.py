"""
No-op transport, selected with `backend: noop` when delivery is disabled.
"""

import structlog

from insurance_billing.transport.envelope import MessageEnvelope

logger = structlog.get_logger()


class NoopTransport:
    """
    Drops every envelope.

    The first dropped envelope per destination is logged at warning, so a
    deployment that silently discards customer notifications is visible.
    """

    def __init__(self) -> None:
        self._discarded: dict[str, int] = {}

    def _discard(self, envelope: MessageEnvelope) -> None:
        seen = self._discarded.get(envelope.destination, 0)
        if seen == 0:
            logger.warning(
                "messages_discarded",
                destination=envelope.destination,
                message_type=envelope.message_type,
            )
        self._discarded[envelope.destination] = seen + 1

    def send(self, envelope: MessageEnvelope) -> None:
        self._discard(envelope)

    def send_batch(self, destination: str, envelopes: list[MessageEnvelope]) -> None:
        for envelope in envelopes:
            self._discard(envelope)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    @property
    def stats(self) -> dict[str, int]:
        return {"discarded": sum(self._discarded.values())}
