"""
Base class for queue-triggered workers.

A worker receives envelopes from one destination, decodes them and hands
them to handle(). Settlement follows the failure kind:

- success (or an already-invoiced duplicate): complete
- NotFound, Validation, Permanent: dead-letter at once
- anything else: abandon for redelivery, dead-letter once the delivery
  count reaches max_delivery_attempts
"""

import threading
from abc import ABC, abstractmethod
from typing import Any

import structlog

from insurance_billing.domain.messages import InvoiceGenerationRequested, InvoiceNotification
from insurance_billing.errors import ErrorKind
from insurance_billing.result import Failure, Result
from insurance_billing.transport.client import MessageTransport
from insurance_billing.transport.envelope import MessageEnvelope

logger = structlog.get_logger()

DEAD_LETTER_KINDS = frozenset({ErrorKind.NOT_FOUND, ErrorKind.VALIDATION, ErrorKind.PERMANENT})


class QueueWorker(ABC):
    """
    Abstract base class for queue workers.

    Subclasses implement handle() for one message type.
    """

    # Message type assumed for bodies that carry only the payload fields
    default_type: str | None = None

    def __init__(
        self,
        transport: MessageTransport,
        destination: str,
        max_delivery_attempts: int = 5,
        batch_size: int = 10,
        poll_interval_seconds: float = 5.0,
    ):
        """
        Initialize the worker.

        Args:
            transport: Open transport with a receiving backend
            destination: Queue to consume
            max_delivery_attempts: Deliveries before dead-lettering
            batch_size: Messages fetched per receive call
            poll_interval_seconds: Sleep between empty polls
        """
        self.transport = transport
        self.destination = destination
        self.max_delivery_attempts = max_delivery_attempts
        self.batch_size = batch_size
        self.poll_interval_seconds = poll_interval_seconds

        # Statistics tracking
        self._stats: dict[str, int] = {}

    @abstractmethod
    def handle(self, message: InvoiceGenerationRequested | InvoiceNotification) -> None:
        """Process one decoded message; raise to signal failure."""
        pass

    def increment_stat(self, name: str, value: int = 1) -> None:
        self._stats[name] = self._stats.get(name, 0) + value

    def get_stats(self) -> dict[str, int]:
        return self._stats.copy()

    def process_envelope(self, envelope: MessageEnvelope) -> Result[MessageEnvelope]:
        """
        Decode, handle and settle one envelope.

        Returns:
            Result of handling; failures are settled before returning
        """
        log = logger.bind(
            destination=self.destination,
            message_id=envelope.message_id,
            delivery_count=envelope.delivery_count,
        )
        try:
            message = envelope.decode(default_type=self.default_type)
            self.handle(message)
        except Exception as e:
            result = Result.from_exception(e, message_id=envelope.message_id)
            if result.failure.kind == ErrorKind.DUPLICATE:
                log.info("message_already_processed")
                self.transport.complete(envelope)
                self.increment_stat("completed")
                return Result.success(envelope)
            self._settle_failure(envelope, result.failure, log)
            return result

        self.transport.complete(envelope)
        self.increment_stat("completed")
        log.debug("message_completed")
        return Result.success(envelope)

    def _settle_failure(self, envelope: MessageEnvelope, failure: Failure, log) -> None:
        reason = f"{failure.kind.value}: {failure.message}"
        if failure.kind in DEAD_LETTER_KINDS or envelope.delivery_count >= self.max_delivery_attempts:
            self.transport.dead_letter(envelope, reason)
            self.increment_stat("dead_lettered")
            log.error("message_dead_lettered", error_kind=failure.kind.value, reason=reason)
        else:
            self.transport.abandon(envelope)
            self.increment_stat("abandoned")
            log.warning("message_abandoned", error_kind=failure.kind.value, reason=reason)

    def run_once(self) -> int:
        """
        Receive and process one batch.

        Returns:
            Number of envelopes received
        """
        envelopes = self.transport.receive(self.destination, self.batch_size)
        for envelope in envelopes:
            self.increment_stat("received")
            self.process_envelope(envelope)
        return len(envelopes)

    def run(self, stop_event: threading.Event | None = None, max_batches: int | None = None) -> dict[str, Any]:
        """
        Poll until stopped.

        Args:
            stop_event: Set to stop after the current batch
            max_batches: Stop after this many receive calls

        Returns:
            Worker statistics
        """
        stop_event = stop_event or threading.Event()
        batches = 0
        logger.info("worker_started", worker=type(self).__name__, destination=self.destination)

        while not stop_event.is_set():
            try:
                received = self.run_once()
            except Exception as e:
                logger.error("worker_receive_failed", destination=self.destination, error=str(e))
                received = 0
            batches += 1
            if max_batches is not None and batches >= max_batches:
                break
            if received == 0:
                stop_event.wait(self.poll_interval_seconds)

        logger.info("worker_stopped", worker=type(self).__name__, **self._stats)
        return self.get_stats()
