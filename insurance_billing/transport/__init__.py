"""
Message transport for the billing pipeline.

Backends:
- sql: durable queue table (default; supports receiving)
- memory: in-process queues (testing; supports receiving)
- json_file: NDJSON files per destination
- log: structlog output
- noop: discard
"""

from insurance_billing.transport.backend import ReceivingBackend, TransportBackend
from insurance_billing.transport.client import DestinationChannel, MessageTransport
from insurance_billing.transport.envelope import (
    MessageEnvelope,
    create_envelope,
    dead_letter_destination,
)
from insurance_billing.transport.factory import create_backend, create_transport

__all__ = [
    "DestinationChannel",
    "MessageEnvelope",
    "MessageTransport",
    "ReceivingBackend",
    "TransportBackend",
    "create_backend",
    "create_envelope",
    "create_transport",
    "dead_letter_destination",
]
