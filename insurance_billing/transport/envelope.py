"""
Message envelope: the unit the transport stores and delivers.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic_core import PydanticSerializationError

from insurance_billing.domain.messages import (
    InvoiceGenerationRequested,
    InvoiceNotification,
    decode_message,
)
from insurance_billing.errors import PermanentError

DEAD_LETTER_SUFFIX = "/$deadletter"


def dead_letter_destination(destination: str) -> str:
    """Sub-queue holding messages that could not be processed."""
    return f"{destination}{DEAD_LETTER_SUFFIX}"


@dataclass(frozen=True)
class MessageEnvelope:
    """
    A serialized message addressed to a destination.

    body is the camelCase JSON of the message; delivery_count is the number
    of times the message has been handed to a receiver.
    """

    message_id: str
    message_type: str
    schema_version: int
    destination: str
    body: str
    created_at: datetime
    subject: str | None = None
    delivery_count: int = 0
    lock_token: str | None = None

    def decode(self, default_type: str | None = None) -> InvoiceGenerationRequested | InvoiceNotification:
        """Parse the body into its message variant."""
        return decode_message(self.body, default_type=default_type)

    def redelivered(self, lock_token: str | None = None) -> "MessageEnvelope":
        """Copy handed out on another delivery."""
        return replace(self, delivery_count=self.delivery_count + 1, lock_token=lock_token)

    def to_dict(self) -> dict[str, Any]:
        """Plain dict representation for JSON serialization (json_file/log backends)."""
        return {
            "messageId": self.message_id,
            "messageType": self.message_type,
            "schemaVersion": self.schema_version,
            "destination": self.destination,
            "subject": self.subject,
            "createdAt": self.created_at.isoformat(),
            "deliveryCount": self.delivery_count,
            "body": self.body,
        }


def default_message_id(message: InvoiceGenerationRequested | InvoiceNotification) -> str:
    """Notifications reuse the invoice id so brokers can detect duplicates."""
    if isinstance(message, InvoiceNotification):
        return str(message.invoice_id)
    return uuid4().hex


def create_envelope(
    message: InvoiceGenerationRequested | InvoiceNotification,
    destination: str,
    subject: str | None = None,
    message_id: str | None = None,
    created_at: datetime | None = None,
) -> MessageEnvelope:
    """
    Serialize a message into an envelope.

    Args:
        message: Message to send
        destination: Queue name
        subject: Broker-visible subject line
        message_id: Explicit id (defaults per message type)
        created_at: Enqueue time (defaults to now, UTC)

    Returns:
        MessageEnvelope

    Raises:
        PermanentError: If the message cannot be serialized
    """
    try:
        body = message.to_json()
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise PermanentError(
            "Message could not be serialized",
            message_type=getattr(message, "message_type", type(message).__name__),
        ) from e

    return MessageEnvelope(
        message_id=message_id or default_message_id(message),
        message_type=message.message_type,
        schema_version=message.schema_version,
        destination=destination,
        body=body,
        created_at=created_at or datetime.now(timezone.utc),
        subject=subject,
    )
