"""
Messages that cross the transport.

The set of message types is closed: every variant carries a literal
message_type tag and a schema_version, and decoding goes through a
discriminated union so an unknown tag or version fails loudly instead of
drifting silently.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from insurance_billing.errors import PermanentError

CURRENT_SCHEMA_VERSION = 1


class _Message(BaseModel):
    """Base for transport messages: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    schema_version: Literal[1] = CURRENT_SCHEMA_VERSION

    def to_json(self) -> str:
        """Serialize using wire (camelCase) field names."""
        return self.model_dump_json(by_alias=True)


class InvoiceGenerationRequested(_Message):
    """Request to invoice a single policy, optionally for an explicit period."""

    message_type: Literal["invoice.generation_requested"] = "invoice.generation_requested"

    policy_id: UUID
    billing_period_start: Optional[datetime] = None
    billing_period_end: Optional[datetime] = None


class InvoiceNotification(_Message):
    """Instruction for a downstream system to tell the customer about an invoice."""

    message_type: Literal["invoice.notification"] = "invoice.notification"

    recipient_email: str
    recipient_name: str
    invoice_id: UUID
    invoice_number: str
    amount: Decimal
    due_date: datetime
    document_url: str
    subject: str
    html_body: str


TransportMessage = Annotated[
    Union[InvoiceGenerationRequested, InvoiceNotification],
    Field(discriminator="message_type"),
]

_message_adapter: TypeAdapter[TransportMessage] = TypeAdapter(TransportMessage)


def decode_message(
    body: str | bytes,
    default_type: str | None = None,
) -> InvoiceGenerationRequested | InvoiceNotification:
    """
    Parse a message body into its variant.

    Args:
        body: JSON body as produced by to_json()
        default_type: Message type to assume when the body has no messageType
                     (producers that send the bare payload schema)

    Returns:
        The decoded message

    Raises:
        PermanentError: If the body is malformed, untagged, or has an
                        unsupported type or schema version
    """
    try:
        if default_type is not None:
            raw = TypeAdapter(dict).validate_json(body)
            raw.setdefault("messageType", default_type)
            return _message_adapter.validate_python(raw)
        return _message_adapter.validate_json(body)
    except ValidationError as e:
        raise PermanentError(
            "Undecodable message",
            errors=e.error_count(),
            detail=e.errors(include_url=False)[0]["msg"] if e.errors() else "",
        ) from e
