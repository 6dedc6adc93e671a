"""
Core document store abstractions: StoredDocument dataclass and DocumentStore protocol.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

PDF_CONTENT_TYPE = "application/pdf"


@dataclass(frozen=True)
class StoredDocument:
    """A document written to a document store."""

    name: str
    url: str
    content_type: str
    size: int


def invoice_document_name(invoice_id: object) -> str:
    """Blob name of an invoice's PDF."""
    return f"invoice-{invoice_id}.pdf"


@runtime_checkable
class DocumentStore(Protocol):
    """
    Protocol for blob storage backends.

    Upload failures raise TransientInfrastructureError.
    """

    def upload(self, name: str, content: bytes, content_type: str = PDF_CONTENT_TYPE) -> StoredDocument:
        """Store content under name, replacing any existing document."""
        ...

    def delete(self, name: str) -> bool:
        """Remove a document; returns False when it did not exist."""
        ...

    def get(self, name: str) -> bytes | None:
        """Read a document back."""
        ...

    @property
    def stats(self) -> dict[str, int]:
        """Return storage statistics."""
        ...
