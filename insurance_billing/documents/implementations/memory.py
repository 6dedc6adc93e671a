"""
In-memory document store for unit testing.
"""

from insurance_billing.documents.store import PDF_CONTENT_TYPE, StoredDocument


class InMemoryDocumentStore:
    """
    Keeps documents in a dict for testing and inspection.

    NOT thread-safe by design - intended for single-threaded test use.
    """

    def __init__(self, container_name: str = "invoices", base_url: str = "memory://documents") -> None:
        self._container = container_name
        self._base_url = base_url.rstrip("/")
        self._documents: dict[str, tuple[bytes, str]] = {}
        self._upload_count = 0
        self._delete_count = 0

    def upload(self, name: str, content: bytes, content_type: str = PDF_CONTENT_TYPE) -> StoredDocument:
        self._documents[name] = (content, content_type)
        self._upload_count += 1
        return StoredDocument(
            name=name,
            url=f"{self._base_url}/{self._container}/{name}",
            content_type=content_type,
            size=len(content),
        )

    def delete(self, name: str) -> bool:
        if self._documents.pop(name, None) is None:
            return False
        self._delete_count += 1
        return True

    def get(self, name: str) -> bytes | None:
        entry = self._documents.get(name)
        return entry[0] if entry is not None else None

    @property
    def stats(self) -> dict[str, int]:
        return {
            "upload_count": self._upload_count,
            "delete_count": self._delete_count,
            "stored_documents": len(self._documents),
        }

    # ---- Test helpers ----

    @property
    def names(self) -> list[str]:
        """Names of stored documents."""
        return list(self._documents)

    def content_type_of(self, name: str) -> str | None:
        entry = self._documents.get(name)
        return entry[1] if entry is not None else None

    def clear(self) -> None:
        self._documents.clear()
        self._upload_count = 0
        self._delete_count = 0
