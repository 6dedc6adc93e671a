"""
Filesystem document store: writes documents under a container directory.
"""

import os
from pathlib import Path

import structlog

from insurance_billing.documents.store import PDF_CONTENT_TYPE, StoredDocument
from insurance_billing.errors import TransientInfrastructureError

logger = structlog.get_logger()


class FileSystemDocumentStore:
    """
    Stores documents as files.

    File layout: {output_dir}/{container_name}/{name}
    URLs are {base_url}/{container_name}/{name}, or file:// URIs when no
    base URL is configured.
    """

    def __init__(self, output_dir: str, container_name: str = "invoices", base_url: str = "") -> None:
        self._container = container_name
        self._root = Path(output_dir) / container_name
        self._base_url = base_url.rstrip("/")
        self._upload_count = 0
        self._delete_count = 0

    def _path(self, name: str) -> Path:
        if "/" in name or "\\" in name or name in ("", ".", ".."):
            raise ValueError(f"Invalid document name: {name!r}")
        return self._root / name

    def _url(self, path: Path, name: str) -> str:
        if self._base_url:
            return f"{self._base_url}/{self._container}/{name}"
        return path.resolve().as_uri()

    def upload(self, name: str, content: bytes, content_type: str = PDF_CONTENT_TYPE) -> StoredDocument:
        path = self._path(name)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(content)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.warning("document_upload_failed", name=name, error=str(e))
            raise TransientInfrastructureError(
                "Document store unavailable",
                operation="upload",
                name=name,
            ) from e

        self._upload_count += 1
        return StoredDocument(
            name=name,
            url=self._url(path, name),
            content_type=content_type,
            size=len(content),
        )

    def delete(self, name: str) -> bool:
        path = self._path(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise TransientInfrastructureError(
                "Document store unavailable",
                operation="delete",
                name=name,
            ) from e
        self._delete_count += 1
        return True

    def get(self, name: str) -> bytes | None:
        path = self._path(name)
        if not path.exists():
            return None
        return path.read_bytes()

    @property
    def stats(self) -> dict[str, int]:
        return {
            "upload_count": self._upload_count,
            "delete_count": self._delete_count,
        }
