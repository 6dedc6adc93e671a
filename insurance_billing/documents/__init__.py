"""
Document storage and rendering for invoice PDFs.

Backends:
- filesystem: files under a container directory (default)
- memory: in-process dict (testing)
"""

from insurance_billing.documents.factory import create_document_store
from insurance_billing.documents.renderer import format_amount, render_invoice_pdf
from insurance_billing.documents.store import (
    PDF_CONTENT_TYPE,
    DocumentStore,
    StoredDocument,
    invoice_document_name,
)

__all__ = [
    "PDF_CONTENT_TYPE",
    "DocumentStore",
    "StoredDocument",
    "create_document_store",
    "format_amount",
    "invoice_document_name",
    "render_invoice_pdf",
]
