"""
Factory for creating document store instances from configuration.
"""

from insurance_billing.config.models import DocumentStoreConfig
from insurance_billing.documents.store import DocumentStore


def create_document_store(config: DocumentStoreConfig) -> DocumentStore:
    """
    Create a document store based on configuration.

    Args:
        config: Document store configuration

    Returns:
        A DocumentStore implementation
    """
    backend = config.backend.lower()

    if backend == "memory":
        from insurance_billing.documents.implementations.memory import InMemoryDocumentStore

        return InMemoryDocumentStore(
            container_name=config.container_name,
            base_url=config.base_url or "memory://documents",
        )

    from insurance_billing.documents.implementations.filesystem import FileSystemDocumentStore

    return FileSystemDocumentStore(
        output_dir=config.output_dir,
        container_name=config.container_name,
        base_url=config.base_url,
    )
