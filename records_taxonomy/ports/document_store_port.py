"""
ports/document_store_port.py
──────────────────────────────────────────────────────────────────────────────
Abstract interface for the external document store.

The installer, synchroniser and migration mapper only ever talk to the store
through this Protocol.  Every call is synchronous and blocking; timeouts and
retries are the adapter's concern, never the services'.

Current implementation: PaperlessDocumentStore (requests → paperless-ngx)
To swap: write a new adapter implementing this Protocol and change ONE line
in services/container.py.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from records_taxonomy.domain.models import (
    CustomField,
    Document,
    DocumentType,
    StoragePath,
    Tag,
)


@runtime_checkable
class DocumentStorePort(Protocol):
    """Contract for tag/type/path/field/document CRUD."""

    # ── Create-or-reuse ───────────────────────────────────────────────────

    def get_or_create_tag(self, name: str, color: Optional[str] = None) -> Tag:
        """Return the tag called ``name`` (case-insensitive), creating it if absent."""
        ...

    def get_or_create_document_type(self, name: str) -> DocumentType:
        ...

    def get_or_create_storage_path(self, path: str) -> StoragePath:
        ...

    def create_custom_field(self, name: str, data_type: str) -> CustomField:
        ...

    # ── Delete (used by rollback) ─────────────────────────────────────────

    def delete_tag(self, tag_id: int) -> None: ...

    def delete_document_type(self, type_id: int) -> None: ...

    def delete_storage_path(self, path_id: int) -> None: ...

    def delete_custom_field(self, field_id: int) -> None: ...

    # ── List ──────────────────────────────────────────────────────────────

    def list_tags(self) -> list[Tag]: ...

    def list_document_types(self) -> list[DocumentType]: ...

    def list_storage_paths(self) -> list[StoragePath]: ...

    def list_custom_fields(self) -> list[CustomField]: ...

    # ── Documents ─────────────────────────────────────────────────────────

    def get_documents(self) -> list[Document]:
        """Return every document with type and tag names resolved.

        Raises:
            DocumentStoreError: On transport or HTTP failure.
        """
        ...

    def update_document(self, document_id: int, tags: list[str]) -> Document:
        """Replace a document's tags with the named tags, creating missing ones.

        Raises:
            DocumentStoreError: On transport or HTTP failure.
        """
        ...
