"""
services/migration.py
──────────────────────────────────────────────────────────────────────────────
MigrationMapper: move documents from legacy flat document types onto
hierarchical Function/Service/Activity tags.

Each document's flat type is looked up in the entity type's mapping table:

  no mapping                          → failed
  AMBIGUOUS or low confidence         → manual  (failed if no alternatives)
  anything else                       → automatic; the path's segments are
                                        applied to the document as tags

Per-document problems are recorded in the run's audit log and never abort
the batch.  Only structural problems (e.g. a missing mapping table) raise.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from records_taxonomy.config.constants import PATH_SEPARATOR
from records_taxonomy.domain.exceptions import MigrationNotRunError
from records_taxonomy.domain.models import (
    Document,
    DocumentMappingEntry,
    MigrationMapping,
    MigrationMethod,
    MigrationResult,
    ReviewCandidate,
)
from records_taxonomy.ports.audit_port import AuditSinkPort
from records_taxonomy.ports.document_store_port import DocumentStorePort
from records_taxonomy.ports.taxonomy_source_port import MappingSourcePort

logger = logging.getLogger(__name__)

UNKNOWN_TYPE = "unknown"

# Receives the document and its alternative paths; returns the chosen path,
# or None to skip the document.
Chooser = Callable[[Document, list[str]], Optional[str]]


class MigrationMapper:
    """Flat → hierarchical migration for one entity type.

    Inject via services/container.py — do not instantiate directly in
    application code.

    Args:
        store:       Document store holding the documents to migrate.
        mappings:    Source of ``<entity_type>`` mapping tables.
        audit:       Where each run's result is persisted; optional.
        entity_type: Mapping table loaded on first use.
    """

    def __init__(
        self,
        store: DocumentStorePort,
        mappings: MappingSourcePort,
        audit: Optional[AuditSinkPort] = None,
        entity_type: str = "household",
    ) -> None:
        self._store = store
        self._mappings = mappings
        self._audit = audit
        self._entity_type = entity_type
        self._index: Optional[dict[str, MigrationMapping]] = None
        self._status: Optional[MigrationResult] = None

    # ── Mapping table ──────────────────────────────────────────────────────

    def load_mapping_table(self, entity_type: Optional[str] = None) -> list[MigrationMapping]:
        """Load and index a mapping table, replacing any previously loaded one.

        Raises:
            MappingTableError: When the table is missing or malformed.
        """
        if entity_type:
            self._entity_type = entity_type
        mappings = self._mappings.load_mappings(self._entity_type)
        self._index = {m.flat_type.lower(): m for m in mappings}
        logger.info(
            "Mapping table loaded | entity_type=%s mappings=%d",
            self._entity_type, len(mappings),
        )
        return mappings

    def get_mapping(self, flat_type: str) -> Optional[MigrationMapping]:
        return self._table().get(flat_type.strip().lower())

    # ── Migration ──────────────────────────────────────────────────────────

    def migrate_document(self, document_id: int) -> DocumentMappingEntry:
        doc = self._find_document(document_id)
        if doc is None:
            return DocumentMappingEntry(
                document_id=document_id,
                original_type=UNKNOWN_TYPE,
                method=MigrationMethod.FAILED,
                error="Document not found",
            )
        return self._migrate(doc)

    def migrate_all_documents(self) -> MigrationResult:
        """Migrate every document in the store and persist the run.

        ``auto_mapped + manual_review + failed == total_documents`` always
        holds; the log lists one entry per document in processing order.
        """
        self._table()
        docs = self._store.get_documents()
        logger.info("Migrating %d documents (%s)", len(docs), self._entity_type)

        log: list[DocumentMappingEntry] = []
        counts = {method: 0 for method in MigrationMethod}
        for doc in docs:
            entry = self._migrate(doc)
            log.append(entry)
            counts[entry.method] += 1

        result = MigrationResult(
            total_documents=len(docs),
            auto_mapped=counts[MigrationMethod.AUTOMATIC],
            manual_review=counts[MigrationMethod.MANUAL],
            failed=counts[MigrationMethod.FAILED],
            mapping_log=log,
        )
        self._status = result
        if self._audit is not None:
            self._audit.save_migration(result)

        logger.info(
            "Migration complete | total=%d automatic=%d manual=%d failed=%d",
            result.total_documents, result.auto_mapped,
            result.manual_review, result.failed,
        )
        return result

    def get_migration_status(self) -> MigrationResult:
        """Result of the last run in this session.

        Raises:
            MigrationNotRunError: Before migrate_all_documents() has run.
        """
        if self._status is None:
            raise MigrationNotRunError(
                "Migration not run yet. Call migrate_all_documents() first."
            )
        return self._status

    # ── Manual review ──────────────────────────────────────────────────────

    def get_documents_for_manual_review(self) -> list[ReviewCandidate]:
        """Documents the latest run left for manual review, with their alternatives.

        Uses this session's run, or else the latest run in the audit sink.

        Raises:
            MigrationNotRunError: When no run exists anywhere.
        """
        status = self._latest_run()
        pending = [
            e for e in status.mapping_log
            if e.method == MigrationMethod.MANUAL and not e.new_path
        ]
        if not pending:
            return []

        docs = {d.id: d for d in self._store.get_documents()}
        candidates: list[ReviewCandidate] = []
        for entry in pending:
            doc = docs.get(entry.document_id)
            if doc is None:
                continue
            mapping = self.get_mapping(entry.original_type)
            candidates.append(ReviewCandidate(
                document=doc,
                alternatives=list(mapping.alternatives) if mapping else [],
            ))
        return candidates

    def prompt_manual_review(self, document_id: int, chooser: Chooser) -> DocumentMappingEntry:
        """Ask ``chooser`` for a path and apply it as a manual migration.

        No selection leaves the document untouched and records a failure.
        """
        doc = self._find_document(document_id)
        if doc is None:
            return DocumentMappingEntry(
                document_id=document_id,
                original_type=UNKNOWN_TYPE,
                method=MigrationMethod.FAILED,
                error="Document not found",
            )

        original_type = doc.document_type or UNKNOWN_TYPE
        mapping = self.get_mapping(original_type)
        selected = chooser(doc, list(mapping.alternatives) if mapping else [])

        if not selected:
            return DocumentMappingEntry(
                document_id=document_id,
                original_type=original_type,
                method=MigrationMethod.FAILED,
                error="Skipped by user",
            )

        entry = self._apply(doc, selected, MigrationMethod.MANUAL)
        if entry.method == MigrationMethod.MANUAL:
            self._backfill(document_id, selected)
        return entry

    # ── Private helpers ────────────────────────────────────────────────────

    def _table(self) -> dict[str, MigrationMapping]:
        if self._index is None:
            self.load_mapping_table()
        return self._index

    def _find_document(self, document_id: int) -> Optional[Document]:
        return next(
            (d for d in self._store.get_documents() if d.id == document_id), None
        )

    def _migrate(self, doc: Document) -> DocumentMappingEntry:
        original_type = doc.document_type or UNKNOWN_TYPE
        mapping = self.get_mapping(original_type)

        if mapping is None:
            return DocumentMappingEntry(
                document_id=doc.id,
                original_type=original_type,
                method=MigrationMethod.FAILED,
                error="No mapping found for document type",
            )

        if mapping.needs_review:
            if not mapping.alternatives:
                return DocumentMappingEntry(
                    document_id=doc.id,
                    original_type=original_type,
                    method=MigrationMethod.FAILED,
                    error="No mapping found for document type (ambiguous with no alternatives)",
                )
            return DocumentMappingEntry(
                document_id=doc.id,
                original_type=original_type,
                method=MigrationMethod.MANUAL,
            )

        return self._apply(doc, mapping.hierarchical_path, MigrationMethod.AUTOMATIC)

    def _apply(
        self, doc: Document, path: str, method: MigrationMethod
    ) -> DocumentMappingEntry:
        original_type = doc.document_type or UNKNOWN_TYPE
        try:
            self._store.update_document(doc.id, tags=path.split(PATH_SEPARATOR))
        except Exception as exc:  # noqa: BLE001 - recorded per document, batch continues
            logger.warning("Document %d not migrated: %s", doc.id, exc)
            return DocumentMappingEntry(
                document_id=doc.id,
                original_type=original_type,
                method=MigrationMethod.FAILED,
                error=str(exc),
            )
        return DocumentMappingEntry(
            document_id=doc.id,
            original_type=original_type,
            new_path=path,
            method=method,
        )

    def _latest_run(self) -> MigrationResult:
        if self._status is None and self._audit is not None:
            self._status = self._audit.latest_migration()
        return self.get_migration_status()

    def _backfill(self, document_id: int, path: str) -> None:
        if self._status is None:
            return
        entry = next(
            (e for e in self._status.mapping_log if e.document_id == document_id), None
        )
        if entry is None or entry.method != MigrationMethod.MANUAL or entry.new_path:
            return
        entry.new_path = path
        self._status.manual_review -= 1
        if self._audit is not None:
            self._audit.save_migration(self._status)
