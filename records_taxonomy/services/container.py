"""
services/container.py
──────────────────────────────────────────────────────────────────────────────
Dependency Injection container.

THIS IS THE ONLY FILE THAT NAMES CONCRETE ADAPTER CLASSES.

  TaxonomySourcePort    → JsonTaxonomySource   (TAXONOMY_DIR)
  MappingSourcePort     → JsonMappingSource    (MAPPING_DIR)
  AuditSinkPort         → JsonAuditSink        (AUDIT_DIR)
  RetentionBaselinePort → JsonRetentionBaseline (STATE_DIR)
  DocumentStorePort     → PaperlessDocumentStore (PAPERLESS_URL / _API_TOKEN)

Two entry points:
  get_registry() — read-only taxonomy access; needs no document store, so
                   browsing works without paperless credentials
  get_session()  — everything, including the document store and the
                   installer / synchroniser / migration services

Both are cached with @lru_cache(maxsize=1): one registry and one session per
process.  build_registry() / build_session() construct fresh, uncached
instances for callers that override settings (e.g. the CLI's --country).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from records_taxonomy.adapters.json_audit import JsonAuditSink, JsonRetentionBaseline
from records_taxonomy.adapters.json_sources import JsonMappingSource, JsonTaxonomySource
from records_taxonomy.adapters.paperless_store import PaperlessDocumentStore
from records_taxonomy.config.settings import Settings, get_settings
from records_taxonomy.ports.audit_port import AuditSinkPort, RetentionBaselinePort
from records_taxonomy.ports.document_store_port import DocumentStorePort
from records_taxonomy.ports.taxonomy_source_port import MappingSourcePort
from records_taxonomy.services.installer import InstallationOrchestrator
from records_taxonomy.services.migration import MigrationMapper
from records_taxonomy.services.registry import TaxonomyRegistry
from records_taxonomy.services.synchronizer import UpdateSynchronizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordsSession:
    """Every service of one session, wired to the same registry and store."""

    settings: Settings
    registry: TaxonomyRegistry
    store: DocumentStorePort
    mappings: MappingSourcePort
    audit: AuditSinkPort
    baseline: RetentionBaselinePort
    installer: InstallationOrchestrator
    synchronizer: UpdateSynchronizer

    def migration_mapper(self, entity_type: str) -> MigrationMapper:
        return MigrationMapper(
            store=self.store,
            mappings=self.mappings,
            audit=self.audit,
            entity_type=entity_type,
        )


def build_mapping_source(settings: Settings) -> MappingSourcePort:
    return JsonMappingSource(settings.mapping_dir)


def build_registry(settings: Settings) -> TaxonomyRegistry:
    """Load every taxonomy for ``settings.country``.

    Raises:
        TaxonomyLoadError: If a definition file is malformed.
    """
    return TaxonomyRegistry(JsonTaxonomySource(settings.taxonomy_dir), settings.country)


def build_session(settings: Settings) -> RecordsSession:
    """Wire adapters into services for ``settings``.

    Raises:
        ConfigurationError: If PAPERLESS_URL is missing.
        AuthenticationError: If PAPERLESS_API_TOKEN is missing.
        TaxonomyLoadError: If a definition file is malformed.
    """
    logger.info(
        "Building RecordsSession | country=%s paperless=%s",
        settings.country, settings.paperless_url or "(unset)",
    )

    # ── Infrastructure adapters ────────────────────────────────────────────
    store    = PaperlessDocumentStore(settings)                # DocumentStorePort
    mappings = build_mapping_source(settings)                  # MappingSourcePort
    audit    = JsonAuditSink(settings.audit_dir)               # AuditSinkPort
    baseline = JsonRetentionBaseline(settings.state_dir)       # RetentionBaselinePort

    # ── Services (receive only Port interfaces, not concrete types) ────────
    registry = build_registry(settings)
    session = RecordsSession(
        settings=settings,
        registry=registry,
        store=store,
        mappings=mappings,
        audit=audit,
        baseline=baseline,
        installer=InstallationOrchestrator(registry, store, baseline),
        synchronizer=UpdateSynchronizer(registry, store, baseline),
    )
    logger.info(
        "RecordsSession ready | country=%s entity_types=%d",
        registry.country, len(registry.entity_types()),
    )
    return session


@lru_cache(maxsize=1)
def get_registry() -> TaxonomyRegistry:
    """Cached registry for the configured country (no document store needed)."""
    return build_registry(get_settings())


@lru_cache(maxsize=1)
def get_session() -> RecordsSession:
    """Cached, fully wired session for the configured settings."""
    return build_session(get_settings())
