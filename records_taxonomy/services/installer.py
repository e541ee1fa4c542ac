"""
services/installer.py
──────────────────────────────────────────────────────────────────────────────
InstallationOrchestrator: provisions tags, document types, storage paths and
custom fields for one or more entity types into the document store.

install() runs in five phases:
  1. Validation  — every target tree must be complete; no store access yet
  2. Snapshot    — one read of existing store resources for the whole call
  3. Plan        — skip-detection against the snapshot (services/planner.py)
  4. Provision   — sequential creation, each recorded in InstallationState;
                   any failure rolls every creation back before re-raising
  5. Baseline    — retention values recorded; a failure here also rolls back

The caller therefore either sees the whole installation or none of it.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from records_taxonomy.config.constants import CUSTOM_FIELD_DATA_TYPE, TAG_COLORS
from records_taxonomy.domain.exceptions import TaxonomyInstallationError
from records_taxonomy.domain.models import (
    InstallationResult,
    InstallOptions,
    ResourceCounts,
)
from records_taxonomy.domain.taxonomy import TaxonomyTree
from records_taxonomy.ports.audit_port import RetentionBaselinePort
from records_taxonomy.ports.document_store_port import DocumentStorePort
from records_taxonomy.services import compensation
from records_taxonomy.services.compensation import InstallationState
from records_taxonomy.services.planner import (
    ProvisioningPlan,
    ensure_complete,
    plan_provisioning,
    resolve_targets,
    retention_baseline,
    take_snapshot,
)
from records_taxonomy.services.registry import TaxonomyRegistry

logger = logging.getLogger(__name__)


class InstallationOrchestrator:
    """Installs a country's taxonomies into the document store.

    Inject via services/container.py — do not instantiate directly in
    application code.

    Args:
        registry: Loaded trees for the session country.
        store:    Document store to provision into.
        baseline: Where retention values are recorded after install; optional.
    """

    def __init__(
        self,
        registry: TaxonomyRegistry,
        store: DocumentStorePort,
        baseline: Optional[RetentionBaselinePort] = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._baseline = baseline

    # ── Public API ─────────────────────────────────────────────────────────

    def install(self, options: Optional[InstallOptions] = None) -> InstallationResult:
        """Install every requested entity type, or roll back entirely.

        Raises:
            TaxonomyInstallationError: step="validation" before any store
                access; any other step after the rollback has completed.
        """
        options = options or InstallOptions()
        country = self._registry.country
        trees = resolve_targets(self._registry, options.entity_types)
        entity_types = [t.entity_type for t in trees]
        logger.info(
            "install | country=%s entity_types=%s dry_run=%s force=%s",
            country, entity_types, options.dry_run, options.force,
        )

        ensure_complete(trees, country)
        plan = self._plan(trees, country)

        if options.dry_run:
            return InstallationResult(
                success=True,
                country=country,
                entity_types=entity_types,
                installed=plan.counts(),
                skipped=plan.skipped,
                dry_run=True,
            )

        installed = provision(
            self._store,
            plan,
            on_success=lambda: self._record_baselines(trees, country, overwrite=options.force),
        )

        logger.info(
            "install complete | tags=%d document_types=%d storage_paths=%d "
            "custom_fields=%d skipped_tags=%d",
            installed.tags, installed.document_types, installed.storage_paths,
            installed.custom_fields, len(plan.skipped.tags),
        )
        return InstallationResult(
            success=True,
            country=country,
            entity_types=entity_types,
            installed=installed,
            skipped=plan.skipped,
        )

    # ── Private helpers ────────────────────────────────────────────────────

    def _plan(self, trees: list[TaxonomyTree], country: str) -> ProvisioningPlan:
        return plan_provisioning(trees, take_snapshot(self._store, country), country)

    def _record_baselines(
        self, trees: list[TaxonomyTree], country: str, overwrite: bool
    ) -> None:
        if self._baseline is None:
            return
        for tree in trees:
            if overwrite or self._baseline.load_baseline(country, tree.entity_type) is None:
                self._baseline.save_baseline(
                    country, tree.entity_type, retention_baseline(tree, country)
                )


def provision(
    store: DocumentStorePort,
    plan: ProvisioningPlan,
    on_success: Optional[Callable[[], None]] = None,
) -> ResourceCounts:
    """Create everything in ``plan``, in order; all-or-nothing.

    Tag colours cycle through TAG_COLORS by the number of tags created so far
    in this call.  A resource the store hands back that was already in the
    snapshot is neither counted nor rolled back.

    ``on_success`` runs last, as step "baseline"; if it raises, every
    creation is rolled back as for any other step.

    Raises:
        TaxonomyInstallationError: After rolling back every creation; its
            context names the entity type and step that failed.
    """
    state = InstallationState()
    entity_type: Optional[str] = None
    step = "tags"

    try:
        for entity in plan.entities:
            entity_type = entity.entity_type

            step = "tags"
            for name in entity.tags:
                color = TAG_COLORS[state.count(compensation.TAG) % len(TAG_COLORS)]
                tag = store.get_or_create_tag(name, color=color)
                if not plan.pre_existing(compensation.TAG, tag.id):
                    state.record(compensation.TAG, tag.id, name,
                                 lambda i=tag.id: store.delete_tag(i))

            step = "document_types"
            for name in entity.document_types:
                doc_type = store.get_or_create_document_type(name)
                if not plan.pre_existing(compensation.DOCUMENT_TYPE, doc_type.id):
                    state.record(compensation.DOCUMENT_TYPE, doc_type.id, name,
                                 lambda i=doc_type.id: store.delete_document_type(i))

            step = "storage_paths"
            for path in entity.storage_paths:
                storage_path = store.get_or_create_storage_path(path)
                if not plan.pre_existing(compensation.STORAGE_PATH, storage_path.id):
                    state.record(compensation.STORAGE_PATH, storage_path.id, path,
                                 lambda i=storage_path.id: store.delete_storage_path(i))

            step = "custom_fields"
            for name in entity.custom_fields:
                custom_field = store.create_custom_field(name, CUSTOM_FIELD_DATA_TYPE)
                state.record(compensation.CUSTOM_FIELD, custom_field.id, name,
                             lambda i=custom_field.id: store.delete_custom_field(i))

        if on_success is not None:
            entity_type, step = None, "baseline"
            on_success()

    except Exception as exc:
        logger.error(
            "Provisioning failed | entity_type=%s step=%s: %s", entity_type, step, exc
        )
        failures = state.rollback()
        raise TaxonomyInstallationError(
            f"Installation failed and was rolled back ({entity_type}, {step}): {exc}",
            cause=exc,
            country=plan.country,
            entity_type=entity_type,
            step=step,
            errors=failures,
        ) from exc

    counts = ResourceCounts(
        tags=state.count(compensation.TAG),
        document_types=state.count(compensation.DOCUMENT_TYPE),
        storage_paths=state.count(compensation.STORAGE_PATH),
        custom_fields=state.count(compensation.CUSTOM_FIELD),
    )
    state.discard()
    return counts
