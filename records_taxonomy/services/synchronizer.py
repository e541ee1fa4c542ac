"""
services/synchronizer.py
──────────────────────────────────────────────────────────────────────────────
UpdateSynchronizer: diff the loaded taxonomies against live store state and
apply only what is new.

detect_changes() never writes.  It uses the installer's skip-detection, and
compares retention rules with the baseline recorded at the last install or
update (RetentionBaselinePort).

update() halts with ``requires_manual_review`` when retention rules changed
and the caller did not pre-approve them.  That outcome is a result flag, not
an exception.
"""
from __future__ import annotations

import logging
from typing import Optional

from records_taxonomy.domain.models import (
    AppliedCounts,
    RetentionChange,
    TaxonomyDiff,
    UpdateOptions,
    UpdateResult,
)
from records_taxonomy.domain.taxonomy import TaxonomyTree
from records_taxonomy.ports.audit_port import RetentionBaselinePort
from records_taxonomy.ports.document_store_port import DocumentStorePort
from records_taxonomy.services.installer import provision
from records_taxonomy.services.planner import (
    ProvisioningPlan,
    ensure_complete,
    plan_provisioning,
    resolve_targets,
    retention_baseline,
    retention_changes,
    take_snapshot,
)
from records_taxonomy.services.registry import TaxonomyRegistry

logger = logging.getLogger(__name__)

MANUAL_REVIEW_ERRORS = (
    "Retention rule changes detected. Manual review required.",
    "Run with --approve-retention-changes to apply updates.",
)


class UpdateSynchronizer:
    """Brings the document store in line with the current definitions.

    Args:
        registry: Loaded trees for the session country.
        store:    Document store to compare against and write to.
        baseline: Previously provisioned retention values; without it no
                  retention change is ever reported.
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

    def detect_changes(self, options: Optional[UpdateOptions] = None) -> TaxonomyDiff:
        """Read-only diff of new resources and changed retention rules."""
        diff, _, _ = self._detect(options or UpdateOptions())
        return diff

    def update(self, options: Optional[UpdateOptions] = None) -> UpdateResult:
        """Apply new resources, gated on approval of any retention change.

        Raises:
            TaxonomyInstallationError: On validation failure, or after
                rollback if creating a resource or recording the
                retention baseline fails.
        """
        options = options or UpdateOptions()
        country = self._registry.country
        diff, plan, trees = self._detect(options)

        if not diff.has_changes:
            logger.info("update | no changes for %s", country)
            return UpdateResult(success=True, country=country, diff=diff,
                                dry_run=options.dry_run)

        if diff.retention_changes and not options.auto_approve:
            logger.warning(
                "update | %d retention change(s) need manual review",
                len(diff.retention_changes),
            )
            return UpdateResult(
                success=False,
                country=country,
                diff=diff,
                requires_manual_review=True,
                dry_run=options.dry_run,
                errors=list(MANUAL_REVIEW_ERRORS),
            )

        if options.dry_run:
            return UpdateResult(success=True, country=country, diff=diff, dry_run=True)

        counts = provision(
            self._store, plan, on_success=lambda: self._save_baselines(trees, country)
        )

        applied = AppliedCounts(
            **counts.model_dump(),
            retention_changes=len(diff.retention_changes),
        )
        logger.info(
            "update complete | tags=%d document_types=%d storage_paths=%d "
            "custom_fields=%d retention_changes=%d",
            applied.tags, applied.document_types, applied.storage_paths,
            applied.custom_fields, applied.retention_changes,
        )
        return UpdateResult(success=True, country=country, diff=diff, applied=applied)

    # ── Private helpers ────────────────────────────────────────────────────

    def _detect(
        self, options: UpdateOptions
    ) -> tuple[TaxonomyDiff, ProvisioningPlan, list[TaxonomyTree]]:
        country = self._registry.country
        trees = resolve_targets(self._registry, options.entity_types)
        ensure_complete(trees, country)

        snapshot = take_snapshot(self._store, country)
        plan = plan_provisioning(trees, snapshot, country)

        changes: list[RetentionChange] = []
        if self._baseline is not None:
            for tree in trees:
                previous = self._baseline.load_baseline(country, tree.entity_type)
                changes.extend(retention_changes(tree, country, previous))

        diff = TaxonomyDiff(
            country=country,
            new_tags=plan.new_resources("tags"),
            new_document_types=plan.new_resources("document_types"),
            new_storage_paths=plan.new_resources("storage_paths"),
            new_custom_fields=plan.new_resources("custom_fields"),
            retention_changes=changes,
        )
        logger.info(
            "detect_changes | country=%s has_changes=%s retention_changes=%d",
            country, diff.has_changes, len(changes),
        )
        return diff, plan, trees

    def _save_baselines(self, trees: list[TaxonomyTree], country: str) -> None:
        if self._baseline is None:
            return
        for tree in trees:
            self._baseline.save_baseline(
                country, tree.entity_type, retention_baseline(tree, country)
            )
