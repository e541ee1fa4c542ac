"""
services/planner.py
──────────────────────────────────────────────────────────────────────────────
Skip-detection shared by the installer and the update synchroniser.

Both take one snapshot of the store, then decide per entity type which
resources to create and which already exist.  Names are compared
case-insensitively, ignoring surrounding whitespace, through an index built once per snapshot, and
every name planned for creation is added to that index immediately, so a
later entity type in the same call skips it instead of creating it twice.

Also home to the completeness gate and the retention-baseline helpers, which
both operations apply identically.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from records_taxonomy.config.constants import (
    CUSTOM_FIELD_ENTITY_TYPES,
    PATH_SEPARATOR,
    custom_field_name,
    entity_storage_path,
)
from records_taxonomy.domain.exceptions import (
    RecordsTaxonomyError,
    TaxonomyInstallationError,
)
from records_taxonomy.domain.models import (
    ExistingResources,
    NewResource,
    ResourceCounts,
    RetentionChange,
    SkippedResources,
)
from records_taxonomy.domain.taxonomy import TaxonomyTree
from records_taxonomy.ports.document_store_port import DocumentStorePort
from records_taxonomy.services import compensation
from records_taxonomy.services.registry import TaxonomyRegistry

logger = logging.getLogger(__name__)


@dataclass
class EntityPlan:
    """What one entity type needs created, in creation order."""

    entity_type: str
    tags: list[str] = field(default_factory=list)
    document_types: list[str] = field(default_factory=list)
    storage_paths: list[str] = field(default_factory=list)
    custom_fields: list[str] = field(default_factory=list)


@dataclass
class ProvisioningPlan:
    country: str
    entities: list[EntityPlan]
    skipped: SkippedResources
    # ids seen in the snapshot, by compensation kind; never rolled back
    existing_ids: dict[str, set[int]] = field(default_factory=dict)

    def pre_existing(self, kind: str, resource_id: int) -> bool:
        return resource_id in self.existing_ids.get(kind, set())

    def counts(self) -> ResourceCounts:
        return ResourceCounts(
            tags=sum(len(e.tags) for e in self.entities),
            document_types=sum(len(e.document_types) for e in self.entities),
            storage_paths=sum(len(e.storage_paths) for e in self.entities),
            custom_fields=sum(len(e.custom_fields) for e in self.entities),
        )

    def new_resources(self, attr: str) -> list[NewResource]:
        return [
            NewResource(name=name, entity_type=e.entity_type)
            for e in self.entities
            for name in getattr(e, attr)
        ]


def _key(name: str) -> str:
    # same normalisation the store applies in get_or_create_*
    return name.strip().lower()


class _NameIndex:
    """Normalised names already present (or already planned) in the store."""

    def __init__(self, names: Iterable[str]) -> None:
        self._names = {_key(n) for n in names if n and n.strip()}

    def claim(self, name: str) -> bool:
        """True if ``name`` is new; it is then reserved for this call."""
        key = _key(name)
        if key in self._names:
            return False
        self._names.add(key)
        return True


# ── Public API ─────────────────────────────────────────────────────────────

def resolve_targets(
    registry: TaxonomyRegistry, entity_types: Optional[list[str]]
) -> list[TaxonomyTree]:
    """Trees for the requested entity types, or for every registered one.

    Raises:
        TaxonomyInstallationError: (step="validation") for unknown entity types.
    """
    names = list(entity_types) if entity_types else registry.entity_types()
    unknown = [n for n in names if n not in registry]
    if unknown:
        raise TaxonomyInstallationError(
            f"Unknown entity type(s): {', '.join(unknown)}",
            country=registry.country,
            entity_type=unknown[0],
            step="validation",
            errors=[f"No taxonomy definition for {n} ({registry.country})" for n in unknown],
        )
    return [registry.load(n) for n in names]


def ensure_complete(trees: list[TaxonomyTree], country: str) -> None:
    """Refuse to continue when any target tree is incomplete.

    Runs before any store access, so a failure has no side effects.

    Raises:
        TaxonomyInstallationError: (step="validation") listing every gap.
    """
    errors: list[str] = []
    first_bad: Optional[str] = None
    for tree in trees:
        tree_errors = tree.completeness_errors()
        if tree_errors and first_bad is None:
            first_bad = tree.entity_type
        errors.extend(tree_errors)
    if errors:
        logger.error("Taxonomy validation failed: %d problem(s)", len(errors))
        raise TaxonomyInstallationError(
            f"Taxonomy validation failed for {first_bad}",
            country=country,
            entity_type=first_bad,
            step="validation",
            errors=errors,
        )


def take_snapshot(store: DocumentStorePort, country: str) -> ExistingResources:
    """One read of every existing resource; the sole basis for skip-detection.

    Raises:
        TaxonomyInstallationError: (step="snapshot") when the store cannot be read.
    """
    try:
        return ExistingResources(
            tags=store.list_tags(),
            document_types=store.list_document_types(),
            storage_paths=store.list_storage_paths(),
            custom_fields=store.list_custom_fields(),
        )
    except RecordsTaxonomyError as exc:
        raise TaxonomyInstallationError(
            f"Could not read existing resources: {exc}",
            cause=exc,
            country=country,
            step="snapshot",
        ) from exc


def plan_provisioning(
    trees: list[TaxonomyTree], snapshot: ExistingResources, country: str
) -> ProvisioningPlan:
    tags = _NameIndex(t.name for t in snapshot.tags)
    doc_types = _NameIndex(d.name for d in snapshot.document_types)
    paths = _NameIndex(
        [p.path for p in snapshot.storage_paths] + [p.name for p in snapshot.storage_paths]
    )
    fields = _NameIndex(f.name for f in snapshot.custom_fields)
    skipped = SkippedResources()
    entities: list[EntityPlan] = []

    for tree in trees:
        plan = EntityPlan(entity_type=tree.entity_type)

        for names in tree.all_tag_categories().values():
            for name in names:
                if tags.claim(name):
                    plan.tags.append(name)
                elif name not in plan.tags:
                    _note(skipped.tags, name)

        for name in tree.all_document_types():
            if doc_types.claim(name):
                plan.document_types.append(name)
            else:
                _note(skipped.document_types, name)

        path = entity_storage_path(tree.entity_type)
        # the store also matches storage paths by their last segment
        if paths.claim(path) and paths.claim(tree.entity_type):
            plan.storage_paths.append(path)
        else:
            _note(skipped.storage_paths, path)

        if tree.entity_type in CUSTOM_FIELD_ENTITY_TYPES:
            name = custom_field_name(tree.entity_type)
            if fields.claim(name):
                plan.custom_fields.append(name)
            else:
                _note(skipped.custom_fields, name)

        entities.append(plan)

    result = ProvisioningPlan(
        country=country,
        entities=entities,
        skipped=skipped,
        existing_ids={
            compensation.TAG: {t.id for t in snapshot.tags},
            compensation.DOCUMENT_TYPE: {d.id for d in snapshot.document_types},
            compensation.STORAGE_PATH: {p.id for p in snapshot.storage_paths},
            compensation.CUSTOM_FIELD: {f.id for f in snapshot.custom_fields},
        },
    )
    counts = result.counts()
    logger.info(
        "Plan | tags=%d document_types=%d storage_paths=%d custom_fields=%d (skipping %d tags)",
        counts.tags, counts.document_types, counts.storage_paths,
        counts.custom_fields, len(skipped.tags),
    )
    return result


def _note(names: list[str], name: str) -> None:
    if name not in names:
        names.append(name)


# ── Retention baseline ─────────────────────────────────────────────────────

def retention_baseline(tree: TaxonomyTree, country: str) -> dict[str, dict]:
    """``"F/S/A" → {"years", "authority"}`` for every activity with a rule for ``country``."""
    baseline: dict[str, dict] = {}
    for fn, svc, act in tree.walk():
        rule = act.retention.get(country)
        if rule is None:
            continue
        key = PATH_SEPARATOR.join((fn.name, svc.name, act.name))
        baseline[key] = {"years": rule.years, "authority": rule.authority}
    return baseline


def retention_changes(
    tree: TaxonomyTree, country: str, previous: Optional[dict[str, dict]]
) -> list[RetentionChange]:
    """Activities whose retention years or authority differ from ``previous``.

    Activities that are new since the baseline are not changes; without a
    baseline nothing is.
    """
    if not previous:
        return []
    current = retention_baseline(tree, country)
    changes: list[RetentionChange] = []
    for path, old in previous.items():
        if path not in current:
            parts = path.split(PATH_SEPARATOR)
            if len(parts) != 3 or tree.activity(*parts) is None:
                continue  # the activity itself is gone
        new = current.get(path, {"years": None, "authority": ""})
        if old.get("years") != new["years"] or old.get("authority", "") != new["authority"]:
            changes.append(RetentionChange(
                entity_type=tree.entity_type,
                path=path,
                country=country,
                old_years=old.get("years"),
                new_years=new["years"],
                old_authority=old.get("authority", ""),
                new_authority=new["authority"],
            ))
    return changes
