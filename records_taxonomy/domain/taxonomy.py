"""
domain/taxonomy.py
──────────────────────────────────────────────────────────────────────────────
Immutable Function → Service → Activity → DocumentType tree.

A TaxonomyTree is built once from a parsed TaxonomyDefinition and never
changes afterwards.  Each level keeps a lowercase-name → node index so that
lookups are case-insensitive and O(1), while nodes keep the original
(case-sensitive) spelling for display, tagging and provisioning.

Lookups never raise: an unknown name at any level yields None or an empty
collection.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Mapping, Optional

from records_taxonomy.domain.models import RetentionRule, TaxonomyDefinition


def _index(nodes) -> dict:
    return {node.name.lower(): node for node in nodes}


@dataclass(frozen=True)
class ActivityNode:
    name: str
    description: str = ""
    keywords: tuple[str, ...] = ()
    document_types: tuple[str, ...] = ()
    retention: Mapping[str, RetentionRule] = field(default_factory=dict)

    def is_complete(self) -> bool:
        """At least one document type and one fully populated retention rule."""
        return bool(self.document_types) and any(
            rule.is_complete for rule in self.retention.values()
        )


@dataclass(frozen=True)
class ServiceNode:
    name: str
    description: str = ""
    keywords: tuple[str, ...] = ()
    activities: tuple[ActivityNode, ...] = ()
    _by_name: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", _index(self.activities))

    def activity(self, name: str) -> Optional[ActivityNode]:
        return self._by_name.get(name.strip().lower())


@dataclass(frozen=True)
class FunctionNode:
    name: str
    description: str = ""
    keywords: tuple[str, ...] = ()
    services: tuple[ServiceNode, ...] = ()
    _by_name: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", _index(self.services))

    def service(self, name: str) -> Optional[ServiceNode]:
        return self._by_name.get(name.strip().lower())


@dataclass(frozen=True)
class TaxonomyTree:
    """One entity type's hierarchy, loaded for one country."""

    entity_type: str
    country: str
    version: str
    functions: tuple[FunctionNode, ...] = ()
    _by_name: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", _index(self.functions))

    @classmethod
    def from_definition(cls, definition: TaxonomyDefinition) -> "TaxonomyTree":
        functions = tuple(
            FunctionNode(
                name=f_name,
                description=f_def.description,
                keywords=tuple(f_def.keywords),
                services=tuple(
                    ServiceNode(
                        name=s_name,
                        description=s_def.description,
                        keywords=tuple(s_def.keywords),
                        activities=tuple(
                            ActivityNode(
                                name=a_name,
                                description=a_def.description,
                                keywords=tuple(a_def.keywords),
                                document_types=tuple(a_def.document_types),
                                retention=dict(a_def.retention),
                            )
                            for a_name, a_def in s_def.activities.items()
                        ),
                    )
                    for s_name, s_def in f_def.services.items()
                ),
            )
            for f_name, f_def in definition.functions.items()
        )
        return cls(
            entity_type=definition.entity_type,
            country=definition.country,
            version=definition.version,
            functions=functions,
        )

    # ── Node lookups ───────────────────────────────────────────────────────

    def function(self, name: str) -> Optional[FunctionNode]:
        return self._by_name.get(name.strip().lower())

    def service(self, function: str, service: str) -> Optional[ServiceNode]:
        fn = self.function(function)
        return fn.service(service) if fn else None

    def activity(
        self, function: str, service: str, activity: str
    ) -> Optional[ActivityNode]:
        svc = self.service(function, service)
        return svc.activity(activity) if svc else None

    # ── Name-level navigation ──────────────────────────────────────────────

    def function_names(self) -> list[str]:
        return [f.name for f in self.functions]

    def service_names(self, function: str) -> list[str]:
        fn = self.function(function)
        return [s.name for s in fn.services] if fn else []

    def activity_names(self, function: str, service: str) -> list[str]:
        svc = self.service(function, service)
        return [a.name for a in svc.activities] if svc else []

    def document_types(self, function: str, service: str, activity: str) -> list[str]:
        act = self.activity(function, service, activity)
        return list(act.document_types) if act else []

    def retention(
        self, function: str, service: str, activity: str
    ) -> dict[str, RetentionRule]:
        act = self.activity(function, service, activity)
        return dict(act.retention) if act else {}

    # ── Traversals ─────────────────────────────────────────────────────────

    def walk(self) -> Iterator[tuple[FunctionNode, ServiceNode, ActivityNode]]:
        """Yield every (function, service, activity) triple in definition order."""
        for fn in self.functions:
            for svc in fn.services:
                for act in svc.activities:
                    yield fn, svc, act

    def all_document_types(self) -> list[str]:
        """Every document type in the tree, de-duplicated, first occurrence wins."""
        seen: dict[str, None] = {}
        for _, _, act in self.walk():
            for doc_type in act.document_types:
                seen.setdefault(doc_type, None)
        return list(seen)

    def all_tag_categories(self) -> dict[str, list[str]]:
        """Function name → its activity names followed by their document types."""
        categories: dict[str, list[str]] = {}
        for fn in self.functions:
            tags: list[str] = []
            for svc in fn.services:
                for act in svc.activities:
                    tags.append(act.name)
                    tags.extend(act.document_types)
            categories[fn.name] = tags
        return categories

    def completeness_errors(self) -> list[str]:
        """Describe every gap that makes this tree unfit for provisioning.

        An empty list means the tree is complete.
        """
        label = f"{self.entity_type} ({self.country})"
        if not self.functions:
            return [f"{label}: taxonomy defines no functions"]

        errors: list[str] = []
        for fn in self.functions:
            if not fn.services:
                errors.append(f"{label}: function {fn.name} has no services")
            for svc in fn.services:
                if not svc.activities:
                    errors.append(
                        f"{label}: service {fn.name}/{svc.name} has no activities"
                    )
                for act in svc.activities:
                    path = f"{fn.name}/{svc.name}/{act.name}"
                    if not act.document_types:
                        errors.append(f"{label}: activity {path} has no document types")
                    if not any(r.is_complete for r in act.retention.values()):
                        errors.append(
                            f"{label}: activity {path} has no retention rule "
                            "with both years and authority"
                        )
        return errors

    def is_complete(self) -> bool:
        return not self.completeness_errors()
