"""
tests/conftest.py
──────────────────────────────────────────────────────────────────────────────
Shared pytest fixtures and mock adapter implementations.

Mock adapters implement the Port Protocols via structural subtyping — they do
NOT inherit from any base class.  pytest uses them to test service logic
without a running paperless-ngx instance or any files on disk.

Fixture hierarchy:
  store              → MockDocumentStore (in-memory, failure injection)
  taxonomy_source    → MockTaxonomySource (household + family-trust, AUS)
  registry           → TaxonomyRegistry over taxonomy_source
  resolver           → PathResolver over the household tree
  mapping_source     → MockMappingSource (household mapping table)
  audit / baseline   → in-memory AuditSinkPort / RetentionBaselinePort
  installer          → InstallationOrchestrator wired with the mocks
  synchronizer       → UpdateSynchronizer wired with the mocks
  mapper             → MigrationMapper over a store seeded with documents
  packaged_registry  → TaxonomyRegistry over the shipped data/ directory
"""
from __future__ import annotations

import copy
from pathlib import Path
from typing import Optional

import pytest

from records_taxonomy.adapters.json_sources import JsonMappingSource, JsonTaxonomySource
from records_taxonomy.config.settings import Settings
from records_taxonomy.domain.exceptions import DocumentStoreError, MappingTableError
from records_taxonomy.domain.models import (
    CustomField,
    Document,
    DocumentType,
    MigrationMapping,
    MigrationResult,
    StoragePath,
    Tag,
    TaxonomyDefinition,
)
from records_taxonomy.services.installer import InstallationOrchestrator
from records_taxonomy.services.migration import MigrationMapper
from records_taxonomy.services.registry import TaxonomyRegistry
from records_taxonomy.services.synchronizer import UpdateSynchronizer

DATA_DIR = Path(__file__).parent.parent / "data"


# ── Settings fixture ───────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path) -> Settings:
    """Return a Settings instance with sane test defaults."""
    return Settings(
        paperless_url="http://paperless.test",
        paperless_api_token="test-token",
        country="AUS",
        default_entity_type="household",
        taxonomy_dir=DATA_DIR / "taxonomies",
        mapping_dir=DATA_DIR / "mappings",
        audit_dir=tmp_path / "audit",
        state_dir=tmp_path / "state",
        request_timeout=5,
        request_retries=3,
        page_size=2,  # small pages so pagination is exercised
    )


# ── Taxonomy fixture data ──────────────────────────────────────────────────

HOUSEHOLD_FUNCTIONS: dict = {
    "HealthManagement": {
        "keywords": ["health", "medical"],
        "services": {
            "MedicalCare": {
                "keywords": ["doctor"],
                "activities": {
                    "Consultations": {
                        "keywords": ["appointment"],
                        "documentTypes": ["Medical Bill", "Referral Letter"],
                        "retention": {
                            "AUS": {"years": 7, "authority": "Health Records Act 2001"},
                            "USA": {"years": 6, "authority": "HIPAA"},
                        },
                    },
                    "Prescriptions": {
                        "keywords": ["pharmacy"],
                        "documentTypes": ["Prescription"],
                        "retention": {
                            "AUS": {"years": 5, "authority": "ITAA 1936 s262A"},
                        },
                    },
                },
            },
            "DentalCare": {
                "keywords": ["dentist"],
                "activities": {
                    "Treatments": {
                        "keywords": ["filling"],
                        "documentTypes": ["Dental Invoice"],
                        "retention": {
                            "AUS": {"years": 7, "authority": "Health Records Act 2001"},
                        },
                    },
                },
            },
        },
    },
    "FinancialManagement": {
        "keywords": ["money", "finance"],
        "services": {
            "Taxation": {
                "keywords": ["ato"],
                "activities": {
                    "IncomeTax": {
                        "keywords": ["tax return", "refund"],
                        "documentTypes": ["Tax Return", "Notice of Assessment"],
                        "retention": {
                            "AUS": {
                                "years": 5,
                                "authority": "ITAA 1936 s262A",
                                "fromDate": "fy_end",
                            },
                        },
                    },
                },
            },
            "Banking": {
                "keywords": ["bank"],
                "activities": {
                    "Statements": {
                        "keywords": ["statement"],
                        "documentTypes": ["Bank Statement"],
                        "retention": {
                            "AUS": {"years": 5, "authority": "ITAA 1936 s262A"},
                        },
                    },
                },
            },
        },
    },
}

TRUST_FUNCTIONS: dict = {
    "TrustAdministration": {
        "keywords": ["trust"],
        "services": {
            "Elections": {
                "keywords": ["fte"],
                "activities": {
                    "FamilyTrustElection": {
                        "keywords": ["election"],
                        "documentTypes": ["Family Trust Election Form"],
                        "retention": {
                            "AUS": {
                                "years": 5,
                                "authority": "ITAA 1936 Sch 2F",
                                "fromDate": "fte_date",
                            },
                        },
                    },
                },
            },
        },
    },
}

# 12 tags, 7 document types, 1 storage path, 0 custom fields
HOUSEHOLD_TAGS = [
    "Consultations", "Medical Bill", "Referral Letter", "Prescriptions",
    "Prescription", "Treatments", "Dental Invoice",
    "IncomeTax", "Tax Return", "Notice of Assessment", "Statements", "Bank Statement",
]
HOUSEHOLD_DOC_TYPES = [
    "Medical Bill", "Referral Letter", "Prescription", "Dental Invoice",
    "Tax Return", "Notice of Assessment", "Bank Statement",
]


def make_definition(
    entity_type: str, functions: dict, country: str = "AUS", version: str = "1.0.0"
) -> TaxonomyDefinition:
    return TaxonomyDefinition.model_validate({
        "entityType": entity_type,
        "country": country,
        "version": version,
        "functions": functions,
    })


# ── Mock adapters ──────────────────────────────────────────────────────────

class MockDocumentStore:
    """In-memory paperless stand-in.

    Failure injection:
      fail_on       kind → name whose creation raises DocumentStoreError
      fail_deletes  kinds whose deletion raises (rollback failures)
      fail_updates  document ids whose update raises
      fail_listing  every list_* call raises
    """

    def __init__(self) -> None:
        self.tags: dict[int, Tag] = {}
        self.document_types: dict[int, DocumentType] = {}
        self.storage_paths: dict[int, StoragePath] = {}
        self.custom_fields: dict[int, CustomField] = {}
        self.documents: dict[int, Document] = {}
        self.created: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, int]] = []
        self.updated: list[tuple[int, list[str]]] = []
        self.fail_on: dict[str, str] = {}
        self.fail_deletes: set[str] = set()
        self.fail_updates: set[int] = set()
        self.fail_listing = False
        self._next_id = 100

    # ── Seeding helpers (not part of the port) ─────────────────────────────

    def seed_tag(self, name: str) -> Tag:
        tag = Tag(id=self._new_id(), name=name)
        self.tags[tag.id] = tag
        return tag

    def seed_document_type(self, name: str) -> DocumentType:
        doc_type = DocumentType(id=self._new_id(), name=name)
        self.document_types[doc_type.id] = doc_type
        return doc_type

    def seed_storage_path(self, path: str, name: str = "") -> StoragePath:
        sp = StoragePath(id=self._new_id(), name=name or path.strip("/"), path=path)
        self.storage_paths[sp.id] = sp
        return sp

    def add_document(
        self, document_id: int, title: str, document_type: Optional[str]
    ) -> Document:
        doc = Document(id=document_id, title=title, document_type=document_type)
        self.documents[document_id] = doc
        return doc

    def names(self, kind: str) -> list[str]:
        return [name for k, name in self.created if k == kind]

    # ── DocumentStorePort ──────────────────────────────────────────────────

    def get_or_create_tag(self, name: str, color: Optional[str] = None) -> Tag:
        existing = self._find(self.tags.values(), name)
        if existing:
            return existing
        self._check("tag", name)
        tag = Tag(id=self._new_id(), name=name, color=color)
        self.tags[tag.id] = tag
        self.created.append(("tag", name))
        return tag

    def get_or_create_document_type(self, name: str) -> DocumentType:
        existing = self._find(self.document_types.values(), name)
        if existing:
            return existing
        self._check("document_type", name)
        doc_type = DocumentType(id=self._new_id(), name=name)
        self.document_types[doc_type.id] = doc_type
        self.created.append(("document_type", name))
        return doc_type

    def get_or_create_storage_path(self, path: str) -> StoragePath:
        for sp in self.storage_paths.values():
            if sp.path.lower() == path.lower():
                return sp
        self._check("storage_path", path)
        sp = StoragePath(id=self._new_id(), name=path.strip("/"), path=path)
        self.storage_paths[sp.id] = sp
        self.created.append(("storage_path", path))
        return sp

    def create_custom_field(self, name: str, data_type: str) -> CustomField:
        self._check("custom_field", name)
        field = CustomField(id=self._new_id(), name=name, data_type=data_type)
        self.custom_fields[field.id] = field
        self.created.append(("custom_field", name))
        return field

    def delete_tag(self, tag_id: int) -> None:
        self._delete("tag", self.tags, tag_id)

    def delete_document_type(self, type_id: int) -> None:
        self._delete("document_type", self.document_types, type_id)

    def delete_storage_path(self, path_id: int) -> None:
        self._delete("storage_path", self.storage_paths, path_id)

    def delete_custom_field(self, field_id: int) -> None:
        self._delete("custom_field", self.custom_fields, field_id)

    def list_tags(self) -> list[Tag]:
        return self._list(self.tags)

    def list_document_types(self) -> list[DocumentType]:
        return self._list(self.document_types)

    def list_storage_paths(self) -> list[StoragePath]:
        return self._list(self.storage_paths)

    def list_custom_fields(self) -> list[CustomField]:
        return self._list(self.custom_fields)

    def get_documents(self) -> list[Document]:
        return list(self.documents.values())

    def update_document(self, document_id: int, tags: list[str]) -> Document:
        if document_id in self.fail_updates or document_id not in self.documents:
            raise DocumentStoreError(f"PATCH /documents/{document_id}/ → HTTP 500")
        for name in tags:
            self.get_or_create_tag(name)
        doc = self.documents[document_id].model_copy(update={"tags": list(tags)})
        self.documents[document_id] = doc
        self.updated.append((document_id, list(tags)))
        return doc

    # ── Internals ──────────────────────────────────────────────────────────

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    @staticmethod
    def match_key(name: str) -> str:
        """How get_or_create_* compares names; the paperless adapter strips and lowercases."""
        return name.strip().lower()

    def _find(self, items, name: str):
        key = self.match_key(name)
        return next((i for i in items if self.match_key(i.name) == key), None)

    def _check(self, kind: str, name: str) -> None:
        if self.fail_on.get(kind) == name:
            raise DocumentStoreError(f"Cannot create {kind} {name!r}: HTTP 500")

    def _delete(self, kind: str, items: dict, item_id: int) -> None:
        if kind in self.fail_deletes:
            raise DocumentStoreError(f"Cannot delete {kind} {item_id}: HTTP 500")
        items.pop(item_id, None)
        self.deleted.append((kind, item_id))

    def _list(self, items: dict) -> list:
        if self.fail_listing:
            raise DocumentStoreError("paperless GET → HTTP 503")
        return list(items.values())


class MockTaxonomySource:
    """Serves TaxonomyDefinitions from a dict keyed by (country, entity_type)."""

    def __init__(self, definitions: dict[tuple[str, str], TaxonomyDefinition]) -> None:
        self._definitions = definitions

    def supported_countries(self) -> list[str]:
        return sorted({country for country, _ in self._definitions})

    def entity_types(self, country: str) -> list[str]:
        return sorted(e for c, e in self._definitions if c == country)

    def load(self, entity_type: str, country: str) -> Optional[TaxonomyDefinition]:
        return self._definitions.get((country, entity_type))


HOUSEHOLD_MAPPINGS: list[dict] = [
    {"flatType": "Medical Bill", "hierarchicalPath": "HealthManagement/MedicalCare/Consultations",
     "confidence": "high", "rationale": "Direct match"},
    {"flatType": "Tax Return", "hierarchicalPath": "FinancialManagement/Taxation/IncomeTax",
     "confidence": "high"},
    {"flatType": "Bank Statement", "hierarchicalPath": "FinancialManagement/Banking/Statements",
     "confidence": "medium"},
    {"flatType": "Insurance Document", "hierarchicalPath": "AMBIGUOUS", "confidence": "low",
     "alternatives": ["HealthManagement/MedicalCare/Consultations",
                      "FinancialManagement/Banking/Statements"]},
    {"flatType": "Correspondence", "hierarchicalPath": "AMBIGUOUS", "confidence": "low"},
    {"flatType": "Car Service", "hierarchicalPath": "FinancialManagement/Taxation/IncomeTax",
     "confidence": "low",
     "alternatives": ["FinancialManagement/Taxation/IncomeTax",
                      "FinancialManagement/Banking/Statements"]},
]


class MockMappingSource:
    """Serves mapping tables from a dict keyed by entity type."""

    def __init__(self, tables: dict[str, list[dict]]) -> None:
        self._tables = tables
        self.loads: list[str] = []

    def load_mappings(self, entity_type: str) -> list[MigrationMapping]:
        self.loads.append(entity_type)
        if entity_type not in self._tables:
            raise MappingTableError(f"Mapping table not found for {entity_type}")
        return [MigrationMapping.model_validate(m) for m in self._tables[entity_type]]


class MockAuditSink:
    """Keeps migration runs in memory, keyed by run timestamp."""

    def __init__(self) -> None:
        self.runs: dict[str, MigrationResult] = {}
        self.saves = 0

    def save_migration(self, result: MigrationResult) -> str:
        self.runs[result.timestamp] = result.model_copy(deep=True)
        self.saves += 1
        return f"memory://{result.timestamp}"

    def load_migration(self, timestamp: str) -> Optional[MigrationResult]:
        return self.runs.get(timestamp)

    def latest_migration(self) -> Optional[MigrationResult]:
        return list(self.runs.values())[-1] if self.runs else None


class MockRetentionBaseline:
    def __init__(self) -> None:
        self.baselines: dict[tuple[str, str], dict[str, dict]] = {}

    def load_baseline(self, country: str, entity_type: str) -> Optional[dict[str, dict]]:
        return self.baselines.get((country, entity_type))

    def save_baseline(self, country: str, entity_type: str, baseline: dict[str, dict]) -> None:
        self.baselines[(country, entity_type)] = dict(baseline)


# ── pytest fixtures ────────────────────────────────────────────────────────

@pytest.fixture
def store():
    return MockDocumentStore()


@pytest.fixture
def taxonomy_source():
    return MockTaxonomySource({
        ("AUS", "household"): make_definition("household", HOUSEHOLD_FUNCTIONS),
        ("AUS", "family-trust"): make_definition("family-trust", TRUST_FUNCTIONS),
    })


@pytest.fixture
def registry(taxonomy_source):
    return TaxonomyRegistry(taxonomy_source, "AUS")


@pytest.fixture
def household_tree(registry):
    return registry.load("household")


@pytest.fixture
def resolver(registry):
    return registry.resolver("household")


@pytest.fixture
def mapping_source():
    return MockMappingSource({"household": HOUSEHOLD_MAPPINGS})


@pytest.fixture
def audit():
    return MockAuditSink()


@pytest.fixture
def baseline():
    return MockRetentionBaseline()


@pytest.fixture
def installer(registry, store, baseline):
    return InstallationOrchestrator(registry, store, baseline)


@pytest.fixture
def synchronizer(registry, store, baseline):
    return UpdateSynchronizer(registry, store, baseline)


@pytest.fixture
def seeded_store(store):
    """Store holding one document per migration outcome.

    Expected: automatic 1, 2 · manual 3, 7 · failed 4, 5, 6
    """
    store.add_document(1, "Dr Smith invoice", "Medical Bill")
    store.add_document(2, "ATO return 2024", "Tax Return")
    store.add_document(3, "NRMA policy", "Insurance Document")
    store.add_document(4, "Letter from council", "Correspondence")
    store.add_document(5, "Mystery scan", "Completely Unknown Type")
    store.add_document(6, "Untyped upload", None)
    store.add_document(7, "Mechanic receipt", "Car Service")
    return store


@pytest.fixture
def mapper(seeded_store, mapping_source, audit):
    return MigrationMapper(
        store=seeded_store, mappings=mapping_source, audit=audit, entity_type="household"
    )


@pytest.fixture
def packaged_registry():
    return TaxonomyRegistry(JsonTaxonomySource(DATA_DIR / "taxonomies"), "AUS")


@pytest.fixture
def packaged_mappings():
    return JsonMappingSource(DATA_DIR / "mappings")


@pytest.fixture
def household_functions():
    """A fresh copy of the household fixture hierarchy, safe to mutate."""
    return copy.deepcopy(HOUSEHOLD_FUNCTIONS)


@pytest.fixture
def make_registry():
    """Factory: ``make_registry({"household": functions, ...})`` → AUS registry."""
    def _make(trees: dict[str, dict], country: str = "AUS") -> TaxonomyRegistry:
        source = MockTaxonomySource({
            (country, entity_type): make_definition(entity_type, functions, country)
            for entity_type, functions in trees.items()
        })
        return TaxonomyRegistry(source, country)
    return _make
