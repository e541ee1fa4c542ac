"""
tests/unit/test_json_adapters.py
──────────────────────────────────────────────────────────────────────────────
Unit tests for the file-backed adapters:
  • JsonTaxonomySource     — <root>/<COUNTRY>/<entity-type>.json
  • JsonMappingSource      — <root>/<entity-type>-migration.json
  • JsonAuditSink          — one file per migration run
  • JsonRetentionBaseline  — provisioned retention values

All files live under pytest's tmp_path.
"""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from records_taxonomy.adapters.json_audit import (
    JsonAuditSink,
    JsonRetentionBaseline,
    migration_filename,
)
from records_taxonomy.adapters.json_sources import JsonMappingSource, JsonTaxonomySource
from records_taxonomy.domain.exceptions import (
    MappingTableError,
    RecordsTaxonomyError,
    TaxonomyLoadError,
)
from records_taxonomy.domain.models import (
    DocumentMappingEntry,
    MappingConfidence,
    MigrationMethod,
    MigrationResult,
)
from records_taxonomy.ports.audit_port import AuditSinkPort, RetentionBaselinePort
from records_taxonomy.ports.taxonomy_source_port import MappingSourcePort, TaxonomySourcePort
from records_taxonomy.tests.conftest import HOUSEHOLD_FUNCTIONS


def _write(path, payload) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


# ── JsonTaxonomySource ─────────────────────────────────────────────────────

@pytest.fixture
def taxonomy_root(tmp_path):
    root = tmp_path / "taxonomies"
    _write(root / "AUS" / "household.json", {
        "entityType": "household", "country": "AUS", "version": "2.1.0",
        "functions": HOUSEHOLD_FUNCTIONS,
    })
    _write(root / "AUS" / "person.json", {
        "entityType": "individual", "country": "AUS", "functions": {},
    })
    _write(root / "USA" / "household.json", {
        "entityType": "household", "country": "USA", "functions": {},
    })
    (root / "GBR").mkdir()  # no definitions yet
    return root


class TestJsonTaxonomySource:
    def test_satisfies_port(self, taxonomy_root):
        assert isinstance(JsonTaxonomySource(taxonomy_root), TaxonomySourcePort)

    def test_supported_countries_skip_empty_directories(self, taxonomy_root):
        assert JsonTaxonomySource(taxonomy_root).supported_countries() == ["AUS", "USA"]

    def test_missing_root(self, tmp_path):
        assert JsonTaxonomySource(tmp_path / "nowhere").supported_countries() == []

    def test_entity_types(self, taxonomy_root):
        source = JsonTaxonomySource(taxonomy_root)
        assert source.entity_types("AUS") == ["household", "person"]
        assert source.entity_types("AU") == ["household", "person"]
        assert source.entity_types("NZL") == []

    def test_load(self, taxonomy_root):
        definition = JsonTaxonomySource(taxonomy_root).load("household", "AUS")
        assert definition.version == "2.1.0"
        assert "HealthManagement" in definition.functions

    def test_missing_definition(self, taxonomy_root):
        assert JsonTaxonomySource(taxonomy_root).load("corporate", "AUS") is None

    def test_file_name_wins_over_declared_entity_type(self, taxonomy_root):
        definition = JsonTaxonomySource(taxonomy_root).load("person", "AUS")
        assert definition.entity_type == "person"

    def test_malformed_definition(self, taxonomy_root):
        (taxonomy_root / "AUS" / "corporate.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(TaxonomyLoadError, match="corporate.json"):
            JsonTaxonomySource(taxonomy_root).load("corporate", "AUS")

    def test_negative_retention_years_rejected(self, taxonomy_root):
        _write(taxonomy_root / "AUS" / "corporate.json", {
            "entityType": "corporate", "country": "AUS",
            "functions": {"F": {"services": {"S": {"activities": {
                "A": {"retention": {"AUS": {"years": -1, "authority": "x"}}},
            }}}}},
        })
        with pytest.raises(TaxonomyLoadError):
            JsonTaxonomySource(taxonomy_root).load("corporate", "AUS")


# ── JsonMappingSource ──────────────────────────────────────────────────────

_MAPPING = {
    "flatType": "Medical Bill",
    "hierarchicalPath": "HealthManagement/MedicalCare/Consultations",
    "confidence": "high",
}


class TestJsonMappingSource:
    def test_satisfies_port(self, tmp_path):
        assert isinstance(JsonMappingSource(tmp_path), MappingSourcePort)

    def test_bare_array(self, tmp_path):
        _write(tmp_path / "household-migration.json", [_MAPPING])
        (mapping,) = JsonMappingSource(tmp_path).load_mappings("household")
        assert mapping.flat_type == "Medical Bill"
        assert mapping.confidence == MappingConfidence.HIGH

    def test_wrapped_object(self, tmp_path):
        _write(tmp_path / "household-migration.json", {
            "entityType": "household", "version": "1.0.0", "mappings": [_MAPPING],
        })
        assert len(JsonMappingSource(tmp_path).load_mappings("household")) == 1

    def test_missing_table(self, tmp_path):
        with pytest.raises(MappingTableError, match="not found"):
            JsonMappingSource(tmp_path).load_mappings("household")

    def test_invalid_json(self, tmp_path):
        (tmp_path / "household-migration.json").write_text("[", encoding="utf-8")
        with pytest.raises(MappingTableError, match="Cannot read"):
            JsonMappingSource(tmp_path).load_mappings("household")

    def test_object_without_mappings(self, tmp_path):
        _write(tmp_path / "household-migration.json", {"entityType": "household"})
        with pytest.raises(MappingTableError, match="'mappings' array"):
            JsonMappingSource(tmp_path).load_mappings("household")

    def test_unknown_confidence(self, tmp_path):
        _write(tmp_path / "household-migration.json", [{**_MAPPING, "confidence": "certain"}])
        with pytest.raises(MappingTableError, match="Invalid mapping table"):
            JsonMappingSource(tmp_path).load_mappings("household")


# ── JsonAuditSink ──────────────────────────────────────────────────────────

def _result(timestamp: str) -> MigrationResult:
    return MigrationResult(
        total_documents=2,
        auto_mapped=1,
        failed=1,
        timestamp=timestamp,
        mapping_log=[
            DocumentMappingEntry(
                document_id=1, original_type="Medical Bill",
                new_path="HealthManagement/MedicalCare/Consultations",
                method=MigrationMethod.AUTOMATIC, timestamp=timestamp,
            ),
            DocumentMappingEntry(
                document_id=2, original_type="unknown",
                method=MigrationMethod.FAILED, timestamp=timestamp,
                error="No mapping found for document type",
            ),
        ],
    )


class TestJsonAuditSink:
    def test_satisfies_port(self, tmp_path):
        assert isinstance(JsonAuditSink(tmp_path), AuditSinkPort)

    def test_file_names_are_filesystem_safe(self):
        assert migration_filename("2025-01-02T03:04:05.678Z") == (
            "migration-2025-01-02T03-04-05.678Z.json"
        )

    def test_save_and_load(self, tmp_path):
        sink = JsonAuditSink(tmp_path / "audit")
        result = _result("2025-01-02T03:04:05.678Z")

        location = sink.save_migration(result)

        assert location.endswith("migration-2025-01-02T03-04-05.678Z.json")
        assert sink.load_migration(result.timestamp) == result

    def test_written_as_camel_case(self, tmp_path):
        sink = JsonAuditSink(tmp_path)
        path = sink.save_migration(_result("2025-01-02T03:04:05.678Z"))
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        assert raw["totalDocuments"] == 2
        assert raw["mappingLog"][0]["newPath"] == "HealthManagement/MedicalCare/Consultations"

    def test_latest(self, tmp_path):
        sink = JsonAuditSink(tmp_path)
        sink.save_migration(_result("2025-03-01T00:00:00.000Z"))
        sink.save_migration(_result("2025-01-01T00:00:00.000Z"))
        assert sink.latest_migration().timestamp == "2025-03-01T00:00:00.000Z"

    def test_nothing_recorded(self, tmp_path):
        sink = JsonAuditSink(tmp_path / "missing")
        assert sink.latest_migration() is None
        assert sink.load_migration("2025-01-01T00:00:00.000Z") is None

    def test_unreadable_record(self, tmp_path):
        (tmp_path / migration_filename("2025-01-01T00:00:00.000Z")).write_text(
            "{}", encoding="utf-8"
        )
        with pytest.raises(RecordsTaxonomyError, match="Unreadable migration audit"):
            JsonAuditSink(tmp_path).latest_migration()


# ── JsonRetentionBaseline ──────────────────────────────────────────────────

class TestJsonRetentionBaseline:
    def test_satisfies_port(self, tmp_path):
        assert isinstance(JsonRetentionBaseline(tmp_path), RetentionBaselinePort)

    def test_round_trip(self, tmp_path):
        store = JsonRetentionBaseline(tmp_path)
        values = {"HealthManagement/MedicalCare/Consultations": {"years": 7, "authority": "HRA"}}

        store.save_baseline("AUS", "household", values)

        assert store.load_baseline("AUS", "household") == values
        assert (tmp_path / "retention" / "AUS" / "household.json").is_file()

    def test_missing(self, tmp_path):
        assert JsonRetentionBaseline(tmp_path).load_baseline("AUS", "household") is None

    def test_unreadable_is_ignored(self, tmp_path):
        path = tmp_path / "retention" / "AUS" / "household.json"
        path.parent.mkdir(parents=True)
        path.write_text("{oops", encoding="utf-8")
        assert JsonRetentionBaseline(tmp_path).load_baseline("AUS", "household") is None

    def test_unwritable_raises_domain_error(self, tmp_path):
        (tmp_path / "retention").write_text("not a directory", encoding="utf-8")

        with pytest.raises(RecordsTaxonomyError, match="Could not write retention baseline"):
            JsonRetentionBaseline(tmp_path).save_baseline("AUS", "household", {})
