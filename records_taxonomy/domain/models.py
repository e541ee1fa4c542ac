"""
domain/models.py
──────────────────────────────────────────────────────────────────────────────
Pure domain objects — Pydantic models with no imports from adapters or ports.

These models are the lingua franca of the entire system:
  • adapters produce and consume them
  • services orchestrate them
  • interfaces (CLI, Streamlit) serialise them

Definition files, mapping tables and audit records are camelCase JSON, so
every model here uses a camelCase alias generator and accepts either spelling
on input.  Document-store resources (Tag, Document, …) mirror the store's own
snake_case wire format instead.

The navigable tree built from a TaxonomyDefinition lives in domain/taxonomy.py.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from records_taxonomy.config.constants import AMBIGUOUS_PATH, PATH_SEPARATOR


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2025-01-02T03:04:05.678Z."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        """Serialise to a plain camelCase dict (JSON-safe)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class _FrozenModel(_Model):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


# ── Enums ──────────────────────────────────────────────────────────────────────

class RetentionBasis(str, Enum):
    """Event a retention period is measured from."""
    CREATION          = "creation"
    FISCAL_YEAR_END   = "fy_end"
    ELECTION_DATE     = "fte_date"      # e.g. Family Trust Election date
    DISTRIBUTION_DATE = "distribution"

    @classmethod
    def _missing_(cls, value):
        aliases = {
            "fiscalyearend": cls.FISCAL_YEAR_END,
            "electiondate": cls.ELECTION_DATE,
            "distributiondate": cls.DISTRIBUTION_DATE,
        }
        if isinstance(value, str):
            return aliases.get(value.replace("_", "").lower())
        return None


class MappingConfidence(str, Enum):
    HIGH   = "high"
    MEDIUM = "medium"
    LOW    = "low"


class MigrationMethod(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL    = "manual"
    FAILED    = "failed"


class SuggestionType(str, Enum):
    """Level of the hierarchy an autocomplete suggestion belongs to."""
    FUNCTION      = "function"
    SERVICE       = "service"
    ACTIVITY      = "activity"
    DOCUMENT_TYPE = "documentType"


class MatchType(str, Enum):
    NAME          = "name"
    KEYWORD       = "keyword"
    DOCUMENT_TYPE = "documentType"


# ── Taxonomy definition (input) ────────────────────────────────────────────────

class RetentionRule(_FrozenModel):
    """Country-specific retention requirement for one activity.

    ``years == 0`` means the record is kept permanently.  Both ``years`` and
    ``authority`` are optional at parse time so incomplete definitions can be
    loaded and reported by the completeness check instead of failing to load.
    """

    years:     Optional[int] = Field(None, ge=0)
    authority: str = ""
    notes:     Optional[str] = None
    from_date: Optional[RetentionBasis] = Field(
        None,
        validation_alias=AliasChoices("fromDate", "fromDateBasis", "from_date"),
    )

    @property
    def is_complete(self) -> bool:
        return self.years is not None and bool(self.authority.strip())

    @property
    def is_permanent(self) -> bool:
        return self.years == 0

    def retain_until(self, start: date) -> date | None:
        """Last date the record must be kept, or None if kept permanently."""
        if self.years is None or self.is_permanent:
            return None
        try:
            return start.replace(year=start.year + self.years)
        except ValueError:
            # 29 February rolls back to 28 February in non-leap years
            return start.replace(year=start.year + self.years, day=28)

    def is_expired(self, start: date, today: date | None = None) -> bool:
        """True once the retention period measured from ``start`` has passed."""
        until = self.retain_until(start)
        if until is None:
            return False
        return until < (today or date.today())


class ActivityDefinition(_FrozenModel):
    description:    str = ""
    keywords:       list[str] = Field(default_factory=list)
    document_types: list[str] = Field(default_factory=list)
    retention:      dict[str, RetentionRule] = Field(default_factory=dict)
    icon:           Optional[str] = None


class ServiceDefinition(_FrozenModel):
    description: str = ""
    keywords:    list[str] = Field(default_factory=list)
    activities:  dict[str, ActivityDefinition] = Field(default_factory=dict)
    icon:        Optional[str] = None


class FunctionDefinition(_FrozenModel):
    description: str = ""
    keywords:    list[str] = Field(default_factory=list)
    services:    dict[str, ServiceDefinition] = Field(default_factory=dict)
    icon:        Optional[str] = None


class TaxonomyMetadata(_FrozenModel):
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    created_by: Optional[str] = None
    source:     Optional[str] = None
    checksum:   Optional[str] = None


class TaxonomyDefinition(_FrozenModel):
    """One entity type's hierarchy for one country, as stored on disk."""

    entity_type: str
    country:     str
    version:     str = "0.0.0"
    functions:   dict[str, FunctionDefinition] = Field(default_factory=dict)
    metadata:    TaxonomyMetadata = Field(default_factory=TaxonomyMetadata)


# ── Path resolution (PathResolver output) ──────────────────────────────────────

class ResolvedPath(_Model):
    function:       Optional[str] = None
    service:        Optional[str] = None
    activity:       Optional[str] = None
    document_types: Optional[list[str]] = None
    retention:      Optional[dict[str, RetentionRule]] = None


class PathValidation(_Model):
    valid:    bool
    error:    Optional[str] = None
    resolved: Optional[ResolvedPath] = None


class ParsedPath(ResolvedPath):
    valid: bool = False


class PathResolution(_Model):
    suggestions: list[str] = Field(default_factory=list)
    matched:     list[str] = Field(default_factory=list)
    remaining:   int = 3


class AutocompleteResult(_Model):
    suggestions: list[str] = Field(default_factory=list)
    types:       list[SuggestionType] = Field(default_factory=list)
    remaining:   int = 3


class KeywordMatch(_Model):
    function:   str
    service:    str = ""
    activity:   str = ""
    match_type: MatchType
    relevance:  int

    @property
    def path(self) -> str:
        return PATH_SEPARATOR.join(
            p for p in (self.function, self.service, self.activity) if p
        )


class PathSuggestion(_Model):
    """Best-guess classification of a single document (PathSuggester)."""

    path:                Optional[str] = None
    tags:                list[str] = Field(default_factory=list)
    storage_path:        Optional[str] = None
    retention_years:     Optional[int] = None
    retention_authority: Optional[str] = None
    confidence:          float = 0.0
    matched_on:          Optional[str] = None


class ValidationReport(_Model):
    valid:    bool
    errors:   list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ── Document store resources ───────────────────────────────────────────────────
# Mirror the paperless-ngx wire format (snake_case), unknown keys ignored.

class _StoreModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Tag(_StoreModel):
    id:    int
    name:  str
    color: Optional[str] = None


class DocumentType(_StoreModel):
    id:   int
    name: str


class StoragePath(_StoreModel):
    id:   int
    name: str = ""
    path: str


class CustomField(_StoreModel):
    id:        int
    name:      str
    data_type: str = "string"


class Document(_StoreModel):
    """A stored document with its type and tags resolved to names."""

    id:            int
    title:         str = ""
    document_type: Optional[str] = None
    tags:          list[str] = Field(default_factory=list)
    created:       Optional[str] = None


class ExistingResources(_StoreModel):
    """Snapshot of store state used for skip-detection during one call."""

    tags:           list[Tag] = Field(default_factory=list)
    document_types: list[DocumentType] = Field(default_factory=list)
    storage_paths:  list[StoragePath] = Field(default_factory=list)
    custom_fields:  list[CustomField] = Field(default_factory=list)


# ── Installation / update ──────────────────────────────────────────────────────

class InstallOptions(_Model):
    force:        bool = False  # overwrite the stored retention baseline
    dry_run:      bool = False
    entity_types: Optional[list[str]] = None


class UpdateOptions(_Model):
    dry_run:      bool = False
    auto_approve: bool = False
    entity_types: Optional[list[str]] = None


class ResourceCounts(_Model):
    tags:           int = 0
    document_types: int = 0
    storage_paths:  int = 0
    custom_fields:  int = 0


class AppliedCounts(ResourceCounts):
    retention_changes: int = 0


class SkippedResources(_Model):
    tags:           list[str] = Field(default_factory=list)
    document_types: list[str] = Field(default_factory=list)
    storage_paths:  list[str] = Field(default_factory=list)
    custom_fields:  list[str] = Field(default_factory=list)


class InstallationResult(_Model):
    success:      bool
    country:      str
    entity_types: list[str]
    installed:    ResourceCounts
    skipped:      SkippedResources
    dry_run:      bool = False
    errors:       list[str] = Field(default_factory=list)


class NewResource(_Model):
    name:        str
    entity_type: str


class RetentionChange(_Model):
    entity_type:   str
    path:          str
    country:       str
    old_years:     Optional[int] = None
    new_years:     Optional[int] = None
    old_authority: str = ""
    new_authority: str = ""


class TaxonomyDiff(_Model):
    country:            str
    new_tags:           list[NewResource] = Field(default_factory=list)
    new_document_types: list[NewResource] = Field(default_factory=list)
    new_storage_paths:  list[NewResource] = Field(default_factory=list)
    new_custom_fields:  list[NewResource] = Field(default_factory=list)
    retention_changes:  list[RetentionChange] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_changes(self) -> bool:
        return bool(
            self.new_tags
            or self.new_document_types
            or self.new_storage_paths
            or self.new_custom_fields
            or self.retention_changes
        )


class UpdateResult(_Model):
    success:                bool
    country:                str
    diff:                   TaxonomyDiff
    applied:                AppliedCounts = Field(default_factory=AppliedCounts)
    requires_manual_review: bool = False
    dry_run:                bool = False
    errors:                 list[str] = Field(default_factory=list)


# ── Migration ──────────────────────────────────────────────────────────────────

class MigrationMapping(_FrozenModel):
    """Mapping from a legacy flat document type to a hierarchical path."""

    flat_type:         str
    hierarchical_path: str
    confidence:        MappingConfidence
    rationale:         str = ""
    alternatives:      list[str] = Field(default_factory=list)

    @field_validator("flat_type", "hierarchical_path")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()

    @property
    def needs_review(self) -> bool:
        """Ambiguous or low-confidence mappings are never applied automatically."""
        return (
            self.hierarchical_path == AMBIGUOUS_PATH
            or self.confidence == MappingConfidence.LOW
        )


class DocumentMappingEntry(_Model):
    """Audit trail entry for one document's migration."""

    document_id:   int
    original_type: str
    new_path:      Optional[str] = None
    method:        MigrationMethod
    timestamp:     str = Field(default_factory=utc_timestamp)
    error:         Optional[str] = None


class MigrationResult(_Model):
    """Outcome of one migration run; persisted in full to the audit sink."""

    total_documents: int
    auto_mapped:     int = 0
    manual_review:   int = 0
    failed:          int = 0
    mapping_log:     list[DocumentMappingEntry] = Field(default_factory=list)
    timestamp:       str = Field(default_factory=utc_timestamp)


class ReviewCandidate(_Model):
    """A document awaiting manual review, with the paths it may move to."""

    document:     Document
    alternatives: list[str] = Field(default_factory=list)
