"""
ports/taxonomy_source_port.py
──────────────────────────────────────────────────────────────────────────────
Abstract interfaces for where taxonomy definitions and migration mapping
tables come from.

Sources return parsed domain models; they never build trees or indexes.
That is the registry's and the migration mapper's job.

Current implementations: JsonTaxonomySource, JsonMappingSource
(adapters/json_sources.py) reading the packaged data/ directory.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from records_taxonomy.domain.models import MigrationMapping, TaxonomyDefinition


@runtime_checkable
class TaxonomySourcePort(Protocol):
    """Contract for loading taxonomy definitions."""

    def supported_countries(self) -> list[str]:
        """Alpha-3 codes that have at least one definition."""
        ...

    def entity_types(self, country: str) -> list[str]:
        """Entity types with a definition for ``country``, in a stable order."""
        ...

    def load(self, entity_type: str, country: str) -> Optional[TaxonomyDefinition]:
        """Return the definition, or None when none exists.

        Raises:
            TaxonomyLoadError: When a definition exists but cannot be parsed.
        """
        ...


@runtime_checkable
class MappingSourcePort(Protocol):
    """Contract for loading flat → hierarchical migration tables."""

    def load_mappings(self, entity_type: str) -> list[MigrationMapping]:
        """
        Raises:
            MappingTableError: When the table is missing or malformed.
        """
        ...
