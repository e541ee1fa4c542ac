"""
adapters/json_sources.py
──────────────────────────────────────────────────────────────────────────────
Implements TaxonomySourcePort and MappingSourcePort over JSON files.

Directory layout:
  <taxonomy_dir>/<COUNTRY>/<entity-type>.json      one definition per file
  <mapping_dir>/<entity-type>-migration.json       one mapping table per file

The country directory and file stem identify a definition, so a file that
fails to parse is still attributable and reported as a TaxonomyLoadError for
exactly that (entity type, country) pair.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from records_taxonomy.config.constants import normalize_country
from records_taxonomy.domain.exceptions import MappingTableError, TaxonomyLoadError
from records_taxonomy.domain.models import MigrationMapping, TaxonomyDefinition

logger = logging.getLogger(__name__)

_MAPPING_LIST = TypeAdapter(list[MigrationMapping])


class JsonTaxonomySource:
    """Reads taxonomy definitions from ``<root>/<COUNTRY>/<entity-type>.json``."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        logger.debug("JsonTaxonomySource ready | root=%s", self._root)

    def supported_countries(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(
            d.name.upper()
            for d in self._root.iterdir()
            if d.is_dir() and any(d.glob("*.json"))
        )

    def entity_types(self, country: str) -> list[str]:
        folder = self._country_dir(country)
        if not folder.is_dir():
            return []
        return sorted(p.stem for p in folder.glob("*.json"))

    def load(self, entity_type: str, country: str) -> Optional[TaxonomyDefinition]:
        path = self._country_dir(country) / f"{entity_type}.json"
        if not path.is_file():
            logger.debug("No definition for %s/%s at %s", country, entity_type, path)
            return None
        try:
            definition = TaxonomyDefinition.model_validate_json(
                path.read_text(encoding="utf-8")
            )
        except (OSError, ValidationError) as exc:
            raise TaxonomyLoadError(
                f"Cannot parse taxonomy definition {path}: {exc}"
            ) from exc
        if definition.entity_type != entity_type:
            logger.warning(
                "Definition %s declares entityType=%r; using file name %r",
                path, definition.entity_type, entity_type,
            )
            definition = definition.model_copy(update={"entity_type": entity_type})
        return definition

    def _country_dir(self, country: str) -> Path:
        return self._root / normalize_country(country)


class JsonMappingSource:
    """Reads ``<root>/<entity-type>-migration.json`` mapping tables.

    The file holds either a bare array of mappings or ``{"mappings": [...]}``.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def load_mappings(self, entity_type: str) -> list[MigrationMapping]:
        path = self._root / f"{entity_type}-migration.json"
        if not path.is_file():
            raise MappingTableError(f"Mapping table not found: {path}")
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise MappingTableError(f"Cannot read mapping table {path}: {exc}") from exc

        if isinstance(raw, dict):
            raw = raw.get("mappings")
        if not isinstance(raw, list):
            raise MappingTableError(
                f"Mapping table {path} must be an array or contain a 'mappings' array"
            )
        try:
            mappings = _MAPPING_LIST.validate_python(raw)
        except ValidationError as exc:
            raise MappingTableError(f"Invalid mapping table {path}: {exc}") from exc

        logger.debug("Loaded %d mappings from %s", len(mappings), path)
        return mappings
