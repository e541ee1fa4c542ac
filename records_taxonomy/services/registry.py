"""
services/registry.py
──────────────────────────────────────────────────────────────────────────────
Session-owned registry of loaded TaxonomyTrees, keyed by entity type.

Every definition available for the session country is loaded once, at
construction.  Nothing is loaded lazily afterwards and nothing is shared
between registries, so two sessions for different countries never interfere.
"""
from __future__ import annotations

import logging
from typing import Optional

from records_taxonomy.config.constants import DEFAULT_COUNTRY, normalize_country
from records_taxonomy.domain.taxonomy import TaxonomyTree
from records_taxonomy.ports.taxonomy_source_port import TaxonomySourcePort
from records_taxonomy.services.resolver import PathResolver

logger = logging.getLogger(__name__)


class TaxonomyRegistry:
    """All TaxonomyTrees for one country.

    Args:
        source:  Where definitions are read from.
        country: Any accepted country spelling; normalised to alpha-3.  An
                 unsupported country falls back to AUS with a warning.

    Raises:
        TaxonomyLoadError: When any definition for the country is malformed.
    """

    def __init__(self, source: TaxonomySourcePort, country: str = DEFAULT_COUNTRY) -> None:
        self._source = source
        self._country = self._resolve_country(normalize_country(country))
        self._trees: dict[str, TaxonomyTree] = {}
        for entity_type in source.entity_types(self._country):
            definition = source.load(entity_type, self._country)
            if definition is None:
                continue
            self._trees[entity_type] = TaxonomyTree.from_definition(definition)
        logger.info(
            "TaxonomyRegistry loaded | country=%s entity_types=%s",
            self._country, ", ".join(self._trees) or "(none)",
        )

    # ── Public API ─────────────────────────────────────────────────────────

    @property
    def country(self) -> str:
        return self._country

    def entity_types(self) -> list[str]:
        return list(self._trees)

    def load(self, entity_type: str) -> Optional[TaxonomyTree]:
        """Return the tree for ``entity_type``, or None when it is unknown."""
        return self._trees.get(entity_type)

    def get(self, entity_type: str) -> Optional[TaxonomyTree]:
        return self.load(entity_type)

    def resolver(self, entity_type: str) -> PathResolver:
        """PathResolver over ``entity_type``; an unknown type gives empty results."""
        return PathResolver(self.load(entity_type))

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._trees

    # ── Private helpers ────────────────────────────────────────────────────

    def _resolve_country(self, country: str) -> str:
        supported = self._source.supported_countries()
        if country in supported or not supported:
            return country
        logger.warning(
            "Country %s has no taxonomy definitions; falling back to %s",
            country, DEFAULT_COUNTRY,
        )
        return DEFAULT_COUNTRY
