"""
services/resolver.py
──────────────────────────────────────────────────────────────────────────────
Read-side navigation over one TaxonomyTree: parse, validate, autocomplete and
keyword search, plus derivation of tag sets and storage-path strings.

Paths are slash-separated ``Function/Service/Activity`` strings.  Segments
are trimmed, empty segments are ignored, and every level is matched
case-insensitively; results always carry the tree's own spelling.

A resolver built over ``None`` (unknown entity type) answers every query
with an empty or invalid result instead of raising.
"""
from __future__ import annotations

import logging
import re
from typing import Optional

from records_taxonomy.config.constants import PATH_SEPARATOR
from records_taxonomy.domain.models import (
    AutocompleteResult,
    KeywordMatch,
    MatchType,
    ParsedPath,
    PathResolution,
    PathValidation,
    ResolvedPath,
    SuggestionType,
)
from records_taxonomy.domain.taxonomy import TaxonomyTree

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 20
DEFAULT_AUTOCOMPLETE_LIMIT = 10

# Relevance weights for search_by_keyword
_FUNCTION_NAME, _FUNCTION_KEYWORD = 10, 5
_SERVICE_NAME, _SERVICE_KEYWORD = 8, 4
_ACTIVITY_NAME, _ACTIVITY_DOC_TYPE, _ACTIVITY_KEYWORD = 7, 6, 3

_SUGGESTION_TYPES = {
    3: SuggestionType.FUNCTION,
    2: SuggestionType.SERVICE,
    1: SuggestionType.ACTIVITY,
    0: SuggestionType.DOCUMENT_TYPE,
}


def split_path(path: str) -> list[str]:
    """Split on '/', trim each segment and drop the empty ones."""
    return [p.strip() for p in path.split(PATH_SEPARATOR) if p.strip()]


def _join(*parts: str) -> str:
    return PATH_SEPARATOR.join(parts)


def _readable(identifier: str) -> str:
    """'MedicalCare' → 'Medical Care'; every word gets an upper-case initial."""
    spaced = re.sub(r"([A-Z])", r" \1", identifier).strip()
    return " ".join(w[:1].upper() + w[1:] for w in spaced.split(" "))


class PathResolver:
    """Path operations over a single entity type's tree.

    Args:
        tree: The loaded tree, or None when the entity type is unknown.
    """

    def __init__(self, tree: Optional[TaxonomyTree]) -> None:
        self._tree = tree

    @property
    def tree(self) -> Optional[TaxonomyTree]:
        return self._tree

    # ── Validation ─────────────────────────────────────────────────────────

    def validate(self, path: str) -> PathValidation:
        """Walk ``path`` level by level; the first unknown segment is an error.

        A partial path (function, or function/service) is valid and leaves
        the deeper fields unset.  Segments beyond the activity are ignored.
        """
        if self._tree is None:
            return PathValidation(valid=False, error="Hierarchical taxonomy not available")

        parts = split_path(path)
        resolved = ResolvedPath()

        if not parts:
            return PathValidation(valid=True, resolved=resolved)

        fn = self._tree.function(parts[0])
        if fn is None:
            return PathValidation(valid=False, error=f"Invalid function: {parts[0]}")
        resolved.function = fn.name

        if len(parts) > 1:
            svc = fn.service(parts[1])
            if svc is None:
                return PathValidation(
                    valid=False,
                    error=f"Invalid service: {parts[1]} for function {fn.name}",
                )
            resolved.service = svc.name

            if len(parts) > 2:
                act = svc.activity(parts[2])
                if act is None:
                    return PathValidation(
                        valid=False,
                        error=f"Invalid activity: {parts[2]} for service {svc.name}",
                    )
                resolved.activity = act.name
                resolved.document_types = list(act.document_types)
                resolved.retention = dict(act.retention)

        return PathValidation(valid=True, resolved=resolved)

    def parse(self, path: str) -> ParsedPath:
        """Same walk as validate(), flattened; ``{valid: False}`` on any error."""
        validation = self.validate(path)
        if not validation.valid:
            return ParsedPath(valid=False)
        resolved = validation.resolved
        return ParsedPath(
            valid=True,
            function=resolved.function,
            service=resolved.service,
            activity=resolved.activity,
            document_types=resolved.document_types,
            retention=resolved.retention,
        )

    # ── Completion ─────────────────────────────────────────────────────────

    def resolve_path(self, partial: str, fuzzy: bool = True) -> PathResolution:
        """Suggest the next level below the deepest exactly-matched segment.

        ``remaining`` counts the levels still open (3 → 0).  When a segment
        has no exact match, names at that level containing it are suggested
        instead, without descending; with ``fuzzy=False`` nothing is.
        """
        if self._tree is None:
            return PathResolution()

        parts = split_path(partial)
        functions = self._tree.functions
        if not parts:
            return PathResolution(suggestions=[f.name for f in functions], remaining=3)

        fn = self._tree.function(parts[0])
        if fn is None:
            return PathResolution(
                suggestions=_contains([f.name for f in functions], parts[0], fuzzy),
                remaining=3,
            )
        if len(parts) == 1:
            return PathResolution(
                suggestions=[_join(fn.name, s.name) for s in fn.services],
                matched=[fn.name],
                remaining=2,
            )

        svc = fn.service(parts[1])
        if svc is None:
            names = _contains([s.name for s in fn.services], parts[1], fuzzy)
            return PathResolution(
                suggestions=[_join(fn.name, n) for n in names],
                matched=[fn.name],
                remaining=2,
            )
        if len(parts) == 2:
            return PathResolution(
                suggestions=[_join(fn.name, svc.name, a.name) for a in svc.activities],
                matched=[fn.name, svc.name],
                remaining=1,
            )

        act = svc.activity(parts[2])
        if act is None:
            names = _contains([a.name for a in svc.activities], parts[2], fuzzy)
            return PathResolution(
                suggestions=[_join(fn.name, svc.name, n) for n in names],
                matched=[fn.name, svc.name],
                remaining=1,
            )
        return PathResolution(
            suggestions=[
                _join(fn.name, svc.name, act.name, dt) for dt in act.document_types
            ],
            matched=[fn.name, svc.name, act.name],
            remaining=0,
        )

    def autocomplete(
        self,
        partial: str,
        limit: int = DEFAULT_AUTOCOMPLETE_LIMIT,
        fuzzy: bool = True,
    ) -> AutocompleteResult:
        resolution = self.resolve_path(partial, fuzzy=fuzzy)
        return AutocompleteResult(
            suggestions=resolution.suggestions[: max(limit, 0)],
            types=[_SUGGESTION_TYPES[resolution.remaining]],
            remaining=resolution.remaining,
        )

    # ── Search ─────────────────────────────────────────────────────────────

    def search_by_keyword(self, keyword: str) -> list[KeywordMatch]:
        """Case-insensitive substring search over every level of the tree.

        Every function, service and activity is checked; a match at a higher
        level never hides matches below it.  Results are ordered by relevance
        (ties keep traversal order) and capped at 20.
        """
        if self._tree is None or not keyword.strip():
            return []

        needle = keyword.strip().lower()
        results: list[KeywordMatch] = []

        for fn in self._tree.functions:
            name_hit = needle in fn.name.lower()
            if name_hit or _any_contains(fn.keywords, needle):
                results.append(KeywordMatch(
                    function=fn.name,
                    match_type=MatchType.NAME if name_hit else MatchType.KEYWORD,
                    relevance=_FUNCTION_NAME if name_hit else _FUNCTION_KEYWORD,
                ))

            for svc in fn.services:
                name_hit = needle in svc.name.lower()
                if name_hit or _any_contains(svc.keywords, needle):
                    results.append(KeywordMatch(
                        function=fn.name,
                        service=svc.name,
                        match_type=MatchType.NAME if name_hit else MatchType.KEYWORD,
                        relevance=_SERVICE_NAME if name_hit else _SERVICE_KEYWORD,
                    ))

                for act in svc.activities:
                    name_hit = needle in act.name.lower()
                    keyword_hit = _any_contains(act.keywords, needle)
                    doc_type_hit = _any_contains(act.document_types, needle)
                    if not (name_hit or keyword_hit or doc_type_hit):
                        continue

                    if keyword_hit:
                        match_type = MatchType.KEYWORD
                    elif doc_type_hit:
                        match_type = MatchType.DOCUMENT_TYPE
                    else:
                        match_type = MatchType.NAME

                    if doc_type_hit:
                        relevance = _ACTIVITY_DOC_TYPE
                    elif name_hit:
                        relevance = _ACTIVITY_NAME
                    else:
                        relevance = _ACTIVITY_KEYWORD

                    results.append(KeywordMatch(
                        function=fn.name,
                        service=svc.name,
                        activity=act.name,
                        match_type=match_type,
                        relevance=relevance,
                    ))

        # sorted() is stable, so equal relevance keeps traversal order
        results = sorted(results, key=lambda m: m.relevance, reverse=True)
        logger.debug("search_by_keyword %r → %d matches", keyword, len(results))
        return results[:MAX_SEARCH_RESULTS]

    # ── Derivations ────────────────────────────────────────────────────────

    def generate_hierarchical_tags(
        self, function: str, service: str, activity: str
    ) -> list[str]:
        """``[function, service, activity, *activity keywords]`` without duplicates."""
        tags = [function, service, activity]
        if self._tree is not None:
            act = self._tree.activity(function, service, activity)
            if act is not None:
                tags.extend(act.keywords)
        return list(dict.fromkeys(tags))

    @staticmethod
    def generate_storage_path(
        domain: str, function: str, service: str, activity: str
    ) -> str:
        """e.g. ('household', 'HealthManagement', 'MedicalCare', 'Consultations')
        → '/Household/Health Management/Medical Care/Consultations'."""
        parts = [_readable(p) for p in (domain, function, service, activity)]
        return PATH_SEPARATOR + _join(*parts)


# ── Helpers ────────────────────────────────────────────────────────────────

def _contains(names: list[str], fragment: str, fuzzy: bool) -> list[str]:
    if not fuzzy:
        return []
    needle = fragment.lower()
    return [n for n in names if needle in n.lower()]


def _any_contains(values, needle: str) -> bool:
    return any(needle in v.lower() for v in values)
