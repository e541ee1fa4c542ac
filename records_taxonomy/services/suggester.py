"""
services/suggester.py
──────────────────────────────────────────────────────────────────────────────
PathSuggester: best-guess hierarchical path for a single document, from its
title and flat document type, using keyword search over the tree.

Three passes, each only when the previous one was not convincing:
  1. document-type name      → activity document-type matches, +10
  2. title phrases           → 3-word (+5) and 2-word (+3) phrases
  3. single title words      → raw relevance

A score below 5 yields no suggestion.  Confidence is the score scaled to
0–100 with 20 as the ceiling.
"""
from __future__ import annotations

import logging
from typing import Optional

from records_taxonomy.domain.models import KeywordMatch, PathSuggestion
from records_taxonomy.services.resolver import PathResolver

logger = logging.getLogger(__name__)

_DOC_TYPE_BOOST = 10
_PHRASE3_BOOST = 5
_PHRASE2_BOOST = 3
_GOOD_ENOUGH_FOR_PHRASES = 15
_GOOD_ENOUGH_FOR_WORDS = 10
_MIN_SCORE = 5
_FULL_CONFIDENCE_SCORE = 20


class PathSuggester:
    """Suggests Function/Service/Activity paths for documents.

    Args:
        resolver: Resolver over the entity type's tree.
        domain:   Entity type name used as the storage-path root.
        country:  Retention jurisdiction (alpha-3).
    """

    def __init__(self, resolver: PathResolver, domain: str, country: str) -> None:
        self._resolver = resolver
        self._domain = domain
        self._country = country

    def suggest(self, title: str, document_type: Optional[str] = None) -> PathSuggestion:
        best: Optional[KeywordMatch] = None
        best_score = 0
        source = ""

        def consider(matches: list[KeywordMatch], boost: int, label: str,
                     doc_types_only: bool = False) -> None:
            nonlocal best, best_score, source
            for match in matches:
                if not match.activity:
                    continue
                if doc_types_only and not self._lists_document_type(match, doc_type):
                    continue
                if match.relevance + boost > best_score:
                    best, best_score, source = match, match.relevance + boost, label

        doc_type = (document_type or "").strip().lower()
        if doc_type:
            consider(self._resolver.search_by_keyword(doc_type), _DOC_TYPE_BOOST,
                     f"docType:{doc_type}", doc_types_only=True)

        title = (title or "").lower()
        if best_score < _GOOD_ENOUGH_FOR_PHRASES:
            words = [w for w in title.split() if len(w) > 2]
            for i in range(len(words) - 1):
                if i < len(words) - 2:
                    phrase = " ".join(words[i:i + 3])
                    consider(self._resolver.search_by_keyword(phrase), _PHRASE3_BOOST,
                             f"phrase3:{phrase}")
                phrase = " ".join(words[i:i + 2])
                consider(self._resolver.search_by_keyword(phrase), _PHRASE2_BOOST,
                         f"phrase2:{phrase}")

        if best_score < _GOOD_ENOUGH_FOR_WORDS:
            for term in (w for w in title.split() if len(w) > 3):
                consider(self._resolver.search_by_keyword(term), 0, f"keyword:{term}")

        if best is None or best_score < _MIN_SCORE:
            logger.debug("No suggestion for %r (best score %d)", title, best_score)
            return PathSuggestion()

        rule = self._resolver.tree.retention(best.function, best.service, best.activity).get(
            self._country
        )
        return PathSuggestion(
            path=best.path,
            tags=self._resolver.generate_hierarchical_tags(
                best.function, best.service, best.activity
            ),
            storage_path=self._resolver.generate_storage_path(
                self._domain, best.function, best.service, best.activity
            ),
            retention_years=rule.years if rule else None,
            retention_authority=rule.authority if rule else None,
            confidence=min(100.0, best_score / _FULL_CONFIDENCE_SCORE * 100),
            matched_on=source,
        )

    def _lists_document_type(self, match: KeywordMatch, doc_type: str) -> bool:
        # an activity keyword can shadow its document-type hit in match_type
        act = self._resolver.tree.activity(match.function, match.service, match.activity)
        return act is not None and any(doc_type in dt.lower() for dt in act.document_types)
