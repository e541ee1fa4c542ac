"""
services/validation.py
──────────────────────────────────────────────────────────────────────────────
Checks a migration mapping table against the tree it targets, so that a
broken table is caught before any document is touched.
"""
from __future__ import annotations

import logging

from records_taxonomy.config.constants import AMBIGUOUS_PATH
from records_taxonomy.domain.models import MigrationMapping, ValidationReport
from records_taxonomy.services.resolver import PathResolver, split_path

logger = logging.getLogger(__name__)


def validate_mapping_table(
    mappings: list[MigrationMapping], resolver: PathResolver
) -> ValidationReport:
    """Every target path must name a real activity.

    Errors:   duplicate flat types; paths or alternatives that do not resolve
              to Function/Service/Activity (an optional fourth segment must be
              one of that activity's document types).
    Warnings: entries that can never be migrated automatically and have no
              alternatives to offer a reviewer.
    """
    errors: list[str] = []
    warnings: list[str] = []
    seen: set[str] = set()

    for m in mappings:
        key = m.flat_type.lower()
        if key in seen:
            errors.append(f"Duplicate mapping for flat type '{m.flat_type}'")
        seen.add(key)

        if m.hierarchical_path != AMBIGUOUS_PATH:
            problem = _check_path(m.hierarchical_path, resolver)
            if problem:
                errors.append(f"'{m.flat_type}': {problem}")

        for alt in m.alternatives:
            problem = _check_path(alt, resolver)
            if problem:
                errors.append(f"'{m.flat_type}' alternative: {problem}")

        if m.needs_review and not m.alternatives:
            warnings.append(
                f"'{m.flat_type}' needs manual review but has no alternatives; "
                "its documents will fail migration"
            )

    report = ValidationReport(valid=not errors, errors=errors, warnings=warnings)
    logger.info(
        "Mapping table checked | mappings=%d errors=%d warnings=%d",
        len(mappings), len(errors), len(warnings),
    )
    return report


def _check_path(path: str, resolver: PathResolver) -> str | None:
    parts = split_path(path)
    if len(parts) not in (3, 4):
        return f"'{path}' is not a Function/Service/Activity path"

    validation = resolver.validate(path)
    if not validation.valid:
        return f"'{path}': {validation.error}"

    if len(parts) == 4:
        doc_types = {d.lower() for d in validation.resolved.document_types or []}
        if parts[3].lower() not in doc_types:
            return f"'{path}': unknown document type {parts[3]}"
    return None
