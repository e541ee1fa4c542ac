"""
interfaces/cli.py
──────────────────────────────────────────────────────────────────────────────
Command-line interface for the records taxonomy.

Usage:
  # Browse the hierarchy level by level
  records-taxonomy browse
  records-taxonomy browse HealthManagement/MedicalCare

  # Keyword search and path completion
  records-taxonomy search medical
  records-taxonomy resolve "HealthManagement/med"

  # Suggest a path for a document title
  records-taxonomy suggest "Dental invoice March" --document-type Invoice

  # Provision paperless-ngx (dry run first)
  records-taxonomy install --dry-run
  records-taxonomy install --entity-type household --entity-type family-trust

  # Sync new definitions
  records-taxonomy diff
  records-taxonomy update --approve-retention-changes

  # Flat → hierarchical migration
  records-taxonomy validate-mappings --entity household
  records-taxonomy migrate --entity household
  records-taxonomy review --entity household

  # JSON output, another jurisdiction
  records-taxonomy --json --country GB search tax

Exit codes:
  0 — success
  1 — fatal error (configuration, store, validation, rollback)
  2 — argument error
  3 — update halted: retention changes need review
"""
from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from typing import Any, Callable, Optional

from records_taxonomy.config.settings import Settings, get_settings
from records_taxonomy.domain.exceptions import (
    RecordsTaxonomyError,
    TaxonomyInstallationError,
)
from records_taxonomy.domain.models import (
    Document,
    InstallOptions,
    UpdateOptions,
)
from records_taxonomy.services.container import (
    RecordsSession,
    build_mapping_source,
    build_registry,
    build_session,
    get_registry,
    get_session,
)
from records_taxonomy.services.registry import TaxonomyRegistry
from records_taxonomy.services.suggester import PathSuggester
from records_taxonomy.services.validation import validate_mapping_table

logger = logging.getLogger(__name__)

EXIT_OK, EXIT_ERROR, EXIT_USAGE, EXIT_REVIEW = 0, 1, 2, 3


# ── Argument parser ────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="records-taxonomy",
        description="Browse, provision and migrate the hierarchical records taxonomy.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--country", metavar="CODE",
                   help="Retention jurisdiction (AUS, AU, Australia, …). "
                        "(default: RECORDS_COUNTRY)")
    p.add_argument("--json", action="store_true", dest="json_output",
                   help="Output results as JSON.")
    p.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")

    sub = p.add_subparsers(dest="command", metavar="COMMAND")

    def with_entity(sp: argparse.ArgumentParser) -> argparse.ArgumentParser:
        sp.add_argument("--entity", "-e", metavar="TYPE",
                        help="Entity type. (default: RECORDS_DEFAULT_ENTITY_TYPE)")
        return sp

    def with_targets(sp: argparse.ArgumentParser) -> argparse.ArgumentParser:
        sp.add_argument("--entity-type", action="append", dest="entity_types",
                        metavar="TYPE",
                        help="Limit to this entity type; repeatable. (default: all)")
        return sp

    browse = with_entity(sub.add_parser("browse", help="List the next level below a path."))
    browse.add_argument("path", nargs="?", default="", help="Function[/Service[/Activity]]")

    search = with_entity(sub.add_parser("search", help="Keyword search across the tree."))
    search.add_argument("keyword")

    resolve = with_entity(sub.add_parser("resolve", help="Autocomplete a partial path."))
    resolve.add_argument("path", nargs="?", default="")
    resolve.add_argument("--limit", type=int, default=10, help="(default: 10)")
    resolve.add_argument("--no-fuzzy", action="store_false", dest="fuzzy",
                         help="Only suggest below exact matches.")

    suggest = with_entity(sub.add_parser("suggest", help="Suggest a path for a document."))
    suggest.add_argument("title")
    suggest.add_argument("--document-type", metavar="NAME")

    install = with_targets(sub.add_parser("install", help="Provision the document store."))
    install.add_argument("--dry-run", action="store_true",
                         help="Report what would be created; change nothing.")
    install.add_argument("--force", action="store_true",
                         help="Overwrite the recorded retention baseline.")

    with_targets(sub.add_parser("diff", help="Show what an update would change."))

    update = with_targets(sub.add_parser("update", help="Apply new taxonomy resources."))
    update.add_argument("--dry-run", action="store_true")
    update.add_argument("--approve-retention-changes", action="store_true",
                        dest="auto_approve",
                        help="Apply even when retention rules changed.")

    with_entity(sub.add_parser("migrate", help="Migrate every document to hierarchical tags."))
    with_entity(sub.add_parser("review", help="Resolve documents left for manual review."))
    with_entity(sub.add_parser("validate-mappings",
                               help="Check a mapping table against the taxonomy."))
    return p


# ── Formatting helpers ─────────────────────────────────────────────────────

def _print_json(payload: Any) -> None:
    if hasattr(payload, "to_dict"):
        payload = payload.to_dict()
    elif isinstance(payload, list):
        payload = [p.to_dict() if hasattr(p, "to_dict") else p for p in payload]
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _rule(title: str) -> None:
    print(f"\n{'─' * 60}")
    print(title)
    print(f"{'─' * 60}")


def _emit(args: argparse.Namespace, payload: Any, text: Callable[[], None]) -> None:
    if args.json_output:
        _print_json(payload)
    else:
        text()


# ── Sub-commands: read-only ────────────────────────────────────────────────

def _cmd_browse(args, registry: TaxonomyRegistry, settings: Settings) -> int:
    entity = _entity(args)
    resolver = registry.resolver(entity)
    validation = resolver.validate(args.path)
    if not validation.valid:
        print(f"ERROR: {validation.error}", file=sys.stderr)
        return EXIT_ERROR

    resolution = resolver.resolve_path(args.path)

    def text() -> None:
        _rule(f"{entity} ({registry.country})  /{'/'.join(resolution.matched)}")
        resolved = validation.resolved
        if resolved.activity:
            for doc_type in resolved.document_types or []:
                print(f"  • {doc_type}")
            for country, rule in (resolved.retention or {}).items():
                years = "permanent" if rule.is_permanent else f"{rule.years} years"
                print(f"  Retention [{country}]: {years} — {rule.authority}")
        else:
            for suggestion in resolution.suggestions:
                print(f"  {suggestion.rsplit('/', 1)[-1]}")
        print()

    _emit(args, validation, text)
    return EXIT_OK


def _cmd_search(args, registry: TaxonomyRegistry, settings: Settings) -> int:
    matches = registry.resolver(_entity(args)).search_by_keyword(args.keyword)

    def text() -> None:
        _rule(f"Search: {args.keyword!r}  ({len(matches)} matches)")
        for m in matches:
            print(f"  [{m.relevance:>2}] {m.path}  ({m.match_type.value})")
        print()

    _emit(args, matches, text)
    return EXIT_OK


def _cmd_resolve(args, registry: TaxonomyRegistry, settings: Settings) -> int:
    result = registry.resolver(_entity(args)).autocomplete(
        args.path, limit=args.limit, fuzzy=args.fuzzy
    )

    def text() -> None:
        kind = result.types[0].value if result.types else "?"
        _rule(f"Next: {kind}  (levels remaining: {result.remaining})")
        for s in result.suggestions:
            print(f"  {s}")
        print()

    _emit(args, result, text)
    return EXIT_OK


def _cmd_suggest(args, registry: TaxonomyRegistry, settings: Settings) -> int:
    entity = _entity(args)
    suggester = PathSuggester(registry.resolver(entity), entity, registry.country)
    suggestion = suggester.suggest(args.title, args.document_type)

    def text() -> None:
        if not suggestion.path:
            print("No confident suggestion.")
            return
        _rule(f"{suggestion.path}  ({suggestion.confidence:.0f}% confidence)")
        print(f"  Tags         : {', '.join(suggestion.tags)}")
        print(f"  Storage path : {suggestion.storage_path}")
        if suggestion.retention_years is not None:
            print(f"  Retention    : {suggestion.retention_years} years "
                  f"({suggestion.retention_authority})")
        print(f"  Matched on   : {suggestion.matched_on}")
        print()

    _emit(args, suggestion, text)
    return EXIT_OK


def _cmd_validate_mappings(args, registry: TaxonomyRegistry, settings: Settings) -> int:
    entity = _entity(args)
    mappings = build_mapping_source(settings).load_mappings(entity)
    report = validate_mapping_table(mappings, registry.resolver(entity))

    def text() -> None:
        _rule(f"{entity}: {len(mappings)} mappings — {'OK' if report.valid else 'INVALID'}")
        for e in report.errors:
            print(f"  ERROR   {e}")
        for w in report.warnings:
            print(f"  WARNING {w}")
        print()

    _emit(args, report, text)
    return EXIT_OK if report.valid else EXIT_ERROR


# ── Sub-commands: store-mutating ───────────────────────────────────────────

def _cmd_install(args, session: RecordsSession) -> int:
    result = session.installer.install(InstallOptions(
        force=args.force, dry_run=args.dry_run, entity_types=args.entity_types,
    ))

    def text() -> None:
        verb = "Would install" if result.dry_run else "Installed"
        _rule(f"{verb} for {result.country}: {', '.join(result.entity_types)}")
        i, s = result.installed, result.skipped
        print(f"  Tags           : {i.tags:>4} new, {len(s.tags)} existing")
        print(f"  Document types : {i.document_types:>4} new, {len(s.document_types)} existing")
        print(f"  Storage paths  : {i.storage_paths:>4} new, {len(s.storage_paths)} existing")
        print(f"  Custom fields  : {i.custom_fields:>4} new, {len(s.custom_fields)} existing")
        print()

    _emit(args, result, text)
    return EXIT_OK


def _print_diff(diff) -> None:
    _rule(f"Changes for {diff.country}: {'yes' if diff.has_changes else 'none'}")
    for label, items in (
        ("Tags", diff.new_tags),
        ("Document types", diff.new_document_types),
        ("Storage paths", diff.new_storage_paths),
        ("Custom fields", diff.new_custom_fields),
    ):
        if items:
            print(f"  {label} ({len(items)}):")
            for item in items:
                print(f"    + {item.name}  [{item.entity_type}]")
    if diff.retention_changes:
        print(f"  Retention changes ({len(diff.retention_changes)}):")
        for c in diff.retention_changes:
            print(f"    ~ {c.entity_type}: {c.path}  "
                  f"{c.old_years} → {c.new_years} years ({c.new_authority})")
    print()


def _cmd_diff(args, session: RecordsSession) -> int:
    diff = session.synchronizer.detect_changes(UpdateOptions(entity_types=args.entity_types))
    _emit(args, diff, lambda: _print_diff(diff))
    return EXIT_OK


def _cmd_update(args, session: RecordsSession) -> int:
    result = session.synchronizer.update(UpdateOptions(
        dry_run=args.dry_run, auto_approve=args.auto_approve,
        entity_types=args.entity_types,
    ))

    def text() -> None:
        _print_diff(result.diff)
        for e in result.errors:
            print(f"  {e}")
        if result.success and not result.dry_run:
            a = result.applied
            print(f"  Applied: {a.tags} tags, {a.document_types} document types, "
                  f"{a.storage_paths} storage paths, {a.custom_fields} custom fields")
        print()

    _emit(args, result, text)
    return EXIT_REVIEW if result.requires_manual_review else EXIT_OK


def _cmd_migrate(args, session: RecordsSession) -> int:
    result = session.migration_mapper(_entity(args)).migrate_all_documents()

    def text() -> None:
        _rule(f"Migration {result.timestamp}")
        print(f"  Documents     : {result.total_documents}")
        print(f"  Automatic     : {result.auto_mapped}")
        print(f"  Manual review : {result.manual_review}")
        print(f"  Failed        : {result.failed}")
        for entry in result.mapping_log:
            if entry.error:
                print(f"    #{entry.document_id} ({entry.original_type}): {entry.error}")
        print()

    _emit(args, result, text)
    return EXIT_OK


def _ask(doc: Document, alternatives: list[str]) -> Optional[str]:
    print(f"\n#{doc.id}  {doc.title}  [{doc.document_type or 'no type'}]")
    for n, alt in enumerate(alternatives, 1):
        print(f"  {n}. {alt}")
    answer = input("Choose a number (blank to skip): ").strip()
    if answer.isdigit() and 1 <= int(answer) <= len(alternatives):
        return alternatives[int(answer) - 1]
    return None


def _cmd_review(args, session: RecordsSession) -> int:
    mapper = session.migration_mapper(_entity(args))
    candidates = mapper.get_documents_for_manual_review()
    if args.json_output:
        _print_json(candidates)
        return EXIT_OK
    if not candidates:
        print("Nothing left for manual review.")
        return EXIT_OK
    for candidate in candidates:
        entry = mapper.prompt_manual_review(candidate.document.id, _ask)
        print(f"  → {entry.method.value}" + (f": {entry.new_path}" if entry.new_path else ""))
    return EXIT_OK


_READ_ONLY = {
    "browse": _cmd_browse,
    "search": _cmd_search,
    "resolve": _cmd_resolve,
    "suggest": _cmd_suggest,
    "validate-mappings": _cmd_validate_mappings,
}
_WITH_STORE = {
    "install": _cmd_install,
    "diff": _cmd_diff,
    "update": _cmd_update,
    "migrate": _cmd_migrate,
    "review": _cmd_review,
}


# ── Main logic ─────────────────────────────────────────────────────────────

def _entity(args: argparse.Namespace) -> str:
    return getattr(args, "entity", None) or get_settings().default_entity_type


def run(args: argparse.Namespace) -> int:
    """Execute one sub-command.

    Returns:
        Exit code (see module docstring).
    """
    settings = get_settings()
    if args.country:
        settings = dataclasses.replace(settings, country=args.country)

    try:
        if args.command in _READ_ONLY:
            registry = build_registry(settings) if args.country else get_registry()
            return _READ_ONLY[args.command](args, registry, settings)
        session = build_session(settings) if args.country else get_session()
        return _WITH_STORE[args.command](args, session)
    except TaxonomyInstallationError as exc:
        logger.debug("Installation error context: %s", exc.context)
        print(f"ERROR: {exc}", file=sys.stderr)
        for detail in exc.errors:
            print(f"  - {detail}", file=sys.stderr)
        return EXIT_ERROR
    except RecordsTaxonomyError as exc:
        logger.exception("%s failed", args.command)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_ERROR


def main() -> None:
    """Entry point for the records-taxonomy console script."""
    parser = _build_parser()
    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(EXIT_USAGE)

    sys.exit(run(args))


if __name__ == "__main__":
    main()
