"""
adapters/json_audit.py
──────────────────────────────────────────────────────────────────────────────
Implements AuditSinkPort and RetentionBaselinePort as JSON files on disk.

  <audit_dir>/migration-<timestamp>.json        one file per migration run
  <state_dir>/retention/<COUNTRY>/<entity>.json  retention baseline

Run timestamps are ISO-8601; ':' is replaced by '-' in file names so they are
valid on every filesystem.  Files are written to a temporary sibling and then
renamed, so a crash never leaves a half-written record behind.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from records_taxonomy.domain.exceptions import RecordsTaxonomyError
from records_taxonomy.domain.models import MigrationResult

logger = logging.getLogger(__name__)

_MIGRATION_PREFIX = "migration-"


def _write_json(path: Path, payload) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    tmp.replace(path)


def migration_filename(timestamp: str) -> str:
    return f"{_MIGRATION_PREFIX}{timestamp.replace(':', '-')}.json"


class JsonAuditSink:
    """Stores each MigrationResult, including its full log, as one JSON file."""

    def __init__(self, audit_dir: Path) -> None:
        self._dir = Path(audit_dir)

    def save_migration(self, result: MigrationResult) -> str:
        path = self._dir / migration_filename(result.timestamp)
        _write_json(path, result.to_dict())
        logger.info("Migration audit written to %s", path)
        return str(path)

    def load_migration(self, timestamp: str) -> Optional[MigrationResult]:
        return self._read(self._dir / migration_filename(timestamp))

    def latest_migration(self) -> Optional[MigrationResult]:
        if not self._dir.is_dir():
            return None
        # ISO timestamps sort lexicographically in chronological order
        files = sorted(self._dir.glob(f"{_MIGRATION_PREFIX}*.json"))
        return self._read(files[-1]) if files else None

    def _read(self, path: Path) -> Optional[MigrationResult]:
        if not path.is_file():
            return None
        try:
            return MigrationResult.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            raise RecordsTaxonomyError(f"Unreadable migration audit {path}: {exc}") from exc


class JsonRetentionBaseline:
    """Keeps the retention values last provisioned for each entity type."""

    def __init__(self, state_dir: Path) -> None:
        self._dir = Path(state_dir) / "retention"

    def load_baseline(self, country: str, entity_type: str) -> Optional[dict[str, dict]]:
        path = self._path(country, entity_type)
        if not path.is_file():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable retention baseline %s: %s", path, exc)
            return None

    def save_baseline(
        self, country: str, entity_type: str, baseline: dict[str, dict]
    ) -> None:
        path = self._path(country, entity_type)
        try:
            _write_json(path, baseline)
        except OSError as exc:
            raise RecordsTaxonomyError(
                f"Could not write retention baseline {path}: {exc}"
            ) from exc
        logger.debug("Retention baseline written to %s (%d activities)", path, len(baseline))

    def _path(self, country: str, entity_type: str) -> Path:
        return self._dir / country / f"{entity_type}.json"
