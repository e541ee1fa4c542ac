"""
ports/audit_port.py
──────────────────────────────────────────────────────────────────────────────
Abstract interfaces for durable records written by the services.

  AuditSinkPort         — one record per migration run, keyed by run timestamp
  RetentionBaselinePort — retention values as last provisioned, per
                          (country, entity type), so that later updates can
                          detect retention-rule changes

Current implementations: JsonAuditSink, JsonRetentionBaseline
(adapters/json_audit.py).
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from records_taxonomy.domain.models import MigrationResult


@runtime_checkable
class AuditSinkPort(Protocol):
    """Contract for persisting migration runs."""

    def save_migration(self, result: MigrationResult) -> str:
        """Persist ``result`` and return the location it was written to."""
        ...

    def load_migration(self, timestamp: str) -> Optional[MigrationResult]:
        ...

    def latest_migration(self) -> Optional[MigrationResult]:
        ...


@runtime_checkable
class RetentionBaselinePort(Protocol):
    """Contract for the retention snapshot taken at provisioning time.

    A baseline maps ``"Function/Service/Activity"`` to
    ``{"years": int | None, "authority": str}``.
    """

    def load_baseline(self, country: str, entity_type: str) -> Optional[dict[str, dict]]:
        ...

    def save_baseline(
        self, country: str, entity_type: str, baseline: dict[str, dict]
    ) -> None:
        ...
