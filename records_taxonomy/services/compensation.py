"""
services/compensation.py
──────────────────────────────────────────────────────────────────────────────
InstallationState: the transaction log of one install/update call.

Every resource the call creates in the document store is pushed together
with the action that deletes it again.  rollback() replays those actions:
custom fields first, then storage paths, document types and finally tags,
each kind in reverse creation order.  A failing delete is logged and the
rollback carries on with the next entry.

The state belongs to exactly one in-flight call and is discarded afterwards.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

TAG = "tag"
DOCUMENT_TYPE = "document_type"
STORAGE_PATH = "storage_path"
CUSTOM_FIELD = "custom_field"

# Rollback replays kinds in this order
_ROLLBACK_RANK = {CUSTOM_FIELD: 0, STORAGE_PATH: 1, DOCUMENT_TYPE: 2, TAG: 3}


@dataclass(frozen=True)
class Compensation:
    kind: str
    resource_id: int
    name: str
    undo: Callable[[], None]


class InstallationState:
    """Ordered stack of compensating actions for created resources."""

    def __init__(self) -> None:
        self._entries: list[Compensation] = []

    def record(
        self, kind: str, resource_id: int, name: str, undo: Callable[[], None]
    ) -> None:
        if kind not in _ROLLBACK_RANK:
            raise ValueError(f"Unknown resource kind: {kind!r}")
        self._entries.append(Compensation(kind, resource_id, name, undo))

    def created(self, kind: str) -> list[int]:
        """IDs of ``kind`` created so far, in creation order."""
        return [e.resource_id for e in self._entries if e.kind == kind]

    def count(self, kind: str) -> int:
        return sum(1 for e in self._entries if e.kind == kind)

    def __len__(self) -> int:
        return len(self._entries)

    def rollback(self) -> list[str]:
        """Undo every recorded creation and empty the log.

        Returns:
            One message per delete that failed; empty when all succeeded.
        """
        # newest first, then a stable sort by kind keeps that order within a kind
        plan = sorted(reversed(self._entries), key=lambda e: _ROLLBACK_RANK[e.kind])
        failures: list[str] = []
        logger.warning("Rolling back %d created resources", len(plan))

        for entry in plan:
            try:
                entry.undo()
                logger.debug("Rolled back %s %r (id=%d)", entry.kind, entry.name, entry.resource_id)
            except Exception as exc:  # noqa: BLE001 - one stuck resource must not stop the rest
                msg = f"Failed to delete {entry.kind} {entry.name!r} (id={entry.resource_id}): {exc}"
                logger.warning(msg)
                failures.append(msg)

        self._entries.clear()
        return failures

    def discard(self) -> None:
        """Forget every entry once the call has succeeded."""
        self._entries.clear()
