"""
domain/exceptions.py
──────────────────────────────────────────────────────────────────────────────
Custom exception hierarchy.

All exceptions are rooted at RecordsTaxonomyError so callers can catch broadly
(except RecordsTaxonomyError) or narrowly (except DocumentStoreError).

Navigation misses are never exceptions: an unknown function, service or
activity yields an empty result.  Exceptions are reserved for configuration,
I/O and provisioning failures.
"""
from __future__ import annotations


class RecordsTaxonomyError(Exception):
    """Base exception for all application errors."""


class ConfigurationError(RecordsTaxonomyError):
    """Raised when required configuration is missing or invalid."""


class AuthenticationError(RecordsTaxonomyError):
    """Raised when the document store rejects the API token."""


class DocumentStoreError(RecordsTaxonomyError):
    """Raised when a document store call fails or returns an unusable body."""


class TaxonomyLoadError(RecordsTaxonomyError):
    """Raised when a taxonomy definition cannot be parsed."""


class MappingTableError(RecordsTaxonomyError):
    """Raised when a migration mapping table is missing or malformed."""


class MigrationNotRunError(RecordsTaxonomyError):
    """Raised when migration results are requested before any run exists."""


class TaxonomyInstallationError(RecordsTaxonomyError):
    """Raised by install/update after any rollback has completed.

    Attributes:
        cause:   The underlying exception, if any.
        context: ``{"country", "entity_type", "step"}``; ``entity_type`` is
                 None when the failure is not tied to one entity type.
        errors:  Completeness errors when ``step == "validation"``, otherwise
                 any deletes that failed during rollback.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        country: str | None = None,
        entity_type: str | None = None,
        step: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.context = {
            "country": country,
            "entity_type": entity_type,
            "step": step,
        }
        self.errors = list(errors or [])

    @property
    def step(self) -> str | None:
        return self.context["step"]

    @property
    def entity_type(self) -> str | None:
        return self.context["entity_type"]
