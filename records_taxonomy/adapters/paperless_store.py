"""
adapters/paperless_store.py
──────────────────────────────────────────────────────────────────────────────
Implements DocumentStorePort against the paperless-ngx REST API.

Key behaviour:
  - Token authentication (``Authorization: Token <key>``) via raw requests
  - List endpoints are paginated; ``next`` URLs are followed to the end
  - Retries on 429 / 500 / 502 / 503 with exponential back-off
  - 401 / 403 → AuthenticationError; any other failure → DocumentStoreError
  - Name matching for get-or-create is case-insensitive
  - Documents are returned with tag and document-type IDs resolved to names

Required env vars:
  PAPERLESS_URL        — e.g. http://localhost:8000
  PAPERLESS_API_TOKEN  — API token from the paperless admin / profile page
"""
from __future__ import annotations

import logging
import re
import time
from typing import Any, Optional

import requests

from records_taxonomy.config.settings import Settings
from records_taxonomy.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DocumentStoreError,
)
from records_taxonomy.domain.models import (
    CustomField,
    Document,
    DocumentType,
    StoragePath,
    Tag,
)

logger = logging.getLogger(__name__)

_RETRY_STATUSES = (429, 500, 502, 503)
_MATCH_NONE = 0  # paperless matching_algorithm: no automatic matching


def _slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.lower())


def _last_segment(path: str) -> str:
    parts = [p for p in path.split("/") if p]
    return parts[-1] if parts else path


class PaperlessDocumentStore:
    """paperless-ngx adapter.

    Injected into the installer, synchroniser and migration mapper via
    services/container.py.

    Every public method issues its HTTP calls sequentially and returns only
    once they complete; callers never see a partially applied request.
    """

    def __init__(self, settings: Settings) -> None:
        if not settings.paperless_url:
            raise ConfigurationError(
                "PAPERLESS_URL is not set. Add it to your .env file or environment."
            )
        if not settings.paperless_api_token:
            raise AuthenticationError(
                "PAPERLESS_API_TOKEN is not set. "
                "Add it to your .env file or environment."
            )
        self._settings = settings
        self._base_url = settings.paperless_url.rstrip("/") + "/api"
        self._headers = {
            "Authorization": f"Token {settings.paperless_api_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        logger.debug("PaperlessDocumentStore ready | url=%s", self._base_url)

    # ── DocumentStorePort: tags ────────────────────────────────────────────

    def list_tags(self) -> list[Tag]:
        return [Tag.model_validate(t) for t in self._fetch_all("/tags/")]

    def get_or_create_tag(self, name: str, color: Optional[str] = None) -> Tag:
        existing = _find_by_name(self.list_tags(), name)
        if existing:
            return existing
        body: dict[str, Any] = {
            "name": name,
            "slug": _slugify(name),
            "matching_algorithm": _MATCH_NONE,
        }
        if color:
            body["color"] = color
        logger.debug("Creating tag %r", name)
        return Tag.model_validate(self._request("POST", "/tags/", json=body))

    def delete_tag(self, tag_id: int) -> None:
        self._request("DELETE", f"/tags/{tag_id}/")

    # ── DocumentStorePort: document types ──────────────────────────────────

    def list_document_types(self) -> list[DocumentType]:
        return [DocumentType.model_validate(d) for d in self._fetch_all("/document_types/")]

    def get_or_create_document_type(self, name: str) -> DocumentType:
        existing = _find_by_name(self.list_document_types(), name)
        if existing:
            return existing
        body = {
            "name": name,
            "slug": _slugify(name),
            "matching_algorithm": _MATCH_NONE,
        }
        logger.debug("Creating document type %r", name)
        return DocumentType.model_validate(
            self._request("POST", "/document_types/", json=body)
        )

    def delete_document_type(self, type_id: int) -> None:
        self._request("DELETE", f"/document_types/{type_id}/")

    # ── DocumentStorePort: storage paths ───────────────────────────────────

    def list_storage_paths(self) -> list[StoragePath]:
        return [StoragePath.model_validate(p) for p in self._fetch_all("/storage_paths/")]

    def get_or_create_storage_path(self, path: str) -> StoragePath:
        name = _last_segment(path)
        paths = self.list_storage_paths()
        for candidate in paths:
            if candidate.path.lower() == path.lower():
                return candidate
        # paperless enforces a unique (owner, name) pair
        existing = _find_by_name(paths, name)
        if existing:
            return existing
        logger.debug("Creating storage path %r", path)
        return StoragePath.model_validate(
            self._request("POST", "/storage_paths/", json={"name": name, "path": path})
        )

    def delete_storage_path(self, path_id: int) -> None:
        self._request("DELETE", f"/storage_paths/{path_id}/")

    # ── DocumentStorePort: custom fields ───────────────────────────────────

    def list_custom_fields(self) -> list[CustomField]:
        return [CustomField.model_validate(f) for f in self._fetch_all("/custom_fields/")]

    def create_custom_field(self, name: str, data_type: str) -> CustomField:
        logger.debug("Creating custom field %r (%s)", name, data_type)
        return CustomField.model_validate(
            self._request(
                "POST", "/custom_fields/", json={"name": name, "data_type": data_type}
            )
        )

    def delete_custom_field(self, field_id: int) -> None:
        self._request("DELETE", f"/custom_fields/{field_id}/")

    # ── DocumentStorePort: documents ───────────────────────────────────────

    def get_documents(self) -> list[Document]:
        tag_names = {t.id: t.name for t in self.list_tags()}
        type_names = {d.id: d.name for d in self.list_document_types()}
        return [
            _to_document(raw, tag_names, type_names)
            for raw in self._fetch_all("/documents/")
        ]

    def update_document(self, document_id: int, tags: list[str]) -> Document:
        existing = {t.name.lower(): t for t in self.list_tags()}
        tag_ids: list[int] = []
        for name in tags:
            tag = existing.get(name.lower())
            if tag is None:
                tag = self.get_or_create_tag(name)
                existing[tag.name.lower()] = tag
            if tag.id not in tag_ids:
                tag_ids.append(tag.id)

        raw = self._request(
            "PATCH", f"/documents/{document_id}/", json={"tags": tag_ids}
        )
        tag_names = {t.id: t.name for t in existing.values()}
        type_names = {d.id: d.name for d in self.list_document_types()}
        return _to_document(raw, tag_names, type_names)

    # ── Private helpers ────────────────────────────────────────────────────

    def _fetch_all(self, endpoint: str) -> list[dict]:
        """GET every page of a paginated list endpoint."""
        results: list[dict] = []
        url: Optional[str] = self._base_url + endpoint
        params: Optional[dict] = {"page_size": self._settings.page_size}
        while url:
            page = self._request("GET", url, params=params)
            if not isinstance(page, dict) or "results" not in page:
                raise DocumentStoreError(f"Unexpected list response from {endpoint}")
            results.extend(page["results"])
            url = page.get("next")
            params = None  # the next URL already carries the query string
        return results

    def _request(
        self,
        method: str,
        endpoint_or_url: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Issue one HTTP call with back-off on 429 / 5xx; return the decoded body."""
        url = (
            endpoint_or_url
            if endpoint_or_url.startswith("http")
            else self._base_url + endpoint_or_url
        )
        retries = max(1, self._settings.request_retries)
        delay = 1.0
        last_error = ""

        for attempt in range(1, retries + 1):
            try:
                resp = requests.request(
                    method,
                    url,
                    headers=self._headers,
                    json=json,
                    params=params,
                    timeout=self._settings.request_timeout,
                )
            except requests.RequestException as exc:
                last_error = str(exc)
                logger.warning(
                    "paperless %s %s error (attempt %d/%d): %s",
                    method, url, attempt, retries, exc,
                )
                if attempt == retries:
                    raise DocumentStoreError(
                        f"paperless {method} {url} failed: {exc}"
                    ) from exc
                time.sleep(delay)
                delay *= 2
                continue

            if resp.status_code in (401, 403):
                raise AuthenticationError(
                    f"paperless returned {resp.status_code}. "
                    "Check that PAPERLESS_API_TOKEN is valid."
                )

            if resp.status_code in _RETRY_STATUSES:
                last_error = f"HTTP {resp.status_code}"
                logger.warning(
                    "paperless %d on %s %s (attempt %d/%d) — back-off %.1fs",
                    resp.status_code, method, url, attempt, retries, delay,
                )
                if attempt < retries:
                    time.sleep(delay)
                    delay *= 2
                continue

            if not resp.ok:
                raise DocumentStoreError(
                    f"paperless {method} {url} → HTTP {resp.status_code}: "
                    f"{resp.text[:300]}"
                )

            if resp.status_code == 204 or not resp.content:
                return None
            try:
                return resp.json()
            except ValueError as exc:
                raise DocumentStoreError(
                    f"paperless {method} {url} returned a non-JSON body"
                ) from exc

        raise DocumentStoreError(
            f"paperless {method} {url} failed after {retries} attempts ({last_error})"
        )


# ── Helpers ────────────────────────────────────────────────────────────────

def _find_by_name(items, name: str):
    wanted = name.strip().lower()
    return next((item for item in items if item.name.lower() == wanted), None)


def _to_document(
    raw: dict,
    tag_names: dict[int, str],
    type_names: dict[int, str],
) -> Document:
    type_id = raw.get("document_type")
    return Document(
        id=raw["id"],
        title=raw.get("title") or "",
        document_type=type_names.get(type_id) if type_id is not None else None,
        tags=[tag_names[t] for t in raw.get("tags", []) if t in tag_names],
        created=raw.get("created"),
    )
