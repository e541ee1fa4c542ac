"""
tests/unit/test_paperless_store.py
──────────────────────────────────────────────────────────────────────────────
Unit tests for PaperlessDocumentStore.

All HTTP calls are intercepted with unittest.mock.patch so these tests run
fully offline — no paperless instance or PAPERLESS_API_TOKEN required.
"""
from __future__ import annotations

import dataclasses
from unittest.mock import MagicMock, patch

import pytest
import requests

from records_taxonomy.adapters.paperless_store import PaperlessDocumentStore
from records_taxonomy.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DocumentStoreError,
)

_REQUEST = "records_taxonomy.adapters.paperless_store.requests.request"
_SLEEP = "records_taxonomy.adapters.paperless_store.time.sleep"
_API = "http://paperless.test/api"


# ── Helpers ────────────────────────────────────────────────────────────────

def _response(payload=None, status: int = 200) -> MagicMock:
    """Build a mock requests.Response."""
    mock_resp = MagicMock()
    mock_resp.ok = status < 400
    mock_resp.status_code = status
    mock_resp.content = b"" if payload is None else b"{...}"
    mock_resp.text = "error body"
    mock_resp.json.return_value = payload
    return mock_resp


def _page(results: list[dict], next_url=None) -> MagicMock:
    return _response({"count": len(results), "next": next_url, "results": results})


# ── Construction ───────────────────────────────────────────────────────────

class TestConstruction:
    def test_missing_url(self, settings):
        with pytest.raises(ConfigurationError, match="PAPERLESS_URL"):
            PaperlessDocumentStore(dataclasses.replace(settings, paperless_url=""))

    def test_missing_token(self, settings):
        with pytest.raises(AuthenticationError, match="PAPERLESS_API_TOKEN"):
            PaperlessDocumentStore(dataclasses.replace(settings, paperless_api_token=""))


# ── Listing and pagination ─────────────────────────────────────────────────

class TestListing:
    def test_follows_next_links(self, settings):
        pages = [
            _page([{"id": 1, "name": "Receipt", "color": "#fff"}], f"{_API}/tags/?page=2"),
            _page([{"id": 2, "name": "Invoice"}]),
        ]
        with patch(_REQUEST, side_effect=pages) as mock_request:
            tags = PaperlessDocumentStore(settings).list_tags()

        assert [t.name for t in tags] == ["Receipt", "Invoice"]
        first, second = mock_request.call_args_list
        assert first[0] == ("GET", f"{_API}/tags/")
        assert first[1]["params"] == {"page_size": 2}
        assert second[0] == ("GET", f"{_API}/tags/?page=2")
        assert second[1]["params"] is None

    def test_sends_token_and_timeout(self, settings):
        with patch(_REQUEST, return_value=_page([])) as mock_request:
            PaperlessDocumentStore(settings).list_document_types()

        kwargs = mock_request.call_args[1]
        assert kwargs["headers"]["Authorization"] == "Token test-token"
        assert kwargs["timeout"] == 5

    def test_unexpected_list_body(self, settings):
        with patch(_REQUEST, return_value=_response([1, 2, 3])):
            with pytest.raises(DocumentStoreError, match="Unexpected list response"):
                PaperlessDocumentStore(settings).list_tags()


# ── Create-or-reuse ────────────────────────────────────────────────────────

class TestGetOrCreate:
    def test_existing_tag_is_reused(self, settings):
        with patch(_REQUEST, return_value=_page([{"id": 4, "name": "Medical Bill"}])) as mock_request:
            tag = PaperlessDocumentStore(settings).get_or_create_tag("medical bill")

        assert tag.id == 4
        assert mock_request.call_count == 1

    def test_new_tag_is_posted(self, settings):
        created = _response({"id": 9, "name": "Medical Bill", "color": "#1e90ff"}, 201)
        with patch(_REQUEST, side_effect=[_page([]), created]) as mock_request:
            tag = PaperlessDocumentStore(settings).get_or_create_tag("Medical Bill", color="#1e90ff")

        assert tag.id == 9
        method, url = mock_request.call_args[0]
        assert (method, url) == ("POST", f"{_API}/tags/")
        assert mock_request.call_args[1]["json"] == {
            "name": "Medical Bill",
            "slug": "medical-bill",
            "matching_algorithm": 0,
            "color": "#1e90ff",
        }

    def test_new_document_type_is_posted(self, settings):
        created = _response({"id": 3, "name": "Tax Return"}, 201)
        with patch(_REQUEST, side_effect=[_page([]), created]) as mock_request:
            doc_type = PaperlessDocumentStore(settings).get_or_create_document_type("Tax Return")

        assert doc_type.name == "Tax Return"
        assert mock_request.call_args[1]["json"]["slug"] == "tax-return"

    def test_storage_path_matched_by_path(self, settings):
        existing = _page([{"id": 2, "name": "Household", "path": "/HOUSEHOLD"}])
        with patch(_REQUEST, return_value=existing) as mock_request:
            sp = PaperlessDocumentStore(settings).get_or_create_storage_path("/household")

        assert sp.id == 2
        assert mock_request.call_count == 1

    def test_storage_path_created_with_last_segment_name(self, settings):
        created = _response({"id": 5, "name": "household", "path": "/household"}, 201)
        with patch(_REQUEST, side_effect=[_page([]), created]) as mock_request:
            PaperlessDocumentStore(settings).get_or_create_storage_path("/household")

        assert mock_request.call_args[1]["json"] == {"name": "household", "path": "/household"}

    def test_custom_field(self, settings):
        created = _response({"id": 1, "name": "person-name", "data_type": "string"}, 201)
        with patch(_REQUEST, return_value=created) as mock_request:
            field = PaperlessDocumentStore(settings).create_custom_field("person-name", "string")

        assert field.data_type == "string"
        assert mock_request.call_args[0] == ("POST", f"{_API}/custom_fields/")

    def test_delete_returns_none_on_204(self, settings):
        with patch(_REQUEST, return_value=_response(None, 204)) as mock_request:
            assert PaperlessDocumentStore(settings).delete_tag(7) is None
        assert mock_request.call_args[0] == ("DELETE", f"{_API}/tags/7/")


# ── Documents ──────────────────────────────────────────────────────────────

class TestDocuments:
    def test_names_are_resolved(self, settings):
        responses = [
            _page([{"id": 1, "name": "Inbox"}]),
            _page([{"id": 5, "name": "Medical Bill"}]),
            _page([{"id": 11, "title": "Dr Smith", "document_type": 5,
                    "tags": [1, 99], "created": "2024-03-01"}]),
        ]
        with patch(_REQUEST, side_effect=responses):
            (doc,) = PaperlessDocumentStore(settings).get_documents()

        assert doc.id == 11
        assert doc.document_type == "Medical Bill"
        assert doc.tags == ["Inbox"]  # unknown tag ids are dropped

    def test_update_creates_missing_tags_and_patches(self, settings):
        existing = _page([{"id": 1, "name": "HealthManagement"}])
        responses = [
            existing,                                                   # tags for resolution
            existing,                                                   # get_or_create lookup
            _response({"id": 2, "name": "MedicalCare"}, 201),           # POST tag
            _response({"id": 7, "title": "x", "tags": [1, 2], "document_type": None}),
            _page([]),                                                  # document types
        ]
        with patch(_REQUEST, side_effect=responses) as mock_request:
            doc = PaperlessDocumentStore(settings).update_document(
                7, tags=["HealthManagement", "MedicalCare"]
            )

        patch_call = mock_request.call_args_list[3]
        assert patch_call[0] == ("PATCH", f"{_API}/documents/7/")
        assert patch_call[1]["json"] == {"tags": [1, 2]}
        assert doc.tags == ["HealthManagement", "MedicalCare"]
        assert doc.document_type is None


# ── Error handling ─────────────────────────────────────────────────────────

class TestErrors:
    def test_401_raises_authentication_error(self, settings):
        with patch(_REQUEST, return_value=_response(None, 401)):
            with pytest.raises(AuthenticationError, match="401"):
                PaperlessDocumentStore(settings).list_tags()

    def test_retries_on_429_then_succeeds(self, settings):
        with patch(_REQUEST, side_effect=[_response(None, 429), _page([])]):
            with patch(_SLEEP) as mock_sleep:  # skip delay
                assert PaperlessDocumentStore(settings).list_tags() == []
        mock_sleep.assert_called_once_with(1.0)

    def test_raises_after_all_retries(self, settings):
        with patch(_REQUEST, return_value=_response(None, 503)) as mock_request:
            with patch(_SLEEP) as mock_sleep:
                with pytest.raises(DocumentStoreError, match="failed after 3 attempts"):
                    PaperlessDocumentStore(settings).list_tags()

        assert mock_request.call_count == 3
        assert [c[0][0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    def test_client_error_is_not_retried(self, settings):
        with patch(_REQUEST, return_value=_response(None, 400)) as mock_request:
            with pytest.raises(DocumentStoreError, match="HTTP 400"):
                PaperlessDocumentStore(settings).create_custom_field("x", "string")
        assert mock_request.call_count == 1

    def test_connection_errors_are_retried(self, settings):
        with patch(_REQUEST, side_effect=requests.ConnectionError("refused")) as mock_request:
            with patch(_SLEEP):
                with pytest.raises(DocumentStoreError, match="refused"):
                    PaperlessDocumentStore(settings).list_tags()
        assert mock_request.call_count == 3
