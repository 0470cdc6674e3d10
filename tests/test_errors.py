"""Tests for the sync error taxonomy and transport error mapping."""

import pytest
import requests

from notion_github_sync.adapters.base import check_patch, is_dry_run_id, upstream_errors
from notion_github_sync.core.github import GitHubAPIError
from notion_github_sync.core.notion import NotionAPIError
from notion_github_sync.errors import (
    ConfigurationInvalid,
    CreateFailed,
    SyncError,
    UpdateFailed,
    UpstreamUnavailable,
)


class TestSyncError:
    def test_message_includes_operation_and_entity(self):
        err = CreateFailed("create_item", "422 Unprocessable", "a-1")

        assert str(err) == "create_item [a-1]: 422 Unprocessable"
        assert err.operation == "create_item"
        assert err.entity_id == "a-1"
        assert err.detail == "422 Unprocessable"

    def test_message_without_entity(self):
        assert str(UpstreamUnavailable("list_projects", "timeout")) == (
            "list_projects: timeout"
        )

    def test_hierarchy(self):
        assert issubclass(UpstreamUnavailable, SyncError)
        assert issubclass(CreateFailed, SyncError)
        assert issubclass(UpdateFailed, SyncError)
        assert issubclass(ConfigurationInvalid, ValueError)
        assert not issubclass(ConfigurationInvalid, SyncError)


class TestUpstreamErrors:
    def test_connection_error(self):
        with pytest.raises(UpstreamUnavailable) as exc_info:
            with upstream_errors("list_items", "p-1"):
                raise requests.ConnectionError("refused")

        assert exc_info.value.entity_id == "p-1"
        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    @pytest.mark.parametrize("kind", ["read", "create", "update"])
    def test_transient_api_error_is_unavailable(self, kind):
        with pytest.raises(UpstreamUnavailable):
            with upstream_errors("op", kind=kind):
                raise NotionAPIError(503, "service_unavailable", "busy")

    @pytest.mark.parametrize(
        "kind,expected",
        [
            ("create", CreateFailed),
            ("update", UpdateFailed),
            ("read", UpstreamUnavailable),
        ],
    )
    def test_rejection_maps_by_kind(self, kind, expected):
        with pytest.raises(expected):
            with upstream_errors("op", kind=kind):
                raise GitHubAPIError("invalid input", error_types=["UNPROCESSABLE"])

    def test_other_exceptions_pass_through(self):
        with pytest.raises(KeyError):
            with upstream_errors("op"):
                raise KeyError("data")


class TestHelpers:
    def test_is_dry_run_id(self):
        assert is_dry_run_id("dry-run-abc")
        assert not is_dry_run_id("PVT_1")
        assert not is_dry_run_id(None)

    def test_check_patch(self):
        check_patch({"title": "x"}, frozenset({"title"}))
        with pytest.raises(ValueError, match="bogus"):
            check_patch({"bogus": 1}, frozenset({"title"}))
