"""Adapter contract shared by the Tracker and Board stores.

Both adapters translate their store's native records into the canonical
``CanonicalProject`` / ``CanonicalItem`` shapes and expose the same
operations, so the engine never sees a native field name.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Protocol

import requests

from notion_github_sync.core.github import GitHubAPIError
from notion_github_sync.core.notion import NotionAPIError
from notion_github_sync.errors import (
    CreateFailed,
    UpdateFailed,
    UpstreamUnavailable,
)
from notion_github_sync.sync.models import (
    CanonicalItem,
    CanonicalProject,
    WriteResult,
)

logger = logging.getLogger(__name__)

DRY_RUN_PREFIX = "dry-run-"

CONTENT_FIELDS = frozenset({"title", "description", "status"})
LINK_FIELDS = frozenset(
    {"counterpart_id", "counterpart_url", "counterpart_number"}
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_dry_run_id(entity_id: str | None) -> bool:
    """True for ids synthesised by a dry-run create."""
    return bool(entity_id) and entity_id.startswith(DRY_RUN_PREFIX)


def check_patch(patch: dict[str, Any], allowed: frozenset[str]) -> None:
    """Reject patch keys the store cannot hold."""
    unknown = set(patch) - allowed
    if unknown:
        raise ValueError(
            f"Unsupported patch fields: {', '.join(sorted(unknown))}"
        )


@contextmanager
def upstream_errors(
    operation: str,
    entity_id: str | None = None,
    kind: str = "read",
) -> Iterator[None]:
    """Translate transport failures into the sync error taxonomy.

    Connection errors, timeouts, and auth/rate-limit/server responses
    become ``UpstreamUnavailable``.  Other rejections become
    ``CreateFailed`` or ``UpdateFailed`` depending on *kind*, and
    ``UpstreamUnavailable`` for reads.

    Args:
        operation: Operation name recorded on the raised error.
        entity_id: Entity involved, if any.
        kind: ``"read"``, ``"create"``, or ``"update"``.
    """
    try:
        yield
    except requests.RequestException as exc:
        raise UpstreamUnavailable(operation, str(exc), entity_id) from exc
    except (NotionAPIError, GitHubAPIError) as exc:
        if exc.is_transient:
            raise UpstreamUnavailable(
                operation, str(exc), entity_id
            ) from exc
        if kind == "create":
            raise CreateFailed(operation, str(exc), entity_id) from exc
        if kind == "update":
            raise UpdateFailed(operation, str(exc), entity_id) from exc
        raise UpstreamUnavailable(operation, str(exc), entity_id) from exc


class RecordStore(Protocol):
    """Operations the engine needs from either store."""

    def list_projects(self) -> list[CanonicalProject]:
        """All projects.  Raises ``UpstreamUnavailable``."""
        ...  # pragma: no cover

    def list_items(
        self, project_id: str | None = None
    ) -> list[CanonicalItem]:
        """Items, optionally only those of one project."""
        ...  # pragma: no cover

    def find_project_by_id(
        self, project_id: str
    ) -> CanonicalProject | None:
        """The project, or ``None`` if it no longer exists."""
        ...  # pragma: no cover

    def find_item_by_id(self, item_id: str) -> CanonicalItem | None:
        """The item, or ``None`` if it no longer exists."""
        ...  # pragma: no cover

    def upsert_project(
        self, project_id: str, patch: dict[str, Any], dry_run: bool = False
    ) -> WriteResult:
        """Partially update a project and stamp its checkpoint."""
        ...  # pragma: no cover

    def upsert_item(
        self, item_id: str, patch: dict[str, Any], dry_run: bool = False
    ) -> WriteResult:
        """Partially update an item and stamp its checkpoint."""
        ...  # pragma: no cover

    def create_project(
        self, title: str, description: str = "", dry_run: bool = False
    ) -> CanonicalProject:
        """Create a project.  Raises ``CreateFailed``."""
        ...  # pragma: no cover

    def create_item(
        self,
        project_id: str,
        title: str,
        description: str = "",
        dry_run: bool = False,
    ) -> CanonicalItem:
        """Create an item under a project.  Raises ``CreateFailed``."""
        ...  # pragma: no cover


TrackerStore = RecordStore
BoardStore = RecordStore
