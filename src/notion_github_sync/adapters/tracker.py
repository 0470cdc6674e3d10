"""Tracker adapter: Notion "Projects" and "Actions" databases.

Translates Notion pages into canonical projects/items and canonical
patches back into Notion property payloads.  Notion property names are
private to this module.

Every ``upsert_*`` stamps the ``Last Sync`` date property, which is the
checkpoint the engine compares both sides' modification times against.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from notion_github_sync.core.notion import NotionAPIError, NotionClient
from notion_github_sync.sync.models import (
    CanonicalItem,
    CanonicalProject,
    WriteResult,
)

from .base import (
    CONTENT_FIELDS,
    DRY_RUN_PREFIX,
    LINK_FIELDS,
    check_patch,
    upstream_errors,
    utcnow,
)

logger = logging.getLogger(__name__)

# Notion property names
NAME = "Name"
STATUS = "Status"
DESCRIPTION = "Description"
PROJECT = "Project"
LAST_SYNC = "Last Sync"
PROJECT_LINK_ID = "GitHub Project ID"
PROJECT_LINK_URL = "GitHub Project URL"
ITEM_LINK_ID = "GitHub Issue ID"
ITEM_LINK_NUMBER = "GitHub Issue #"
ITEM_LINK_URL = "GitHub Issue URL"

DEFAULT_STATUS = "Not Started"

# Notion caps a single rich_text segment at 2000 characters
_RICH_TEXT_LIMIT = 2000

_PROJECT_FIELDS = (CONTENT_FIELDS | LINK_FIELDS) - {"counterpart_number"}
_ITEM_FIELDS = CONTENT_FIELDS | LINK_FIELDS


# ---------------------------------------------------------------------------
# Property readers
# ---------------------------------------------------------------------------


def _plain_text(prop: dict | None, kind: str) -> str:
    if not prop:
        return ""
    return "".join(
        part.get("plain_text", "") for part in prop.get(kind) or []
    )


def _select(prop: dict | None) -> str | None:
    if not prop or not prop.get("select"):
        return None
    return prop["select"].get("name")


def _date(prop: dict | None) -> str | None:
    if not prop or not prop.get("date"):
        return None
    return prop["date"].get("start")


def _relation_ids(prop: dict | None) -> list[str]:
    if not prop:
        return []
    return [r["id"] for r in prop.get("relation") or [] if r.get("id")]


# ---------------------------------------------------------------------------
# Property writers
# ---------------------------------------------------------------------------


def _rich_text(value: str) -> dict:
    chunks = [
        value[i : i + _RICH_TEXT_LIMIT]
        for i in range(0, len(value), _RICH_TEXT_LIMIT)
    ]
    return {"rich_text": [{"text": {"content": c}} for c in chunks]}


def _title(value: str) -> dict:
    return {"title": [{"text": {"content": value}}]}


class TrackerAdapter:
    """Read and write Tracker projects and items in Notion.

    Args:
        client: Notion REST transport.
        projects_db: Dashed id of the Projects database.
        actions_db: Dashed id of the Actions database.
        clock: Source of "now" for the checkpoint stamp.
    """

    def __init__(
        self,
        client: NotionClient,
        projects_db: str,
        actions_db: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client
        self.projects_db = projects_db
        self.actions_db = actions_db
        self.clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_projects(self) -> list[CanonicalProject]:
        with upstream_errors("list_projects"):
            pages = self.client.query_database(self.projects_db)
        return [
            p for p in (self._to_project(page) for page in pages) if p
        ]

    def list_items(
        self, project_id: str | None = None
    ) -> list[CanonicalItem]:
        relation_filter = None
        if project_id:
            relation_filter = {
                "property": PROJECT,
                "relation": {"contains": project_id},
            }
        with upstream_errors("list_items", project_id):
            pages = self.client.query_database(
                self.actions_db, filter=relation_filter
            )
        return [i for i in (self._to_item(page) for page in pages) if i]

    def find_project_by_id(
        self, project_id: str
    ) -> CanonicalProject | None:
        page = self._retrieve("find_project_by_id", project_id)
        return self._to_project(page) if page else None

    def find_item_by_id(self, item_id: str) -> CanonicalItem | None:
        page = self._retrieve("find_item_by_id", item_id)
        return self._to_item(page) if page else None

    def _retrieve(self, operation: str, page_id: str) -> dict | None:
        with upstream_errors(operation, page_id):
            try:
                page = self.client.retrieve_page(page_id)
            except NotionAPIError as exc:
                if exc.is_not_found:
                    return None
                raise
        if page.get("archived") or page.get("in_trash"):
            return None
        return page

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_project(
        self, project_id: str, patch: dict[str, Any], dry_run: bool = False
    ) -> WriteResult:
        check_patch(patch, _PROJECT_FIELDS)
        return self._update(
            "upsert_project",
            project_id,
            patch,
            {
                "counterpart_id": PROJECT_LINK_ID,
                "counterpart_url": PROJECT_LINK_URL,
            },
            dry_run,
        )

    def upsert_item(
        self, item_id: str, patch: dict[str, Any], dry_run: bool = False
    ) -> WriteResult:
        check_patch(patch, _ITEM_FIELDS)
        return self._update(
            "upsert_item",
            item_id,
            patch,
            {
                "counterpart_id": ITEM_LINK_ID,
                "counterpart_url": ITEM_LINK_URL,
                "counterpart_number": ITEM_LINK_NUMBER,
            },
            dry_run,
        )

    def _update(
        self,
        operation: str,
        page_id: str,
        patch: dict[str, Any],
        link_names: dict[str, str],
        dry_run: bool,
    ) -> WriteResult:
        if dry_run:
            logger.info(
                "[DRY RUN] Would update Notion page %s: %s", page_id, patch
            )
            return WriteResult(entity_id=page_id, fields=patch, applied=False)

        properties: dict[str, Any] = {}
        for key, value in patch.items():
            if key == "title":
                properties[NAME] = _title(value)
            elif key == "description":
                properties[DESCRIPTION] = _rich_text(value or "")
            elif key == "status":
                properties[STATUS] = {"select": {"name": value}}
            elif key == "counterpart_url":
                properties[link_names[key]] = {"url": value}
            elif key == "counterpart_number":
                properties[link_names[key]] = {"number": value}
            else:
                properties[link_names[key]] = _rich_text(value or "")

        properties[LAST_SYNC] = {
            "date": {"start": self.clock().isoformat()}
        }

        with upstream_errors(operation, page_id, kind="update"):
            self.client.update_page(page_id, properties)
        logger.debug("Updated Notion page %s: %s", page_id, sorted(patch))
        return WriteResult(entity_id=page_id, fields=patch, applied=True)

    def create_project(
        self, title: str, description: str = "", dry_run: bool = False
    ) -> CanonicalProject:
        if dry_run:
            logger.info("[DRY RUN] Would create Notion project: %s", title)
            return CanonicalProject(
                id=f"{DRY_RUN_PREFIX}{uuid.uuid4().hex[:12]}",
                title=title,
                description=description,
                status=DEFAULT_STATUS,
                updated_at=self.clock(),
            )

        properties = {
            NAME: _title(title),
            DESCRIPTION: _rich_text(description),
            STATUS: {"select": {"name": DEFAULT_STATUS}},
        }
        with upstream_errors("create_project", kind="create"):
            page = self.client.create_page(self.projects_db, properties)
        return self._to_project(page, fallback_title=title)

    def create_item(
        self,
        project_id: str,
        title: str,
        description: str = "",
        dry_run: bool = False,
    ) -> CanonicalItem:
        if dry_run:
            logger.info("[DRY RUN] Would create Notion action: %s", title)
            return CanonicalItem(
                id=f"{DRY_RUN_PREFIX}{uuid.uuid4().hex[:12]}",
                title=title,
                description=description,
                status=DEFAULT_STATUS,
                project_id=project_id,
                updated_at=self.clock(),
            )

        properties = {
            NAME: _title(title),
            DESCRIPTION: _rich_text(description),
            STATUS: {"select": {"name": DEFAULT_STATUS}},
            PROJECT: {"relation": [{"id": project_id}]},
        }
        with upstream_errors("create_item", project_id, kind="create"):
            page = self.client.create_page(self.actions_db, properties)
        return self._to_item(page, fallback_title=title)

    # ------------------------------------------------------------------
    # Native -> canonical
    # ------------------------------------------------------------------

    def _to_project(
        self, page: dict, fallback_title: str = ""
    ) -> CanonicalProject | None:
        props = page.get("properties", {})
        title = _plain_text(props.get(NAME), "title") or fallback_title
        if not title:
            logger.warning(
                "Dropping Notion project %s: missing title", page.get("id")
            )
            return None
        return CanonicalProject(
            id=page["id"],
            title=title,
            description=_plain_text(props.get(DESCRIPTION), "rich_text"),
            status=_select(props.get(STATUS)) or DEFAULT_STATUS,
            url=page.get("url"),
            counterpart_id=_plain_text(
                props.get(PROJECT_LINK_ID), "rich_text"
            )
            or None,
            counterpart_url=(props.get(PROJECT_LINK_URL) or {}).get("url"),
            last_sync_at=_date(props.get(LAST_SYNC)),
            updated_at=page["last_edited_time"],
        )

    def _to_item(
        self, page: dict, fallback_title: str = ""
    ) -> CanonicalItem | None:
        props = page.get("properties", {})
        title = _plain_text(props.get(NAME), "title") or fallback_title
        if not title:
            logger.warning(
                "Dropping Notion action %s: missing title", page.get("id")
            )
            return None
        relations = _relation_ids(props.get(PROJECT))
        return CanonicalItem(
            id=page["id"],
            title=title,
            status=_select(props.get(STATUS)) or DEFAULT_STATUS,
            project_id=relations[0] if relations else None,
            description=_plain_text(props.get(DESCRIPTION), "rich_text"),
            url=page.get("url"),
            counterpart_id=_plain_text(props.get(ITEM_LINK_ID), "rich_text")
            or None,
            counterpart_url=(props.get(ITEM_LINK_URL) or {}).get("url"),
            counterpart_number=(props.get(ITEM_LINK_NUMBER) or {}).get(
                "number"
            ),
            last_sync_at=_date(props.get(LAST_SYNC)),
            updated_at=page["last_edited_time"],
        )
