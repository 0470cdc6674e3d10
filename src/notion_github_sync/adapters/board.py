"""Board adapter: GitHub ProjectV2 boards and repository issues.

Board projects are organization ProjectV2 boards; Board items are issues
in one destination repository that have been added to a board.  Project
status is the board's ``closed`` flag and item status the issue state.

GitHub has nowhere to store a sync checkpoint, so ``upsert_*`` here
writes content only.  The engine stamps the Tracker side after every
Board write.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from notion_github_sync.core.github import GitHubClient
from notion_github_sync.sync.models import (
    BoardState,
    CanonicalItem,
    CanonicalProject,
    WriteResult,
)

from .base import (
    CONTENT_FIELDS,
    DRY_RUN_PREFIX,
    check_patch,
    is_dry_run_id,
    upstream_errors,
    utcnow,
)

logger = logging.getLogger(__name__)

DRY_RUN_URL = "https://github.com/dry-run"


class BoardAdapter:
    """Read and write Board projects and items on GitHub.

    Args:
        client: GitHub GraphQL transport.
        repository: Repository (in the client's organization) that new
            items are created in.
        clock: Source of "now" for synthetic dry-run records.
    """

    def __init__(
        self,
        client: GitHubClient,
        repository: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client
        self.repository = repository
        self.clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_projects(self) -> list[CanonicalProject]:
        with upstream_errors("list_projects"):
            nodes = self.client.list_projects()
        return [p for p in (self._to_project(n) for n in nodes) if p]

    def list_items(
        self, project_id: str | None = None
    ) -> list[CanonicalItem]:
        """Issues on the board *project_id*.

        The Board has no global item listing, so a project id is required;
        a project created under dry run has no items.
        """
        if project_id is None:
            raise ValueError("Board items can only be listed per project")
        if is_dry_run_id(project_id):
            return []
        with upstream_errors("list_items", project_id):
            nodes = self.client.list_project_issues(project_id)
        return [
            i
            for i in (self._to_item(n, project_id) for n in nodes)
            if i
        ]

    def find_project_by_id(
        self, project_id: str
    ) -> CanonicalProject | None:
        if is_dry_run_id(project_id):
            return None
        with upstream_errors("find_project_by_id", project_id):
            node = self.client.get_project(project_id)
        return self._to_project(node) if node else None

    def find_item_by_id(self, item_id: str) -> CanonicalItem | None:
        if is_dry_run_id(item_id):
            return None
        with upstream_errors("find_item_by_id", item_id):
            node = self.client.get_issue(item_id)
        return self._to_item(node) if node else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_project(
        self, project_id: str, patch: dict[str, Any], dry_run: bool = False
    ) -> WriteResult:
        check_patch(patch, CONTENT_FIELDS)
        if dry_run or is_dry_run_id(project_id):
            logger.info(
                "[DRY RUN] Would update GitHub project %s: %s",
                project_id,
                patch,
            )
            return WriteResult(
                entity_id=project_id, fields=patch, applied=False
            )

        closed = None
        if "status" in patch:
            closed = BoardState(patch["status"]) == BoardState.CLOSED

        with upstream_errors("upsert_project", project_id, kind="update"):
            self.client.update_project(
                project_id,
                title=patch.get("title"),
                short_description=patch.get("description"),
                closed=closed,
            )
        return WriteResult(entity_id=project_id, fields=patch, applied=True)

    def upsert_item(
        self, item_id: str, patch: dict[str, Any], dry_run: bool = False
    ) -> WriteResult:
        check_patch(patch, CONTENT_FIELDS)
        if dry_run or is_dry_run_id(item_id):
            logger.info(
                "[DRY RUN] Would update GitHub issue %s: %s", item_id, patch
            )
            return WriteResult(entity_id=item_id, fields=patch, applied=False)

        with upstream_errors("upsert_item", item_id, kind="update"):
            if "status" in patch:
                if BoardState(patch["status"]) == BoardState.CLOSED:
                    self.client.close_issue(item_id)
                else:
                    self.client.reopen_issue(item_id)
            if "title" in patch or "description" in patch:
                self.client.update_issue(
                    item_id,
                    title=patch.get("title"),
                    body=patch.get("description"),
                )
        return WriteResult(entity_id=item_id, fields=patch, applied=True)

    def create_project(
        self, title: str, description: str = "", dry_run: bool = False
    ) -> CanonicalProject:
        if dry_run:
            logger.info("[DRY RUN] Would create GitHub project: %s", title)
            return CanonicalProject(
                id=f"{DRY_RUN_PREFIX}{uuid.uuid4().hex[:12]}",
                title=title,
                description=description,
                status=BoardState.OPEN.value,
                url=DRY_RUN_URL,
                updated_at=self.clock(),
            )

        with upstream_errors("create_project", kind="create"):
            node = self.client.create_project(title)
            if description:
                # createProjectV2 takes no description; set it afterwards
                node = self.client.update_project(
                    node["id"], short_description=description
                )
        logger.info("Created GitHub project #%s: %s", node["number"], title)
        return self._to_project(node)

    def create_item(
        self,
        project_id: str,
        title: str,
        description: str = "",
        dry_run: bool = False,
    ) -> CanonicalItem:
        if dry_run or is_dry_run_id(project_id):
            logger.info(
                "[DRY RUN] Would create GitHub issue in %s: %s",
                self.repository,
                title,
            )
            return CanonicalItem(
                id=f"{DRY_RUN_PREFIX}{uuid.uuid4().hex[:12]}",
                title=title,
                description=description,
                status=BoardState.OPEN.value,
                project_id=project_id,
                url=DRY_RUN_URL,
                number=0,
                updated_at=self.clock(),
            )

        with upstream_errors("create_item", project_id, kind="create"):
            node = self.client.create_issue(
                self.repository, title, description or None
            )
            self.client.add_issue_to_project(project_id, node["id"])
        logger.info("Created GitHub issue #%s: %s", node["number"], title)
        return self._to_item(node, project_id)

    # ------------------------------------------------------------------
    # Native -> canonical
    # ------------------------------------------------------------------

    def _to_project(self, node: dict) -> CanonicalProject | None:
        if not node.get("title"):
            logger.warning(
                "Dropping GitHub project %s: missing title", node.get("id")
            )
            return None
        state = BoardState.CLOSED if node.get("closed") else BoardState.OPEN
        return CanonicalProject(
            id=node["id"],
            title=node["title"],
            description=node.get("shortDescription") or "",
            status=state.value,
            url=node.get("url"),
            updated_at=node["updatedAt"],
        )

    def _to_item(
        self, node: dict, project_id: str | None = None
    ) -> CanonicalItem | None:
        if not node.get("title"):
            logger.warning(
                "Dropping GitHub issue %s: missing title", node.get("id")
            )
            return None
        return CanonicalItem(
            id=node["id"],
            title=node["title"],
            status=BoardState(node.get("state") or "OPEN").value,
            project_id=project_id,
            description=node.get("body") or "",
            url=node.get("url"),
            number=node.get("number"),
            updated_at=node["updatedAt"],
        )
