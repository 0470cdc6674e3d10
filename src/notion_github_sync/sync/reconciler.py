"""Reconciliation of one Tracker project and its items against the Board.

For each Tracker project the engine:

1. Resolves the stored Board link with ``find_project_by_id``.  A missing
   counterpart is logged and the project is treated as unlinked.
2. For an unlinked project, matches an unclaimed Board project by exact
   title, creating one only if none matches.
3. Writes the (new) link back onto the Tracker project.  On a first link
   this is the only content-free write.
4. For an already linked pair, decides the direction and propagates
   title, description, and mapped status to the stale side.  Conflicts
   write nothing.
5. Reconciles the project's items the same way.  Unpaired Tracker items
   are created on the Board; unpaired Board items are left alone because
   the Tracker is the system of record for item creation.
6. If any Board item was created or updated and the project is not in
   conflict, stamps the project checkpoint again so the Board project's
   own modification time does not read as a change next run.

Error handling is per-entity: a failure on one project or item is
logged, recorded as a failed ``EntityResult``, and the run moves on.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .direction import decide_direction
from .models import (
    BoardState,
    CanonicalItem,
    CanonicalProject,
    EntityKind,
    EntityResult,
    SyncDecision,
    SyncDirection,
    SyncOutcome,
)
from .status import (
    board_state_to_tracker_status,
    tracker_status_to_board_state,
)

if TYPE_CHECKING:
    from notion_github_sync.adapters.base import BoardStore, TrackerStore

logger = logging.getLogger(__name__)

_DIRECTION_OUTCOME = {
    SyncDirection.LEFT_TO_RIGHT: SyncOutcome.LEFT_TO_RIGHT,
    SyncDirection.RIGHT_TO_LEFT: SyncOutcome.RIGHT_TO_LEFT,
}


def _changed_fields(
    desired: dict[str, Any], current: CanonicalProject | CanonicalItem
) -> dict[str, Any]:
    """Subset of *desired* that differs from *current*."""
    return {k: v for k, v in desired.items() if getattr(current, k) != v}


def _board_state(status: str | None) -> BoardState:
    return BoardState(status or BoardState.OPEN.value)


class ReconciliationEngine:
    """Reconcile Tracker projects and items with their Board counterparts.

    Args:
        tracker: Tracker store adapter (left side).
        board: Board store adapter (right side).
        dry_run: Passed to every adapter write; nothing is mutated when True.
        log: Optional logger for per-event diagnostics.
    """

    def __init__(
        self,
        tracker: TrackerStore,
        board: BoardStore,
        dry_run: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        self.tracker = tracker
        self.board = board
        self.dry_run = dry_run
        self.log = log or logger
        self._claimed_projects: set[str] = set()
        self._wrote_board_items = False

    def claim_links(self, projects: list[CanonicalProject]) -> None:
        """Record the Board projects already linked from the Tracker.

        Title matching never binds a second Tracker project to a Board
        project claimed here.
        """
        self._claimed_projects = {
            p.counterpart_id for p in projects if p.counterpart_id
        }

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def reconcile_project(
        self, project: CanonicalProject
    ) -> list[EntityResult]:
        """Reconcile one Tracker project and then its items.

        Returns:
            The project's result followed by one result per item.
        """
        self.log.info("Processing project: %s", project.title)
        try:
            board_project, result = self._reconcile_project_pair(project)
        except Exception as exc:
            self.log.error(
                "Error reconciling project %s (%s): %s",
                project.id,
                project.title,
                exc,
            )
            return [
                EntityResult(
                    kind=EntityKind.PROJECT,
                    tracker_id=project.id,
                    board_id=project.counterpart_id,
                    title=project.title,
                    outcome=SyncOutcome.SKIPPED,
                    success=False,
                    error=str(exc),
                )
            ]

        item_results = self.reconcile_items(project, board_project)
        if self._wrote_board_items and result.outcome != SyncOutcome.CONFLICT:
            result = self._restamp_project(project, result)
        return [result] + item_results

    def _restamp_project(
        self, project: CanonicalProject, result: EntityResult
    ) -> EntityResult:
        """Advance the project checkpoint past its own item writes.

        Adding or editing Board items bumps the Board project's
        modification time, which would otherwise read as a Board-side
        change on the next run.
        """
        try:
            self.tracker.upsert_project(project.id, {}, self.dry_run)
        except Exception as exc:
            self.log.error(
                "Error advancing checkpoint for project %s (%s): %s",
                project.id,
                project.title,
                exc,
            )
            return result.model_copy(
                update={"success": False, "error": str(exc)}
            )
        return result

    def _reconcile_project_pair(
        self, project: CanonicalProject
    ) -> tuple[CanonicalProject, EntityResult]:
        board_project = None
        if project.counterpart_id:
            board_project = self.board.find_project_by_id(
                project.counterpart_id
            )
            if board_project is None:
                self.log.warning(
                    "Linked counterpart missing for project %s (%s): "
                    "board project %s not found, re-linking",
                    project.id,
                    project.title,
                    project.counterpart_id,
                )

        if board_project is not None:
            decision = decide_direction(
                project.updated_at,
                board_project.updated_at,
                project.last_sync_at,
            )
            self.log.info(
                "  Sync %s: %s (%s)",
                project.title,
                decision.direction.value,
                decision.reason,
            )
            if decision.direction == SyncDirection.CONFLICT:
                self.log.warning(
                    "  CONFLICT on project %s: manual resolution required",
                    project.title,
                )
                outcome = SyncOutcome.CONFLICT
            else:
                self._propagate_project(project, board_project, decision)
                outcome = _DIRECTION_OUTCOME[decision.direction]
            return board_project, EntityResult(
                kind=EntityKind.PROJECT,
                tracker_id=project.id,
                board_id=board_project.id,
                title=project.title,
                outcome=outcome,
                reason=decision.reason,
            )

        board_project, created = self._match_or_create_project(project)
        self.tracker.upsert_project(
            project.id,
            {
                "counterpart_id": board_project.id,
                "counterpart_url": board_project.url,
            },
            self.dry_run,
        )
        self._claimed_projects.add(board_project.id)
        return board_project, EntityResult(
            kind=EntityKind.PROJECT,
            tracker_id=project.id,
            board_id=board_project.id,
            title=project.title,
            outcome=SyncOutcome.CREATED if created else SyncOutcome.LINKED,
            reason=(
                "created board project"
                if created
                else "matched existing board project by title"
            ),
        )

    def _match_or_create_project(
        self, project: CanonicalProject
    ) -> tuple[CanonicalProject, bool]:
        """Find an unclaimed Board project with the same title or create one.

        Returns:
            ``(board_project, created)``.
        """
        for candidate in self.board.list_projects():
            if (
                candidate.title == project.title
                and candidate.id not in self._claimed_projects
            ):
                self.log.info(
                    "  Found existing board project: %s", candidate.title
                )
                return candidate, False

        created = self.board.create_project(
            project.title, project.description, self.dry_run
        )
        state = tracker_status_to_board_state(project.status)
        if state == BoardState.CLOSED:
            self.board.upsert_project(
                created.id, {"status": state.value}, self.dry_run
            )
        self.log.info("  Created board project: %s", project.title)
        return created, True

    def _propagate_project(
        self,
        project: CanonicalProject,
        board_project: CanonicalProject,
        decision: SyncDecision,
    ) -> None:
        if decision.direction == SyncDirection.LEFT_TO_RIGHT:
            patch = _changed_fields(
                {
                    "title": project.title,
                    "description": project.description,
                    "status": tracker_status_to_board_state(
                        project.status
                    ).value,
                },
                board_project,
            )
            if patch:
                self.board.upsert_project(
                    board_project.id, patch, self.dry_run
                )
            # Advance the checkpoint even when nothing changed
            self.tracker.upsert_project(project.id, {}, self.dry_run)
            return

        patch = self._tracker_patch(project, board_project)
        self.tracker.upsert_project(project.id, patch, self.dry_run)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def reconcile_items(
        self, project: CanonicalProject, board_project: CanonicalProject
    ) -> list[EntityResult]:
        """Reconcile every Tracker item of *project* against *board_project*."""
        self._wrote_board_items = False
        try:
            tracker_items = self.tracker.list_items(project.id)
            board_items = self.board.list_items(board_project.id)
        except Exception as exc:
            self.log.error(
                "Error listing items for project %s (%s): %s",
                project.id,
                project.title,
                exc,
            )
            return [
                EntityResult(
                    kind=EntityKind.ITEM,
                    tracker_id=project.id,
                    board_id=board_project.id,
                    title=project.title,
                    outcome=SyncOutcome.SKIPPED,
                    success=False,
                    error=f"listing items failed: {exc}",
                )
            ]

        self.log.info(
            "  Found %d tracker items, %d board items",
            len(tracker_items),
            len(board_items),
        )

        by_id = {b.id: b for b in board_items}
        claimed = {i.counterpart_id for i in tracker_items if i.counterpart_id}

        results: list[EntityResult] = []
        for item in tracker_items:
            try:
                results.append(
                    self._reconcile_item(
                        item, board_project, by_id, board_items, claimed
                    )
                )
            except Exception as exc:
                self.log.error(
                    "Error reconciling item %s (%s): %s",
                    item.id,
                    item.title,
                    exc,
                )
                results.append(
                    EntityResult(
                        kind=EntityKind.ITEM,
                        tracker_id=item.id,
                        board_id=item.counterpart_id,
                        title=item.title,
                        outcome=SyncOutcome.SKIPPED,
                        success=False,
                        error=str(exc),
                    )
                )
        return results

    def _reconcile_item(
        self,
        item: CanonicalItem,
        board_project: CanonicalProject,
        by_id: dict[str, CanonicalItem],
        board_items: list[CanonicalItem],
        claimed: set[str],
    ) -> EntityResult:
        counterpart = None
        if item.counterpart_id:
            counterpart = by_id.get(item.counterpart_id)
            if counterpart is None:
                counterpart = self.board.find_item_by_id(item.counterpart_id)
            if counterpart is None:
                self.log.warning(
                    "    Linked counterpart missing for item %s (%s): "
                    "board item %s not found, re-linking",
                    item.id,
                    item.title,
                    item.counterpart_id,
                )

        if counterpart is not None:
            decision = decide_direction(
                item.updated_at, counterpart.updated_at, item.last_sync_at
            )
            self.log.info(
                "    %s: %s (%s)",
                item.title,
                decision.direction.value,
                decision.reason,
            )
            if decision.direction == SyncDirection.CONFLICT:
                self.log.warning(
                    "    CONFLICT on item %s: manual resolution required",
                    item.title,
                )
                outcome = SyncOutcome.CONFLICT
            else:
                self._propagate_item(item, counterpart, decision)
                outcome = _DIRECTION_OUTCOME[decision.direction]
            return EntityResult(
                kind=EntityKind.ITEM,
                tracker_id=item.id,
                board_id=counterpart.id,
                title=item.title,
                outcome=outcome,
                reason=decision.reason,
            )

        counterpart, created = self._match_or_create_item(
            item, board_project, board_items, claimed
        )
        self.tracker.upsert_item(
            item.id,
            {
                "counterpart_id": counterpart.id,
                "counterpart_url": counterpart.url,
                "counterpart_number": counterpart.number,
            },
            self.dry_run,
        )
        claimed.add(counterpart.id)
        return EntityResult(
            kind=EntityKind.ITEM,
            tracker_id=item.id,
            board_id=counterpart.id,
            title=item.title,
            outcome=SyncOutcome.CREATED if created else SyncOutcome.LINKED,
            reason=(
                f"created board item #{counterpart.number}"
                if created
                else "matched existing board item by title"
            ),
        )

    def _match_or_create_item(
        self,
        item: CanonicalItem,
        board_project: CanonicalProject,
        board_items: list[CanonicalItem],
        claimed: set[str],
    ) -> tuple[CanonicalItem, bool]:
        for candidate in board_items:
            if candidate.title == item.title and candidate.id not in claimed:
                self.log.info(
                    "    Found existing board item #%s: %s",
                    candidate.number,
                    candidate.title,
                )
                return candidate, False

        created = self.board.create_item(
            board_project.id, item.title, item.description, self.dry_run
        )
        self._wrote_board_items = True
        state = tracker_status_to_board_state(item.status)
        if state == BoardState.CLOSED:
            self.board.upsert_item(
                created.id, {"status": state.value}, self.dry_run
            )
        self.log.info(
            "    Created board item #%s: %s", created.number, item.title
        )
        return created, True

    def _propagate_item(
        self,
        item: CanonicalItem,
        counterpart: CanonicalItem,
        decision: SyncDecision,
    ) -> None:
        if decision.direction == SyncDirection.LEFT_TO_RIGHT:
            patch = _changed_fields(
                {
                    "title": item.title,
                    "description": item.description,
                    "status": tracker_status_to_board_state(
                        item.status
                    ).value,
                },
                counterpart,
            )
            if patch:
                self.board.upsert_item(counterpart.id, patch, self.dry_run)
                self._wrote_board_items = True
            # Advance the checkpoint even when nothing changed
            self.tracker.upsert_item(item.id, {}, self.dry_run)
            return

        patch = self._tracker_patch(item, counterpart)
        self.tracker.upsert_item(item.id, patch, self.dry_run)

    @staticmethod
    def _tracker_patch(
        tracker_side: CanonicalProject | CanonicalItem,
        board_side: CanonicalProject | CanonicalItem,
    ) -> dict[str, Any]:
        """Fields to copy from the Board back onto the Tracker.

        Status is only rewritten when the Board state actually differs
        from what the Tracker status maps to, so a ``Blocked`` record on
        a still-open Board item keeps its status.
        """
        desired: dict[str, Any] = {
            "title": board_side.title,
            "description": board_side.description,
        }
        board_state = _board_state(board_side.status)
        if tracker_status_to_board_state(tracker_side.status) != board_state:
            desired["status"] = board_state_to_tracker_status(board_state)
        return _changed_fields(desired, tracker_side)
