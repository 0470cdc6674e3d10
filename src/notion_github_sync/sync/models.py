"""Pydantic models for the reconciliation engine.

Defines the store-agnostic data contracts shared by the adapters, the
engine, and the run controller:

- ``CanonicalProject`` / ``CanonicalItem``: one record on either store.
- ``SyncDirection`` / ``SyncDecision``: outcome of the direction check.
- ``BoardState``: the Board's two-valued lifecycle state.
- ``WriteResult``: what an adapter write did (or would do under dry run).
- ``SyncOutcome`` / ``EntityResult``: per-entity terminal outcome.
- ``RunState`` / ``SyncReport``: aggregate results for a full run.

All models are frozen (immutable).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


class SyncDirection(str, Enum):
    """Which side of a linked pair is stale.  Left is the Tracker."""

    LEFT_TO_RIGHT = "left_to_right"
    RIGHT_TO_LEFT = "right_to_left"
    CONFLICT = "conflict"


class BoardState(str, Enum):
    """Lifecycle state of a Board project or item."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class SyncOutcome(str, Enum):
    """Terminal outcome of reconciling one entity in a run."""

    CREATED = "created"
    LINKED = "linked"
    LEFT_TO_RIGHT = "left_to_right"
    RIGHT_TO_LEFT = "right_to_left"
    CONFLICT = "conflict"
    SKIPPED = "skipped"


class EntityKind(str, Enum):
    PROJECT = "project"
    ITEM = "item"


class RunState(str, Enum):
    """Run controller lifecycle: IDLE -> RUNNING -> COMPLETED | FAILED."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CanonicalProject(BaseModel):
    """A project as seen on one store.

    Attributes:
        id: Store-native identifier.
        title: Display name.
        description: Free-text description.
        status: Store-native status (Tracker status name, or a
            ``BoardState`` value on the Board side).
        url: Link to the record on its own store.
        counterpart_id: Id of the linked record on the other store.
        counterpart_url: URL of the linked record on the other store.
        last_sync_at: Checkpoint of the last successful reconciliation.
        updated_at: Store-reported last modification time.
    """

    id: str
    title: str
    description: str = ""
    status: str | None = None
    url: str | None = None
    counterpart_id: str | None = None
    counterpart_url: str | None = None
    last_sync_at: datetime | None = None
    updated_at: datetime

    model_config = {"frozen": True}


class CanonicalItem(BaseModel):
    """A work item (Tracker action or Board issue) as seen on one store.

    Attributes:
        id: Store-native identifier.
        title: Item title.
        status: Store-native status.
        project_id: Store-native id of the parent project.
        description: Free-text description.
        url: Link to the record on its own store.
        number: Human-facing number (Board issues only).
        counterpart_id: Id of the linked record on the other store.
        counterpart_url: URL of the linked record on the other store.
        counterpart_number: Number of the linked Board issue.
        last_sync_at: Checkpoint of the last successful reconciliation.
        updated_at: Store-reported last modification time.
    """

    id: str
    title: str
    status: str | None = None
    project_id: str | None = None
    description: str = ""
    url: str | None = None
    number: int | None = None
    counterpart_id: str | None = None
    counterpart_url: str | None = None
    counterpart_number: int | None = None
    last_sync_at: datetime | None = None
    updated_at: datetime

    model_config = {"frozen": True}


class SyncDecision(BaseModel):
    """Direction for one pair plus a human-readable reason."""

    direction: SyncDirection
    reason: str

    model_config = {"frozen": True}


class WriteResult(BaseModel):
    """Result of an adapter ``upsert_*`` call.

    Attributes:
        entity_id: Id of the record written.
        fields: Canonical fields that were (or would be) written.
        applied: ``False`` when suppressed by dry run.
    """

    entity_id: str
    fields: dict[str, Any] = {}
    applied: bool

    model_config = {"frozen": True}


class EntityResult(BaseModel):
    """Outcome of reconciling one project or item.

    Attributes:
        kind: ``project`` or ``item``.
        tracker_id: Tracker record id.
        board_id: Linked Board record id, if known.
        title: Tracker title, for the report.
        outcome: What happened to the pair.
        success: False when an error interrupted the entity.
        reason: Direction reason or other context.
        error: Error text when ``success`` is False.
    """

    kind: EntityKind
    tracker_id: str
    board_id: str | None = None
    title: str
    outcome: SyncOutcome
    success: bool = True
    reason: str | None = None
    error: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full run.

    Attributes:
        repository: Destination repository for created Board items.
        dry_run: Whether writes were suppressed.
        state: Final run controller state.
        results: Per-entity results in processing order.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run finished.
        cancelled: True if the run stopped early on request.
        fatal_error: Why the run failed, when ``state`` is FAILED.
    """

    repository: str
    dry_run: bool = False
    state: RunState = RunState.COMPLETED
    results: list[EntityResult] = []
    started_at: str
    completed_at: str | None = None
    cancelled: bool = False
    fatal_error: str | None = None

    model_config = {"frozen": True}

    def _select(
        self, kind: EntityKind, outcome: SyncOutcome
    ) -> list[EntityResult]:
        return [
            r
            for r in self.results
            if r.kind == kind and r.outcome == outcome and r.success
        ]

    @property
    def projects_created(self) -> list[EntityResult]:
        return self._select(EntityKind.PROJECT, SyncOutcome.CREATED)

    @property
    def projects_linked(self) -> list[EntityResult]:
        return self._select(EntityKind.PROJECT, SyncOutcome.LINKED)

    @property
    def projects_synced_left_to_right(self) -> list[EntityResult]:
        return self._select(EntityKind.PROJECT, SyncOutcome.LEFT_TO_RIGHT)

    @property
    def projects_synced_right_to_left(self) -> list[EntityResult]:
        return self._select(EntityKind.PROJECT, SyncOutcome.RIGHT_TO_LEFT)

    @property
    def projects_conflicted(self) -> list[EntityResult]:
        return self._select(EntityKind.PROJECT, SyncOutcome.CONFLICT)

    @property
    def items_created(self) -> list[EntityResult]:
        return self._select(EntityKind.ITEM, SyncOutcome.CREATED)

    @property
    def items_linked(self) -> list[EntityResult]:
        return self._select(EntityKind.ITEM, SyncOutcome.LINKED)

    @property
    def items_synced_left_to_right(self) -> list[EntityResult]:
        return self._select(EntityKind.ITEM, SyncOutcome.LEFT_TO_RIGHT)

    @property
    def items_synced_right_to_left(self) -> list[EntityResult]:
        return self._select(EntityKind.ITEM, SyncOutcome.RIGHT_TO_LEFT)

    @property
    def items_conflicted(self) -> list[EntityResult]:
        return self._select(EntityKind.ITEM, SyncOutcome.CONFLICT)

    @property
    def conflicts(self) -> list[EntityResult]:
        """Every conflicted pair, projects first."""
        return self.projects_conflicted + self.items_conflicted

    @property
    def errors(self) -> list[EntityResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    def counts(self) -> dict[str, int]:
        """Summary counters keyed by category."""
        return {
            "projects_created": len(self.projects_created),
            "projects_linked": len(self.projects_linked),
            "projects_synced_left_to_right": len(
                self.projects_synced_left_to_right
            ),
            "projects_synced_right_to_left": len(
                self.projects_synced_right_to_left
            ),
            "projects_conflicted": len(self.projects_conflicted),
            "items_created": len(self.items_created),
            "items_linked": len(self.items_linked),
            "items_synced_left_to_right": len(
                self.items_synced_left_to_right
            ),
            "items_synced_right_to_left": len(
                self.items_synced_right_to_left
            ),
            "items_conflicted": len(self.items_conflicted),
            "errors": len(self.errors),
        }
