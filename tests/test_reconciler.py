"""Tests for ReconciliationEngine against in-memory stores."""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from fakes import T0
from notion_github_sync.errors import CreateFailed, UpdateFailed, UpstreamUnavailable
from notion_github_sync.sync.direction import NO_CHANGES_REASON
from notion_github_sync.sync.models import EntityKind, SyncOutcome
from notion_github_sync.sync.reconciler import ReconciliationEngine

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _engine(tracker, board, dry_run=False):
    engine = ReconciliationEngine(tracker, board, dry_run=dry_run)
    engine.claim_links(tracker.list_projects())
    return engine


def _linked_project(tracker, board, title="Launch Plan", status="In Progress"):
    """A project pair last synced at T0 with no changes since."""
    bp = board.add_project(title, updated_at=T0)
    tp = tracker.add_project(
        title,
        status=status,
        counterpart_id=bp.id,
        counterpart_url=bp.url,
        last_sync_at=T0,
        updated_at=T0,
    )
    return tp, bp


def _linked_item(tracker, board, tp, bp, title="Write copy", **tracker_fields):
    """An item pair last synced at T0 with no changes since."""
    bi = board.add_item(bp.id, title, number=7, updated_at=T0)
    tracker_fields.setdefault("status", "In Progress")
    tracker_fields.setdefault("updated_at", T0)
    ti = tracker.add_item(
        tp.id,
        title,
        counterpart_id=bi.id,
        counterpart_url=bi.url,
        counterpart_number=bi.number,
        last_sync_at=T0,
        **tracker_fields,
    )
    return ti, bi


def _outcomes(results):
    return [(r.kind, r.outcome) for r in results]


def _item_writes(store):
    return [w for w in store.writes if w[0] == "upsert_item"]


# ---------------------------------------------------------------------------
# First link
# ---------------------------------------------------------------------------


class TestFirstLink:
    def test_creates_board_project_and_item(self, tracker, board):
        tp = tracker.add_project("Launch Plan", status="In Progress")
        ti = tracker.add_item(tp.id, "Write copy", status="In Progress")

        results = _engine(tracker, board).reconcile_project(tp)

        assert _outcomes(results) == [
            (EntityKind.PROJECT, SyncOutcome.CREATED),
            (EntityKind.ITEM, SyncOutcome.CREATED),
        ]
        [bp] = board.projects.values()
        [bi] = board.items.values()
        assert bp.title == "Launch Plan"
        assert bi.title == "Write copy"
        assert bi.status == "OPEN"
        assert bi.project_id == bp.id

        linked = tracker.projects[tp.id]
        assert linked.counterpart_id == bp.id
        assert linked.counterpart_url == bp.url
        assert linked.last_sync_at == T0
        linked_item = tracker.items[ti.id]
        assert linked_item.counterpart_id == bi.id
        assert linked_item.counterpart_number == bi.number

    def test_link_write_is_the_only_tracker_project_write(self, tracker, board):
        tp = tracker.add_project("Launch Plan")

        _engine(tracker, board).reconcile_project(tp)

        project_writes = [w for w in tracker.writes if w[0] == "upsert_project"]
        assert len(project_writes) == 1
        assert set(project_writes[0][2]) == {"counterpart_id", "counterpart_url"}

    def test_matches_existing_board_project_by_title(self, tracker, board):
        existing = board.add_project("Launch Plan")
        tp = tracker.add_project("Launch Plan")

        results = _engine(tracker, board).reconcile_project(tp)

        assert results[0].outcome == SyncOutcome.LINKED
        assert results[0].board_id == existing.id
        assert not [c for c in board.creates if c[0] == "create_project"]
        assert tracker.projects[tp.id].counterpart_id == existing.id

    def test_title_match_is_exact(self, tracker, board):
        board.add_project("launch plan")
        tp = tracker.add_project("Launch Plan")

        results = _engine(tracker, board).reconcile_project(tp)

        assert results[0].outcome == SyncOutcome.CREATED
        assert len(board.projects) == 2

    def test_claimed_board_project_is_not_matched_twice(self, tracker, board):
        tp_linked, bp = _linked_project(tracker, board, title="Roadmap")
        tp_dup = tracker.add_project("Roadmap")

        results = _engine(tracker, board).reconcile_project(tp_dup)

        assert results[0].outcome == SyncOutcome.CREATED
        assert results[0].board_id != bp.id

    def test_matches_existing_board_item_by_title(self, tracker, board):
        tp, bp = _linked_project(tracker, board)
        existing = board.add_item(bp.id, "Write copy", number=3, updated_at=T0)
        ti = tracker.add_item(tp.id, "Write copy")

        results = _engine(tracker, board).reconcile_project(tp)

        assert results[1].outcome == SyncOutcome.LINKED
        assert tracker.items[ti.id].counterpart_id == existing.id
        assert tracker.items[ti.id].counterpart_number == 3
        assert not [c for c in board.creates if c[0] == "create_item"]

    def test_claimed_board_item_is_not_matched_twice(self, tracker, board):
        tp, bp = _linked_project(tracker, board)
        _, bi = _linked_item(tracker, board, tp, bp, title="Review")
        ti_dup = tracker.add_item(tp.id, "Review")

        results = _engine(tracker, board).reconcile_project(tp)

        dup = [r for r in results if r.tracker_id == ti_dup.id][0]
        assert dup.outcome == SyncOutcome.CREATED
        assert dup.board_id != bi.id

    def test_completed_item_is_closed_after_creation(self, tracker, board):
        tp, bp = _linked_project(tracker, board)
        tracker.add_item(tp.id, "Ship it", status="Completed")

        _engine(tracker, board).reconcile_project(tp)

        [bi] = board.items.values()
        assert bi.status == "CLOSED"
        assert ("upsert_item", bi.id, {"status": "CLOSED"}, False) in board.writes

    def test_cancelled_project_is_closed_after_creation(self, tracker, board):
        tp = tracker.add_project("Old idea", status="Cancelled")

        _engine(tracker, board).reconcile_project(tp)

        [bp] = board.projects.values()
        assert bp.status == "CLOSED"

    def test_unpaired_board_items_are_not_imported(self, tracker, board):
        tp, bp = _linked_project(tracker, board)
        board.add_item(bp.id, "Opened on GitHub", updated_at=T0)

        results = _engine(tracker, board).reconcile_project(tp)

        assert [r.kind for r in results] == [EntityKind.PROJECT]
        assert tracker.items == {}
        assert tracker.creates == []


# ---------------------------------------------------------------------------
# Stale links
# ---------------------------------------------------------------------------


class TestStaleLinks:
    def test_missing_project_counterpart_is_relinked(
        self, tracker, board, caplog
    ):
        tp = tracker.add_project(
            "Launch Plan", counterpart_id="board-deleted", last_sync_at=T0
        )

        with caplog.at_level(logging.WARNING):
            results = _engine(tracker, board).reconcile_project(tp)

        assert results[0].outcome == SyncOutcome.CREATED
        [bp] = board.projects.values()
        assert tracker.projects[tp.id].counterpart_id == bp.id
        assert "Linked counterpart missing" in caplog.text
        assert "board-deleted" in caplog.text

    def test_missing_project_counterpart_prefers_title_match(
        self, tracker, board
    ):
        survivor = board.add_project("Launch Plan")
        tp = tracker.add_project(
            "Launch Plan", counterpart_id="board-deleted", last_sync_at=T0
        )

        results = _engine(tracker, board).reconcile_project(tp)

        assert results[0].outcome == SyncOutcome.LINKED
        assert tracker.projects[tp.id].counterpart_id == survivor.id

    def test_missing_item_counterpart_is_recreated(self, tracker, board):
        tp, bp = _linked_project(tracker, board)
        ti = tracker.add_item(
            tp.id, "Write copy", counterpart_id="board-gone", last_sync_at=T0
        )

        results = _engine(tracker, board).reconcile_project(tp)

        assert results[1].outcome == SyncOutcome.CREATED
        assert tracker.items[ti.id].counterpart_id != "board-gone"

    def test_item_outside_board_listing_is_found_by_id(self, tracker, board):
        tp, bp = _linked_project(tracker, board)
        other = board.add_project("Elsewhere", updated_at=T0)
        moved = board.add_item(other.id, "Write copy", updated_at=T0)
        tracker.add_item(
            tp.id,
            "Write copy",
            status="In Progress",
            counterpart_id=moved.id,
            last_sync_at=T0,
            updated_at=T0,
        )

        results = _engine(tracker, board).reconcile_project(tp)

        assert results[1].outcome == SyncOutcome.LEFT_TO_RIGHT
        assert results[1].board_id == moved.id
        assert board.creates == []


# ---------------------------------------------------------------------------
# Direction propagation
# ---------------------------------------------------------------------------


class TestPropagation:
    def test_unchanged_pair_defaults_left_to_right_without_content_writes(
        self, tracker, board, clock
    ):
        tp, bp = _linked_project(tracker, board)
        ti, _ = _linked_item(tracker, board, tp, bp)
        clock.advance()

        results = _engine(tracker, board).reconcile_project(tp)

        assert [r.reason for r in results] == [NO_CHANGES_REASON] * 2
        assert board.writes == []
        assert tracker.content_writes() == []
        # The checkpoint still advances
        assert tracker.items[ti.id].last_sync_at == clock.now
        assert tracker.projects[tp.id].last_sync_at == clock.now

    def test_board_item_write_restamps_project_last(
        self, tracker, board, clock
    ):
        tp, bp = _linked_project(tracker, board)
        _linked_item(tracker, board, tp, bp)
        tracker.add_item(tp.id, "Ship it")
        clock.advance()

        _engine(tracker, board).reconcile_project(tp)

        assert tracker.writes[-1] == ("upsert_project", tp.id, {}, False)
        project_stamps = [w for w in tracker.writes if w[0] == "upsert_project"]
        assert len(project_stamps) == 2

    def test_no_board_item_write_means_single_project_stamp(
        self, tracker, board, clock
    ):
        tp, bp = _linked_project(tracker, board)
        _linked_item(tracker, board, tp, bp)
        clock.advance()

        _engine(tracker, board).reconcile_project(tp)

        project_stamps = [w for w in tracker.writes if w[0] == "upsert_project"]
        assert project_stamps == [("upsert_project", tp.id, {}, False)]

    def test_tracker_change_closes_board_item(self, tracker, board, clock):
        tp, bp = _linked_project(tracker, board)
        ti, bi = _linked_item(tracker, board, tp, bp)
        clock.advance()
        tracker.edit_item(ti.id, status="Completed")

        results = _engine(tracker, board).reconcile_project(tp)

        assert results[1].outcome == SyncOutcome.LEFT_TO_RIGHT
        assert _item_writes(board) == [
            ("upsert_item", bi.id, {"status": "CLOSED"}, False)
        ]
        assert board.items[bi.id].status == "CLOSED"

    def test_only_differing_fields_are_written(self, tracker, board, clock):
        tp, bp = _linked_project(tracker, board)
        ti, bi = _linked_item(tracker, board, tp, bp)
        clock.advance()
        tracker.edit_item(ti.id, title="Write better copy")

        _engine(tracker, board).reconcile_project(tp)

        assert _item_writes(board) == [
            ("upsert_item", bi.id, {"title": "Write better copy"}, False)
        ]

    def test_board_change_flows_back_to_tracker(self, tracker, board, clock):
        tp, bp = _linked_project(tracker, board)
        ti, bi = _linked_item(tracker, board, tp, bp)
        clock.advance()
        board.edit_item(bi.id, status="CLOSED", description="Done in #12")

        results = _engine(tracker, board).reconcile_project(tp)

        assert results[1].outcome == SyncOutcome.RIGHT_TO_LEFT
        item = tracker.items[ti.id]
        assert item.status == "Completed"
        assert item.description == "Done in #12"
        assert item.last_sync_at == clock.now
        assert _item_writes(board) == []

    def test_board_edit_keeps_fine_grained_tracker_status(
        self, tracker, board, clock
    ):
        tp, bp = _linked_project(tracker, board)
        ti, bi = _linked_item(tracker, board, tp, bp, status="Blocked")
        clock.advance()
        board.edit_item(bi.id, title="Write copy v2")

        _engine(tracker, board).reconcile_project(tp)

        assert tracker.items[ti.id].status == "Blocked"
        assert tracker.items[ti.id].title == "Write copy v2"

    def test_reopened_board_item_reverts_tracker_to_in_progress(
        self, tracker, board, clock
    ):
        tp, bp = _linked_project(tracker, board)
        ti, bi = _linked_item(tracker, board, tp, bp, status="Cancelled")
        board.items[bi.id] = bi.model_copy(update={"status": "CLOSED"})
        clock.advance()
        board.edit_item(bi.id, status="OPEN")

        _engine(tracker, board).reconcile_project(tp)

        assert tracker.items[ti.id].status == "In Progress"

    def test_project_content_propagates_left_to_right(
        self, tracker, board, clock
    ):
        tp, bp = _linked_project(tracker, board)
        clock.advance()
        tracker.projects[tp.id] = tp.model_copy(
            update={"description": "Q3 launch", "updated_at": clock.now}
        )

        results = _engine(tracker, board).reconcile_project(
            tracker.projects[tp.id]
        )

        assert results[0].outcome == SyncOutcome.LEFT_TO_RIGHT
        assert board.projects[bp.id].description == "Q3 launch"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class TestConflicts:
    def test_item_conflict_writes_nothing(self, tracker, board):
        tp, bp = _linked_project(tracker, board)
        ti, bi = _linked_item(
            tracker,
            board,
            tp,
            bp,
            updated_at=T0 + timedelta(seconds=1),
        )
        board.items[bi.id] = bi.model_copy(
            update={"updated_at": T0 + timedelta(seconds=2)}
        )

        results = _engine(tracker, board).reconcile_project(tp)

        assert results[1].outcome == SyncOutcome.CONFLICT
        assert "both sides updated" in results[1].reason
        assert _item_writes(tracker) == []
        assert _item_writes(board) == []
        assert tracker.items[ti.id].last_sync_at == T0

    def test_project_conflict_still_reconciles_items(
        self, tracker, board, clock
    ):
        tp, bp = _linked_project(tracker, board)
        ti, bi = _linked_item(tracker, board, tp, bp)
        clock.advance()
        tp = tracker.projects[tp.id] = tp.model_copy(
            update={"updated_at": clock.now}
        )
        board.projects[bp.id] = bp.model_copy(update={"updated_at": clock.now})
        tracker.edit_item(ti.id, status="Completed")

        results = _engine(tracker, board).reconcile_project(tp)

        assert _outcomes(results) == [
            (EntityKind.PROJECT, SyncOutcome.CONFLICT),
            (EntityKind.ITEM, SyncOutcome.LEFT_TO_RIGHT),
        ]
        assert [w for w in tracker.writes if w[0] == "upsert_project"] == []
        assert board.items[bi.id].status == "CLOSED"


# ---------------------------------------------------------------------------
# Failure isolation
# ---------------------------------------------------------------------------


class TestFailureIsolation:
    def test_project_failure_is_recorded(self, tracker, board):
        tp = tracker.add_project("Launch Plan")
        tracker.add_item(tp.id, "Write copy")
        board.failures["create_project"] = CreateFailed(
            "create_project", "insufficient scopes"
        )

        results = _engine(tracker, board).reconcile_project(tp)

        assert len(results) == 1
        assert results[0].success is False
        assert results[0].outcome == SyncOutcome.SKIPPED
        assert "insufficient scopes" in results[0].error

    def test_item_failure_does_not_stop_siblings(self, tracker, board, clock):
        tp, bp = _linked_project(tracker, board)
        bad = tracker.add_item(tp.id, "Broken")
        good = tracker.add_item(tp.id, "Fine")
        tracker.failures[("upsert_item", bad.id)] = UpdateFailed(
            "upsert_item", "validation_error", bad.id
        )

        results = _engine(tracker, board).reconcile_project(tp)

        by_id = {r.tracker_id: r for r in results}
        assert by_id[bad.id].success is False
        assert bad.id in by_id[bad.id].error
        assert by_id[good.id].success is True
        assert by_id[good.id].outcome == SyncOutcome.CREATED

    def test_item_listing_failure_yields_one_failed_result(
        self, tracker, board
    ):
        tp, bp = _linked_project(tracker, board)
        board.failures["list_items"] = UpstreamUnavailable(
            "list_items", "timed out", bp.id
        )

        results = _engine(tracker, board).reconcile_project(tp)

        assert results[0].success is True
        assert results[1].kind == EntityKind.ITEM
        assert results[1].success is False
        assert "timed out" in results[1].error

    def test_failure_is_logged_with_entity_id(self, tracker, board, caplog):
        tp = tracker.add_project("Launch Plan")
        board.failures["list_projects"] = UpstreamUnavailable(
            "list_projects", "502 Bad Gateway"
        )

        with caplog.at_level(logging.ERROR):
            _engine(tracker, board).reconcile_project(tp)

        assert tp.id in caplog.text
        assert "502 Bad Gateway" in caplog.text

    def test_keyboard_interrupt_propagates(self, tracker, board):
        tp = tracker.add_project("Launch Plan")
        board.failures["create_project"] = KeyboardInterrupt()

        with pytest.raises(KeyboardInterrupt):
            _engine(tracker, board).reconcile_project(tp)


# ---------------------------------------------------------------------------
# Dry run
# ---------------------------------------------------------------------------


class TestDryRun:
    def test_nothing_is_mutated(self, tracker, board):
        tp = tracker.add_project("Launch Plan", status="In Progress")
        tracker.add_item(tp.id, "Write copy", status="Completed")
        before = dict(tracker.projects), dict(tracker.items)

        results = _engine(tracker, board, dry_run=True).reconcile_project(tp)

        assert _outcomes(results) == [
            (EntityKind.PROJECT, SyncOutcome.CREATED),
            (EntityKind.ITEM, SyncOutcome.CREATED),
        ]
        assert board.projects == {}
        assert board.items == {}
        assert (dict(tracker.projects), dict(tracker.items)) == before
        assert all(dry_run for *_, dry_run in tracker.writes + board.writes)
        assert all(dry_run for *_, dry_run in board.creates)

    def test_linked_pair_is_reported_not_written(self, tracker, board, clock):
        tp, bp = _linked_project(tracker, board)
        ti, bi = _linked_item(tracker, board, tp, bp)
        clock.advance()
        tracker.edit_item(ti.id, status="Completed")

        results = _engine(tracker, board, dry_run=True).reconcile_project(tp)

        assert results[1].outcome == SyncOutcome.LEFT_TO_RIGHT
        assert board.items[bi.id].status == "OPEN"
        assert tracker.items[ti.id].last_sync_at == T0
