"""Bidirectional Notion <-> GitHub Projects reconciliation.

Architecture
------------
Pull-based, run-to-completion reconciliation.  The Tracker (Notion) is
the left side and the system of record for item creation; the Board
(GitHub Projects) is the right side.  Each linked pair carries a
checkpoint (``last_sync_at``, stored on the Tracker) and the direction
of a pass is decided by comparing both sides' modification times against
it.  Changes on both sides are a conflict and are never auto-merged.

Modules:

- ``models``     -- canonical entities, decisions, results, report.
- ``status``     -- Tracker status <-> Board open/closed mapping.
- ``direction``  -- ``decide_direction``: pure direction decision.
- ``reconciler`` -- ``ReconciliationEngine``: linking, create-or-match,
  propagation for one project and its items.
- ``controller`` -- ``RunController``: full pass, state machine, report.
- ``reporter``   -- human-readable and JSON report formatting.

Usage example
-------------
::

    from notion_github_sync.adapters import BoardAdapter, TrackerAdapter
    from notion_github_sync.sync import RunController, format_sync_report

    controller = RunController(
        tracker=TrackerAdapter(notion_client, projects_db, actions_db),
        board=BoardAdapter(github_client, repository="chittyreception"),
        repository="chittyreception",
        dry_run=True,
    )
    report = controller.run()
    print(format_sync_report(report))
"""

from .controller import RunController
from .direction import decide_direction
from .models import (
    BoardState,
    CanonicalItem,
    CanonicalProject,
    EntityKind,
    EntityResult,
    RunState,
    SyncDecision,
    SyncDirection,
    SyncOutcome,
    SyncReport,
    WriteResult,
)
from .reconciler import ReconciliationEngine
from .reporter import format_sync_report, report_to_json
from .status import (
    board_state_to_tracker_status,
    tracker_status_to_board_state,
)

__all__ = [
    "BoardState",
    "CanonicalItem",
    "CanonicalProject",
    "EntityKind",
    "EntityResult",
    "ReconciliationEngine",
    "RunController",
    "RunState",
    "SyncDecision",
    "SyncDirection",
    "SyncOutcome",
    "SyncReport",
    "WriteResult",
    "board_state_to_tracker_status",
    "decide_direction",
    "format_sync_report",
    "report_to_json",
    "tracker_status_to_board_state",
]
