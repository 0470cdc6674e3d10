"""Sync report formatting functions.

- ``format_sync_report`` -- human-readable end-of-run summary.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import RunState

if TYPE_CHECKING:
    from .models import EntityResult, SyncReport

DRY_RUN_REMINDER = "Run with DRY_RUN=false (or --live) to apply changes"

_COUNT_LABELS = [
    ("projects_created", "Projects created"),
    ("projects_linked", "Projects linked"),
    ("projects_synced_left_to_right", "Projects synced tracker -> board"),
    ("projects_synced_right_to_left", "Projects synced board -> tracker"),
    ("projects_conflicted", "Projects conflicted"),
    ("items_created", "Items created"),
    ("items_linked", "Items linked"),
    ("items_synced_left_to_right", "Items synced tracker -> board"),
    ("items_synced_right_to_left", "Items synced board -> tracker"),
    ("items_conflicted", "Items conflicted"),
    ("errors", "Errors"),
]


def _describe(r: EntityResult) -> str:
    board = r.board_id or "-"
    return f"[{r.kind.value}] {r.title} ({r.tracker_id} <-> {board})"


def format_sync_report(report: SyncReport) -> str:
    """Format a run report as human-readable text.

    Conflicts and errors are listed individually so an operator can
    resolve them and re-run.  Created records are listed too; plain
    syncs are summarised by count only.

    Args:
        report: The finished run report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report for '{report.repository}'"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append(f"State: {report.state.value}")
    lines.append("")

    if report.state == RunState.FAILED:
        lines.append(f"Sync failed: {report.fatal_error}")
        lines.append("")

    if report.cancelled:
        lines.append("Sync was cancelled; counts cover completed projects only.")
        lines.append("")

    counts = report.counts()
    width = max(len(label) for _, label in _COUNT_LABELS)
    for key, label in _COUNT_LABELS:
        lines.append(f"  {label.ljust(width)}  {counts[key]}")
    lines.append("")

    created = report.projects_created + report.items_created
    if created:
        lines.append("Would create:" if report.dry_run else "Created:")
        for r in created:
            lines.append(f"  {_describe(r)}")
        lines.append("")

    if report.conflicts:
        lines.append("Conflicts (manual resolution required):")
        for r in report.conflicts:
            lines.append(f"  {_describe(r)}: {r.reason}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {_describe(r)}: {r.error}")
        lines.append("")

    if report.dry_run:
        lines.append(DRY_RUN_REMINDER)

    return "\n".join(lines).rstrip()


def report_to_json(report: SyncReport) -> dict:
    """Convert a run report to a structured dict for JSON serialisation.

    Args:
        report: The run report.

    Returns:
        Dict with run info, counts, and per-entity details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "kind": r.kind.value,
            "tracker_id": r.tracker_id,
            "board_id": r.board_id,
            "title": r.title,
            "outcome": r.outcome.value,
            "success": r.success,
        }
        if r.reason:
            entry["reason"] = r.reason
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "repository": report.repository,
        "dry_run": report.dry_run,
        "state": report.state.value,
        "cancelled": report.cancelled,
        "fatal_error": report.fatal_error,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": report.counts(),
        "results": results_list,
    }
