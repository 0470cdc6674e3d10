"""Run controller: one full reconciliation pass over every Tracker project.

State machine::

    IDLE --run()--> RUNNING --+--> COMPLETED
                              +--> FAILED

``RUNNING`` is the only state with side effects.  The run fails only when
the initial Tracker project listing fails (or an unexpected exception
escapes); every per-project and per-item problem is contained by the
engine and reported.  Cancellation is checked between projects, and a
cancelled run still completes with a report of the work done so far.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from notion_github_sync.errors import UpstreamUnavailable

from .models import EntityResult, RunState, SyncReport
from .reconciler import ReconciliationEngine

if TYPE_CHECKING:
    from notion_github_sync.adapters.base import BoardStore, TrackerStore

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RunController:
    """Drive a full sync pass and aggregate its results.

    Args:
        tracker: Tracker store adapter.
        board: Board store adapter.
        repository: Destination repository, recorded on the report.
        dry_run: Suppress every write; the report shows what would happen.
        log: Optional logger for per-event diagnostics.
    """

    def __init__(
        self,
        tracker: TrackerStore,
        board: BoardStore,
        repository: str,
        dry_run: bool = True,
        log: logging.Logger | None = None,
    ) -> None:
        self.tracker = tracker
        self.repository = repository
        self.dry_run = dry_run
        self.log = log or logger
        self.engine = ReconciliationEngine(
            tracker, board, dry_run=dry_run, log=self.log
        )
        self.state = RunState.IDLE
        self._cancel_requested = False

    def cancel(self) -> None:
        """Stop before the next project; the current one finishes."""
        self._cancel_requested = True

    def run(self) -> SyncReport:
        """Execute one pass.

        Returns:
            The run report.  ``state`` is FAILED (with ``fatal_error``) when
            the Tracker projects could not be listed or the listing was
            interrupted; an interrupted listing is also ``cancelled``.

        Raises:
            RuntimeError: If the controller has already run.
        """
        if self.state != RunState.IDLE:
            raise RuntimeError(
                f"Run controller is {self.state.value}; create a new one to sync again"
            )

        self.state = RunState.RUNNING
        started_at = _now_iso()
        results: list[EntityResult] = []
        self.log.info(
            "Sync started (%s) for repository %s",
            "DRY RUN" if self.dry_run else "LIVE",
            self.repository,
        )

        try:
            projects = self.tracker.list_projects()
        except UpstreamUnavailable as exc:
            self.log.error("Failed to list tracker projects: %s", exc)
            self.state = RunState.FAILED
            return self._report(results, started_at, fatal_error=str(exc))
        except KeyboardInterrupt:
            self.log.warning("Interrupted while listing tracker projects")
            self.state = RunState.FAILED
            return self._report(
                results,
                started_at,
                cancelled=True,
                fatal_error="interrupted while listing tracker projects",
            )
        except BaseException:
            self.state = RunState.FAILED
            raise

        self.log.info("Found %d tracker projects", len(projects))
        self.engine.claim_links(projects)

        cancelled = False
        try:
            for index, project in enumerate(projects):
                if self._cancel_requested:
                    self.log.warning(
                        "Sync cancelled: %d of %d projects processed",
                        index,
                        len(projects),
                    )
                    cancelled = True
                    break
                try:
                    results.extend(self.engine.reconcile_project(project))
                except KeyboardInterrupt:
                    self.log.warning(
                        "Interrupted while processing %s; stopping",
                        project.title,
                    )
                    cancelled = True
                    break
        except BaseException:
            self.state = RunState.FAILED
            raise

        self.state = RunState.COMPLETED
        report = self._report(results, started_at, cancelled=cancelled)
        self.log.info("Sync finished: %s", report.counts())
        return report

    def _report(
        self,
        results: list[EntityResult],
        started_at: str,
        cancelled: bool = False,
        fatal_error: str | None = None,
    ) -> SyncReport:
        return SyncReport(
            repository=self.repository,
            dry_run=self.dry_run,
            state=self.state,
            results=results,
            started_at=started_at,
            completed_at=_now_iso(),
            cancelled=cancelled,
            fatal_error=fatal_error,
        )
