"""Status vocabulary translation between the Tracker and the Board.

The Tracker has a fine-grained status select; the Board only knows
open/closed.  The forward mapping is many-to-one, so the reverse mapping
cannot recover the original status: ``Blocked`` goes to ``OPEN`` and
comes back as ``In Progress``.  That collapse is accepted information
loss.

Both functions are total.  An unrecognised Tracker status maps to
``OPEN`` so an item with an unmapped status stays visible on the Board.
"""

from __future__ import annotations

from .models import BoardState

NOT_STARTED = "Not Started"
IN_PROGRESS = "In Progress"
BLOCKED = "Blocked"
ON_HOLD = "On Hold"
COMPLETED = "Completed"
CANCELLED = "Cancelled"

TRACKER_TO_BOARD: dict[str, BoardState] = {
    NOT_STARTED: BoardState.OPEN,
    IN_PROGRESS: BoardState.OPEN,
    BLOCKED: BoardState.OPEN,
    ON_HOLD: BoardState.OPEN,
    COMPLETED: BoardState.CLOSED,
    CANCELLED: BoardState.CLOSED,
}

BOARD_TO_TRACKER: dict[BoardState, str] = {
    BoardState.OPEN: IN_PROGRESS,
    BoardState.CLOSED: COMPLETED,
}


def tracker_status_to_board_state(status: str | None) -> BoardState:
    """Map a Tracker status name to a Board state (unknown -> OPEN)."""
    if status is None:
        return BoardState.OPEN
    return TRACKER_TO_BOARD.get(status, BoardState.OPEN)


def board_state_to_tracker_status(state: BoardState | str) -> str:
    """Map a Board state to the canonical Tracker status for it."""
    return BOARD_TO_TRACKER[BoardState(state)]


def is_lossless(status: str) -> bool:
    """True if *status* survives a Tracker -> Board -> Tracker round trip."""
    round_trip = board_state_to_tracker_status(
        tracker_status_to_board_state(status)
    )
    return round_trip == status
