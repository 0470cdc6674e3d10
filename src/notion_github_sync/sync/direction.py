"""Sync direction decision for one linked pair.

A pure function of three timestamps: each side's last modification time
and the pair's checkpoint.  No I/O, so it can be tested directly against
literal timestamp triples.

Rules, with ``changed = updated_at > last_sync_at``:

- both sides changed -> ``CONFLICT`` (reason carries both timestamps)
- only left changed  -> ``LEFT_TO_RIGHT``
- only right changed -> ``RIGHT_TO_LEFT``
- neither changed    -> ``LEFT_TO_RIGHT`` with reason
  ``"no changes, default direction"`` so the checkpoint still advances.

The last rule is the only asymmetric one: swapping the sides swaps the
direction in every other case.
"""

from __future__ import annotations

from datetime import datetime, timezone

from .models import SyncDecision, SyncDirection

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

NO_CHANGES_REASON = "no changes, default direction"


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def decide_direction(
    left_updated_at: datetime,
    right_updated_at: datetime,
    last_sync_at: datetime | None,
) -> SyncDecision:
    """Decide which side of a pair to propagate from.

    Args:
        left_updated_at: Tracker-side modification time.
        right_updated_at: Board-side modification time.
        last_sync_at: Checkpoint of the pair; ``None`` means never synced.
            Naive datetimes are treated as UTC.

    Returns:
        The ``SyncDecision`` for the pair.
    """
    left = _as_utc(left_updated_at)
    right = _as_utc(right_updated_at)
    checkpoint = _as_utc(last_sync_at)

    left_changed = left > checkpoint
    right_changed = right > checkpoint

    if left_changed and right_changed:
        return SyncDecision(
            direction=SyncDirection.CONFLICT,
            reason=(
                "both sides updated since last sync "
                f"(left: {left.isoformat()}, right: {right.isoformat()}, "
                f"last sync: {checkpoint.isoformat()})"
            ),
        )

    if left_changed:
        return SyncDecision(
            direction=SyncDirection.LEFT_TO_RIGHT,
            reason=f"left updated at {left.isoformat()}",
        )

    if right_changed:
        return SyncDecision(
            direction=SyncDirection.RIGHT_TO_LEFT,
            reason=f"right updated at {right.isoformat()}",
        )

    return SyncDecision(
        direction=SyncDirection.LEFT_TO_RIGHT,
        reason=NO_CHANGES_REASON,
    )
