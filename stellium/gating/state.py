"""UI-facing gating state, derived from unlock and content status."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum

from stellium.gating.types import ContentCacheEntry, EntryStatus


class GatingState(StrEnum):
    LOCKED = "locked"
    LOCKED_GENERATING = "locked_generating"
    UNLOCKED = "unlocked"
    UNLOCKED_GENERATING = "unlocked_generating"
    ERROR = "error"

    @property
    def is_locked(self) -> bool:
        return self in (GatingState.LOCKED, GatingState.LOCKED_GENERATING)

    @property
    def is_generating(self) -> bool:
        return self in (GatingState.LOCKED_GENERATING, GatingState.UNLOCKED_GENERATING)


def derive_gating_state(
    unlocked: bool | None,
    entry: ContentCacheEntry | None,
) -> GatingState:
    """Combine the unlock answer and the content entry into one state.

    ``unlocked`` is None while the server has not answered; the tab is then
    shown locked. A locked tab stays locked whatever the content status is,
    including a failed generation, which only surfaces once unlocked.
    """
    generating = entry is not None and entry.status is EntryStatus.PENDING

    if not unlocked:
        return GatingState.LOCKED_GENERATING if generating else GatingState.LOCKED

    # Unlocked with nothing requested yet still waits on generation
    if entry is None or generating:
        return GatingState.UNLOCKED_GENERATING
    if entry.status is EntryStatus.ERROR:
        return GatingState.ERROR
    return GatingState.UNLOCKED


def is_taking_long(
    requested_at: datetime | None,
    now: datetime,
    threshold: timedelta | float,
) -> bool:
    """Whether a request has been running past the "still loading" threshold.

    Presentation only: nothing is cancelled or retried based on this.
    """
    if requested_at is None:
        return False
    if not isinstance(threshold, timedelta):
        threshold = timedelta(seconds=threshold)
    return now - requested_at >= threshold
