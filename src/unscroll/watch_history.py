"""Status and watch-history reconciliation rules.

Every function here is pure: it inspects a ``MediaItem`` and returns the
dict of field changes that must be written in one atomic update. Callers
run them inside ``DocumentStore.transact`` so the read and the write see
the same document version.

Invariants kept by every operation:

* ``rewatch_count == len(rewatch_dates)``
* ``rewatch_dates`` non-empty implies ``watched_at`` is set
* ``status == watched`` implies ``watched_at`` is set

Watch history is additive. Moving the status away from ``watched`` never
clears ``watched_at``, the rewatch list, the rating or the review.
"""

import logging
from typing import Optional

from .constants import MediaStatus
from .errors import InvalidInputError, InvalidStateError, OutOfRangeError
from .formatting import parse_iso_date, utc_now_iso
from .models import MediaItem

logger = logging.getLogger(__name__)


def _checked_date(date: Optional[str]) -> Optional[str]:
    """Validate an optional ISO date string."""
    if date is None:
        return None
    try:
        parse_iso_date(date)
    except ValueError:
        raise InvalidInputError(f"Invalid date: {date!r}")
    return date.strip()


def mark_watched(item: MediaItem, date: Optional[str] = None, now: Optional[str] = None) -> dict:
    """Set status to watched, recording the first watch date only once.

    An already recorded ``watched_at`` is never overwritten here; use
    ``update_watch_date`` to correct it.
    """
    now = now or utc_now_iso()
    date = _checked_date(date)
    changes = {"status": MediaStatus.WATCHED.value, "updated_at": now}
    if item.watched_at is None:
        changes["watched_at"] = date or now
    return changes


def add_rewatch(item: MediaItem, date: Optional[str] = None, now: Optional[str] = None) -> dict:
    """Append one rewatch event.

    Without a recorded first watch the call establishes the first watch
    instead, so a rewatch never exists without an original watch.
    """
    now = now or utc_now_iso()
    date = _checked_date(date)
    if item.watched_at is None:
        logger.debug(f"No first watch for {item.id}, recording first watch instead of a rewatch")
        return mark_watched(item, date, now)

    rewatch_dates = [*item.rewatch_dates, date or now]
    changes = {
        "rewatch_dates": rewatch_dates,
        "rewatch_count": len(rewatch_dates),
        "updated_at": now,
    }
    if item.status != MediaStatus.WATCHED:
        changes["status"] = MediaStatus.WATCHED.value
    return changes


def remove_rewatch(item: MediaItem, index: Optional[int] = None, now: Optional[str] = None) -> dict:
    """Remove the rewatch at ``index`` (default: the most recently added).

    The first watch can never be removed this way. A stale count with no
    dates behind it is reset to 0.
    """
    rewatch_dates = list(item.rewatch_dates)
    if not rewatch_dates:
        if item.rewatch_count > 0:
            logger.warning(f"Item {item.id} counts {item.rewatch_count} rewatches without dates, resetting count")
            return {"rewatch_dates": [], "rewatch_count": 0, "updated_at": now or utc_now_iso()}
        raise InvalidStateError("No rewatches to remove")
    if index is not None and not 0 <= index < len(rewatch_dates):
        raise OutOfRangeError(f"Rewatch index {index} out of range (0-{len(rewatch_dates) - 1})")

    rewatch_dates.pop(len(rewatch_dates) - 1 if index is None else index)
    return {
        "rewatch_dates": rewatch_dates,
        "rewatch_count": len(rewatch_dates),
        "updated_at": now or utc_now_iso(),
    }


def update_watch_date(item: MediaItem, new_date: str, now: Optional[str] = None) -> dict:
    """Correct the first watch date; rewatch dates are left alone."""
    if new_date is None:
        raise InvalidInputError("A watch date is required")
    return {"watched_at": _checked_date(new_date), "updated_at": now or utc_now_iso()}


def set_status(item: MediaItem, new_status: MediaStatus, now: Optional[str] = None) -> dict:
    """Change the status flag without touching watch history."""
    new_status = MediaStatus(new_status)
    if new_status == MediaStatus.WATCHED:
        return mark_watched(item, None, now)
    return {"status": new_status.value, "updated_at": now or utc_now_iso()}


def total_views(item: MediaItem) -> int:
    """Derived view count used by every display surface."""
    return item.total_views


def check_invariants(item: MediaItem) -> list[str]:
    """Return a description of every violated watch-history invariant."""
    problems = []
    if item.rewatch_count != len(item.rewatch_dates):
        problems.append(
            f"rewatch_count {item.rewatch_count} != {len(item.rewatch_dates)} rewatch dates"
        )
    if item.rewatch_dates and item.watched_at is None:
        problems.append("rewatches recorded without a first watch")
    if item.status == MediaStatus.WATCHED and item.watched_at is None:
        problems.append("status is watched but watched_at is empty")
    return problems


def apply_changes(item: MediaItem, changes: dict) -> MediaItem:
    """Return a copy of ``item`` with ``changes`` applied and validated."""
    return MediaItem.model_validate({**item.to_document(), **changes})
