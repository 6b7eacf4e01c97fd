"""Day-streak and windowed activity metrics over session histories.

All helpers bucket sessions by the local calendar date of ``start_time``;
timezone-aware timestamps are converted to local time first. Several
sessions on the same day always count as a single active day.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Union

from schemas import SessionRecord

_LOGGER = logging.getLogger(__name__)

DateLike = Union[date, datetime]


def to_local(ts: datetime) -> datetime:
    """Return ``ts`` as a naive local datetime."""

    if ts.tzinfo is not None:
        return ts.astimezone().replace(tzinfo=None)
    return ts


def resolve_now(now: Optional[datetime] = None) -> datetime:
    return datetime.now() if now is None else to_local(now)


def resolve_today(today: Optional[DateLike] = None) -> date:
    if today is None:
        return date.today()
    if isinstance(today, datetime):
        return to_local(today).date()
    return today


def session_day(session: SessionRecord) -> date:
    return to_local(session.start_time).date()


def unique_days(sessions: Iterable[SessionRecord]) -> List[date]:
    """Return the distinct active calendar days, oldest first."""

    return sorted({session_day(session) for session in sessions})


def current_streak(sessions: Iterable[SessionRecord], today: Optional[DateLike] = None) -> int:
    """Count consecutive active days ending at ``today``.

    The walk stops at the first missing day, so a day without activity
    today yields 0 even when yesterday closed a long run.
    """

    days = set(unique_days(sessions))
    check = resolve_today(today)
    streak = 0
    while check in days:
        streak += 1
        check -= timedelta(days=1)
    return streak


def longest_streak(sessions: Iterable[SessionRecord]) -> int:
    """Return the longest run of consecutive active days anywhere in history."""

    best = 0
    run = 0
    previous: Optional[date] = None
    for day in unique_days(sessions):
        if previous is not None and day - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        best = max(best, run)
        previous = day
    return best


def sessions_in_window(
    sessions: Iterable[SessionRecord],
    window_days: int,
    now: Optional[datetime] = None,
) -> List[SessionRecord]:
    """Return sessions whose start lies within the trailing ``window_days``."""

    if window_days <= 0:
        raise ValueError("window_days must be positive")
    window_start = resolve_now(now) - timedelta(days=window_days)
    return [s for s in sessions if to_local(s.start_time) >= window_start]


def active_days_in_window(
    sessions: Iterable[SessionRecord],
    window_days: int,
    now: Optional[datetime] = None,
) -> int:
    recent = sessions_in_window(sessions, window_days, now)
    count = len(unique_days(recent))
    _LOGGER.debug("%d active days within %d-day window", count, window_days)
    return count


def week_buckets(start: date, end: date) -> Sequence[date]:
    """Return bucket start dates every 7 days from ``start`` up to ``end``."""

    buckets = []
    current = start
    while current <= end:
        buckets.append(current)
        current += timedelta(days=7)
    return buckets
