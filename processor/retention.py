"""Retention window and time-window selection over events."""
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from processor.models import Event

RETENTION_WINDOW = timedelta(days=2)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def retention_cutoff(
    now: Optional[datetime] = None,
    window: timedelta = RETENTION_WINDOW
) -> datetime:
    """Earliest end time an event may have and still be retained."""
    if now is None:
        now = utc_now()
    return now - window


def is_retained(
    event: Event,
    now: Optional[datetime] = None,
    window: timedelta = RETENTION_WINDOW
) -> bool:
    """
    Check whether an event is still live.

    The boundary is inclusive: an event ending exactly at now - window is
    retained.
    """
    return event.end >= retention_cutoff(now, window)


def filter_retained(
    events: Iterable[Event],
    now: Optional[datetime] = None,
    window: timedelta = RETENTION_WINDOW
) -> List[Event]:
    cutoff = retention_cutoff(now, window)
    return [event for event in events if event.end >= cutoff]


def events_today(
    events: Iterable[Event],
    now: Optional[datetime] = None
) -> List[Event]:
    """Events whose start falls on the current UTC day."""
    if now is None:
        now = utc_now()
    today = now.date()
    return [event for event in events if event.start.date() == today]


def events_this_week(
    events: Iterable[Event],
    now: Optional[datetime] = None
) -> List[Event]:
    """Events starting between Monday and Sunday of the current UTC week."""
    if now is None:
        now = utc_now()
    monday = now.date() - timedelta(days=now.weekday())
    sunday = monday + timedelta(days=6)
    return [
        event for event in events
        if monday <= event.start.date() <= sunday
    ]


def events_next_days(
    events: Iterable[Event],
    days: int,
    limit: int = 0,
    now: Optional[datetime] = None
) -> List[Event]:
    """
    Events starting within the next N days.

    Args:
        events: Events sorted by start
        days: Number of days to look ahead
        limit: Maximum number of events to return (0 means no limit)
        now: Reference time (default: current UTC time)

    Returns:
        Events with now <= start <= now + days
    """
    if now is None:
        now = utc_now()
    end_date = now + timedelta(days=days)
    selected = [event for event in events if now <= event.start <= end_date]
    if limit > 0:
        selected = selected[:limit]
    return selected


def events_within_horizon(
    events: Iterable[Event],
    days: int,
    now: Optional[datetime] = None
) -> List[Event]:
    """Events starting strictly after now and strictly before now + days."""
    if now is None:
        now = utc_now()
    horizon = now + timedelta(days=days)
    return [event for event in events if now < event.start < horizon]
