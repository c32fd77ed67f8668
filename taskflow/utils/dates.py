"""Date helpers shared by the models, the statistics and the API layer."""

import math
from datetime import datetime, timedelta
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


def local_now() -> datetime:
    """Return the current local time as a timezone-aware datetime."""
    return datetime.now().astimezone()


def as_local(value: datetime) -> datetime:
    """Attach the local timezone to a naive datetime.

    Aware datetimes are returned unchanged so that the stored instant and
    offset survive a save/load cycle.

    Raises:
        ValueError: If the local time falls outside the datetime range
    """
    if value.tzinfo is None:
        return value.astimezone()
    return value


def start_of_day(value: datetime) -> datetime:
    """Local midnight of the day containing ``value``.

    The offset is looked up again for midnight itself, which differs from the
    offset of ``value`` on daylight saving transition days.
    """
    local = value.astimezone().replace(tzinfo=None)
    return local.replace(hour=0, minute=0, second=0, microsecond=0).astimezone()


def start_of_month(value: datetime) -> datetime:
    local = value.astimezone().replace(tzinfo=None)
    return local.replace(day=1, hour=0, minute=0, second=0, microsecond=0).astimezone()


def week_ago(value: datetime) -> datetime:
    return value - timedelta(days=7)


def format_due_date(due: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Render a due date relative to now.

    Args:
        due: Due date of the task, or None
        now: Reference time (defaults to the current local time)

    Returns:
        A short human label such as "Due tomorrow" or "Overdue by 2 days",
        the calendar date when the task is due more than a week ahead, and
        an empty string when there is no due date.
    """
    if due is None:
        return ""

    current = as_local(now) if now is not None else local_now()
    due = as_local(due)
    diff_days = math.ceil((due - current).total_seconds() / SECONDS_PER_DAY)

    if diff_days < 0:
        return f"Overdue by {abs(diff_days)} days"
    if diff_days == 0:
        return "Due today"
    if diff_days == 1:
        return "Due tomorrow"
    if diff_days <= 7:
        return f"Due in {diff_days} days"
    return f"{due:%b} {due.day}, {due.year}"
