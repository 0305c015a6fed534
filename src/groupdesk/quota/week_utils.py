"""Week and day boundary utilities for quota accounting.

Weeks start on a configurable weekday at local midnight in a named IANA
timezone and are returned as half-open UTC intervals ``[start, end)``.
Weekday numbering is 0=Sunday .. 6=Saturday.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def sunday_based_weekday(d: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return d.isoweekday() % 7


def local_week_start(d: date, week_start_day: int = 1) -> date:
    """First day of the week containing local date ``d``."""
    diff = (sunday_based_weekday(d) - week_start_day + 7) % 7
    return d - timedelta(days=diff)


def _local_midnight_utc(d: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(d, time.min, tzinfo=tz).astimezone(timezone.utc)


def week_window(
    reference: datetime | None = None,
    week_start_day: int = 1,
    tz_name: str = "UTC",
) -> tuple[datetime, datetime]:
    """Return ``(week_start, next_week_start)`` in UTC for the week containing ``reference``.

    Spans seven local calendar days, so across a DST change the interval is
    167 or 169 hours long.
    """
    if reference is None:
        reference = datetime.now(timezone.utc)
    if not 0 <= week_start_day <= 6:
        msg = f"week_start_day must be 0..6, got {week_start_day}"
        raise ValueError(msg)
    tz = ZoneInfo(tz_name)
    local_day = reference.astimezone(tz).date()
    start_day = local_week_start(local_day, week_start_day)
    return _local_midnight_utc(start_day, tz), _local_midnight_utc(start_day + timedelta(days=7), tz)


def day_start(reference: datetime | None = None, tz_name: str = "UTC") -> datetime:
    """Local midnight (as UTC) of the day containing ``reference``."""
    if reference is None:
        reference = datetime.now(timezone.utc)
    tz = ZoneInfo(tz_name)
    return _local_midnight_utc(reference.astimezone(tz).date(), tz)
