"""Slot grid for the calendar board.

Slots sit at fixed local wall-clock hours in a named timezone, so a 09:00
slot stays at 09:00 local across daylight-saving changes while its UTC
instant moves. Weeks start on Monday at local midnight.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from groupdesk.quota.week_utils import local_week_start, week_window

MONDAY = 1


@dataclass(frozen=True)
class Slot:
    id: str
    week_start: datetime
    start: datetime
    end: datetime
    local_hour: int


def slot_id(start: datetime) -> str:
    """``slot-2025-03-10T13:00:00Z`` for a slot starting at that UTC instant."""
    return "slot-" + start.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def local_monday(reference: datetime, tz_name: str) -> date:
    """Local date of the Monday that starts the week containing ``reference``."""
    return local_week_start(reference.astimezone(ZoneInfo(tz_name)).date(), MONDAY)


def board_week(reference: datetime, tz_name: str) -> tuple[datetime, datetime]:
    """Half-open UTC interval of the board week containing ``reference``."""
    return week_window(reference, MONDAY, tz_name)


def week_slots(
    monday: date,
    tz_name: str,
    hours: Sequence[int],
    length: timedelta,
) -> list[Slot]:
    """All slots of the week starting on local date ``monday``, in start order."""
    tz = ZoneInfo(tz_name)
    week_start = datetime.combine(monday, time.min, tzinfo=tz).astimezone(timezone.utc)
    slots: list[Slot] = []
    for offset in range(7):
        day = monday + timedelta(days=offset)
        for hour in sorted(hours):
            start = datetime.combine(day, time(hour=hour), tzinfo=tz).astimezone(timezone.utc)
            slots.append(
                Slot(
                    id=slot_id(start),
                    week_start=week_start,
                    start=start,
                    end=start + length,
                    local_hour=hour,
                )
            )
    return slots


def publish_plan(
    reference: datetime,
    weeks: int,
    tz_name: str,
    hours: Sequence[int],
    length: timedelta,
) -> list[list[Slot]]:
    """Slots for ``weeks`` consecutive weeks starting with the one containing ``reference``."""
    first = local_monday(reference, tz_name)
    return [week_slots(first + timedelta(weeks=w), tz_name, hours, length) for w in range(weeks)]
