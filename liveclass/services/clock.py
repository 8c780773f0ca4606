"""Civil-time helpers shared by the admission gate and the reminder scheduler.

Schedules store clock values as ``HH:MM`` strings and weekdays as 0 = Sunday,
so everything here works in whole minutes of the configured time zone.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Callable, Optional, Protocol
from zoneinfo import ZoneInfo

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$")

Clock = Callable[[], datetime]


class Occurrence(Protocol):
    date: Optional[date]
    day_of_week: Optional[int]


def parse_clock(value: str) -> str:
    """Normalise ``H:MM``, ``HH:MM`` or ``HH:MM:SS`` to ``HH:MM``."""
    match = _CLOCK_RE.match((value or "").strip())
    if not match:
        raise ValueError(f"Invalid clock time: {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid clock time: {value!r}")
    return f"{hours:02d}:{minutes:02d}"


def clock_minutes(value: str) -> int:
    hours, minutes = parse_clock(value).split(":")
    return int(hours) * 60 + int(minutes)


def minutes_of_day(moment: datetime) -> int:
    # Seconds are dropped: 09:45:59 still counts as 09:45
    return moment.hour * 60 + moment.minute


def day_of_week(day: date) -> int:
    """Weekday with Sunday as 0, matching the stored ``day_of_week`` values."""
    return (day.weekday() + 1) % 7


def local_now(tz_name: str) -> datetime:
    return datetime.now(ZoneInfo(tz_name))


def make_clock(tz_name: str) -> Clock:
    zone = ZoneInfo(tz_name)
    return lambda: datetime.now(zone)


def applies_on(occurrence: Occurrence, day: date) -> bool:
    """A dated schedule applies only on its date; an undated one on its weekday."""
    if occurrence.date is not None:
        return occurrence.date == day
    return occurrence.day_of_week is not None and occurrence.day_of_week == day_of_week(day)


def within_tolerance(clock_value: str, moment: datetime, tolerance_minutes: int) -> bool:
    return abs(minutes_of_day(moment) - clock_minutes(clock_value)) <= tolerance_minutes


def has_ended(end_time: str, moment: datetime) -> bool:
    return minutes_of_day(moment) >= clock_minutes(end_time)
