from __future__ import annotations

import re
from datetime import date, datetime, time

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date.

    Full ISO timestamps ("2024-01-05T10:00:00Z") are accepted and truncated
    to their calendar date, since clients often send Date.toISOString().
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    return datetime.strptime(text[:10], "%Y-%m-%d").date()


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def is_valid_hhmm(value) -> bool:
    return isinstance(value, str) and bool(TIME_PATTERN.match(value))


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(hour=int(hours), minute=int(minutes))


def normalize_hhmm(value: str) -> str:
    """'9:05' -> '09:05' so string ordering matches clock ordering."""
    t = parse_hhmm(value)
    return t.strftime("%H:%M")


def duration_minutes(start: str, end: str) -> int:
    """Minutes between two HH:MM strings on the same day, floored at 0."""
    s = parse_hhmm(start)
    e = parse_hhmm(end)
    return max(0, (e.hour * 60 + e.minute) - (s.hour * 60 + s.minute))


def iso_year_week(d: date) -> tuple[int, int]:
    iso = d.isocalendar()
    return iso[0], iso[1]


def day_of_week_sunday_first(d: date) -> int:
    """1=Sunday .. 7=Saturday, the numbering clients of the analytics API expect."""
    return d.isoweekday() % 7 + 1
