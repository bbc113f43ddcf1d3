from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional, Tuple


def to_minutes(value: time) -> int:
    """Minutes since midnight"""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    return time(hour=minutes // 60, minute=minutes % 60)


def minutes_past(moment: datetime) -> int:
    """First whole minute of the day not before moment"""
    minutes = moment.hour * 60 + moment.minute
    if moment.second or moment.microsecond:
        minutes += 1
    return minutes


def resolve_clock(today: Optional[date], now: Optional[datetime]) -> Tuple[date, Optional[datetime]]:
    """
    The current day and time for a scheduling call.

    A bare ``today`` stands for the whole of that day (no time cut-off);
    with neither given the wall clock is used.
    """
    if now is None and today is None:
        now = datetime.now()
    if now is not None:
        today = now.date()
    return today, now


def minutes_between(start: time, end: time) -> int:
    return max(0, to_minutes(end) - to_minutes(start))


def add_minutes(value: time, minutes: int) -> time:
    return from_minutes(to_minutes(value) + minutes)


def parse_time(value: str) -> time:
    """Parse HH:MM or HH:MM:SS"""
    parts = [int(p) for p in value.strip().split(":")]
    return time(*parts)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Inclusive date iteration"""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def subtract_intervals(
    window: Tuple[int, int],
    busy: List[Tuple[int, int]]
) -> List[Tuple[int, int]]:
    """
    Free (start, end) minute ranges left in window after removing busy ranges.

    Busy ranges may overlap each other or extend past the window.
    """
    start, end = window
    free = []
    cursor = start
    for busy_start, busy_end in sorted(busy):
        if busy_end <= cursor or busy_start >= end:
            continue
        if busy_start > cursor:
            free.append((cursor, busy_start))
        cursor = max(cursor, busy_end)
        if cursor >= end:
            break
    if cursor < end:
        free.append((cursor, end))
    return free
