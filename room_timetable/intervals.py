# room_timetable/intervals.py
"""
Half-open time intervals ``[start, end)`` in institutional-local time.

``overlaps`` is the only overlap rule in the engine. Storage scans use
``overlap_clause``, which renders the same predicate in SQL.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Union
from zoneinfo import ZoneInfo

from sqlalchemy import and_

from room_timetable.config import settings

WEEK = timedelta(days=7)


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self, other)


def overlaps(a: Interval, b: Interval) -> bool:
    # Zero-duration intervals never overlap anything
    if a.is_empty or b.is_empty:
        return False
    return a.start < b.end and b.start < a.end


def overlap_clause(start_column, end_column, interval: Interval):
    return and_(start_column < interval.end, end_column > interval.start)


def week_start_of(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        value = value.date()
    return value - timedelta(days=value.weekday())


def week_bounds(week_start: date) -> Interval:
    start = datetime.combine(week_start, datetime.min.time())
    return Interval(start, start + WEEK)


def weeks_spanned(interval: Interval) -> List[date]:
    """Mondays of every week the interval touches, in order."""
    first = week_start_of(interval.start)
    # end is exclusive, so an interval ending exactly at Monday 00:00 stays in its week
    last_instant = interval.end - timedelta(microseconds=1) if not interval.is_empty else interval.start
    last = week_start_of(last_instant)
    weeks = []
    current = first
    while current <= last:
        weeks.append(current)
        current += WEEK
    return weeks


def institution_now() -> datetime:
    return datetime.now(ZoneInfo(settings.INSTITUTION_TIMEZONE)).replace(tzinfo=None)


def to_institution_time(value: datetime) -> datetime:
    """Naive local wall-clock time; aware values are converted first."""
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(settings.INSTITUTION_TIMEZONE)).replace(tzinfo=None)


def local_interval(start: datetime, end: datetime) -> Interval:
    return Interval(to_institution_time(start), to_institution_time(end))
