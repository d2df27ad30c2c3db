# room_timetable/eligibility.py
"""
Decides whether a recurring template produces an occurrence in a given week.

A template repeats every ``repeat_interval_weeks`` weeks on ``weekday``,
counting from the Monday of ``effective_from``.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from room_timetable.errors import ValidationError
from room_timetable.intervals import Interval, week_start_of

ELIGIBLE = "eligible"
INACTIVE = "inactive"
BEFORE_EFFECTIVE_DATE = "before_effective_date"
INTERVAL_MISMATCH = "interval_mismatch"


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    reason: str
    weeks_since: Optional[int] = None


@dataclass(frozen=True)
class Occurrence:
    template_id: int
    week_start: date
    interval: Interval
    title: str
    teacher_name: str
    cancelled: bool = False


def check_eligibility(template, week_start: date) -> Eligibility:
    if not template.is_active:
        return Eligibility(False, INACTIVE)

    effective_monday = week_start_of(template.effective_from)
    weeks_since = (week_start_of(week_start) - effective_monday).days // 7
    if weeks_since < 0:
        return Eligibility(False, BEFORE_EFFECTIVE_DATE, weeks_since)
    if weeks_since % template.repeat_interval_weeks != 0:
        return Eligibility(False, INTERVAL_MISMATCH, weeks_since)
    return Eligibility(True, ELIGIBLE, weeks_since)


def occurrence_interval(template, week_start: date) -> Interval:
    day = week_start_of(week_start) + timedelta(days=template.weekday)
    start = datetime.combine(day, template.start_time)
    return Interval(start, start + timedelta(minutes=template.duration_minutes))


def resolve_occurrence(template, week_start: date) -> Optional[Occurrence]:
    """Return the template's occurrence for ``week_start``, or None if it has none."""
    if not check_eligibility(template, week_start).eligible:
        return None
    return Occurrence(
        template_id=template.id,
        week_start=week_start_of(week_start),
        interval=occurrence_interval(template, week_start),
        title=template.title,
        teacher_name=template.teacher_name,
    )


def validate_template_fields(
    weekday: int,
    start_time: time,
    duration_minutes: int,
    repeat_interval_weeks: int,
    effective_from: date,
    opening: time = None,
    closing: time = None,
) -> None:
    """Reject template definitions that could never resolve correctly."""
    if repeat_interval_weeks is None or repeat_interval_weeks <= 0:
        raise ValidationError("repeat_interval_weeks must be at least 1", reason="invalid_repeat_interval")
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError("duration_minutes must be positive", reason="invalid_duration")
    if weekday not in range(7):
        raise ValidationError("weekday must be between 0 (Monday) and 6 (Sunday)", reason="invalid_weekday")
    if effective_from.weekday() != 0:
        raise ValidationError("effective_from must be a Monday", reason="effective_from_not_monday")

    if opening is not None and closing is not None:
        start = datetime.combine(date.min, start_time)
        end = start + timedelta(minutes=duration_minutes)
        if start_time < opening or end.date() != date.min or end.time() > closing:
            raise ValidationError(
                f"Template must fit within operating hours {opening:%H:%M}-{closing:%H:%M}",
                reason="outside_operating_hours",
            )
