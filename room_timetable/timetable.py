# room_timetable/timetable.py
"""
Effective timetable of a room for one week.

Concrete bookings, resolved template occurrences and per-week exceptions are
merged into one ordered list of tagged slots. The merge is a pure function of
the rows it is given and keeps no cache, so repeated calls with no writes in
between return identical output.
"""
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, joinedload

from room_timetable import models
from room_timetable.eligibility import Occurrence, resolve_occurrence
from room_timetable.intervals import Interval, overlaps, week_bounds, week_start_of, weeks_spanned
from room_timetable.overlay import apply_exceptions, exception_weeks_by_template

BOOKING = "booking"
TEMPLATE = "template"

_KIND_ORDER = {BOOKING: 0, TEMPLATE: 1}


@dataclass(frozen=True)
class Slot:
    kind: str
    interval: Interval
    title: str
    owner_or_teacher_name: Optional[str]
    booking_id: Optional[int] = None
    template_id: Optional[int] = None
    cancelled: bool = False

    @property
    def blocking(self) -> bool:
        return not self.cancelled

    def sort_key(self):
        ident = self.booking_id if self.kind == BOOKING else self.template_id
        return (self.interval.start, _KIND_ORDER[self.kind], self.interval.end, ident or 0)


def booking_display_name(booking) -> Optional[str]:
    if booking.template_teacher_name:
        return booking.template_teacher_name
    owner = getattr(booking, "owner", None)
    return owner.full_name if owner is not None else None


def resolve_week(templates, exceptions, week_start: date) -> List[Occurrence]:
    """Occurrences of every template for the week, cancelled ones included."""
    cancelled_weeks = exception_weeks_by_template(exceptions)
    occurrences = []
    for template in templates:
        occurrence = resolve_occurrence(template, week_start)
        if occurrence is None:
            continue
        occurrences.append(apply_exceptions(occurrence, cancelled_weeks.get(template.id, ())))
    return occurrences


def merge_slots(
    week_start: date,
    bookings: Iterable,
    occurrences: Iterable[Occurrence],
    materialized_template_ids: Iterable[int] = (),
) -> List[Slot]:
    """
    Combine confirmed bookings and template occurrences for one week.

    An occurrence whose template already has a booking for this week is
    dropped; the booking stands in for it.
    """
    week = week_bounds(week_start)
    materialized = set(materialized_template_ids)
    slots = []

    for booking in bookings:
        if booking.status != models.BookingStatus.CONFIRMED:
            continue
        if not (week.start <= booking.start_time < week.end):
            continue
        if booking.template_id is not None and booking.generated_for_week == week_start:
            materialized.add(booking.template_id)
        slots.append(Slot(
            kind=BOOKING,
            interval=Interval(booking.start_time, booking.end_time),
            title=booking.title,
            owner_or_teacher_name=booking_display_name(booking),
            booking_id=booking.id,
            template_id=booking.template_id,
        ))

    for occurrence in occurrences:
        if occurrence.template_id in materialized:
            continue
        slots.append(Slot(
            kind=TEMPLATE,
            interval=occurrence.interval,
            title=occurrence.title,
            owner_or_teacher_name=occurrence.teacher_name,
            template_id=occurrence.template_id,
            cancelled=occurrence.cancelled,
        ))

    return sorted(slots, key=Slot.sort_key)


def get_effective_timetable(db: Session, room_id: int, week_start: date) -> List[Slot]:
    week_start = week_start_of(week_start)
    week = week_bounds(week_start)

    bookings = db.query(models.Booking).options(joinedload(models.Booking.owner)).filter(
        models.Booking.room_id == room_id,
        models.Booking.status == models.BookingStatus.CONFIRMED,
        models.Booking.start_time >= week.start,
        models.Booking.start_time < week.end,
    ).order_by(models.Booking.start_time, models.Booking.id).all()

    templates = db.query(models.TimetableTemplate).filter(
        models.TimetableTemplate.room_id == room_id,
        models.TimetableTemplate.is_active.is_(True),
    ).order_by(models.TimetableTemplate.id).all()

    template_ids = [t.id for t in templates]
    exceptions = []
    materialized_ids = []
    if template_ids:
        exceptions = db.query(models.TemplateException).filter(
            models.TemplateException.template_id.in_(template_ids),
            models.TemplateException.week_start_date == week_start,
        ).all()
        # A cancelled generated row always has an exception, which keeps the
        # occurrence visible as cancelled
        materialized_ids = [
            template_id for (template_id,) in db.query(models.Booking.template_id).filter(
                models.Booking.template_id.in_(template_ids),
                models.Booking.generated_for_week == week_start,
                models.Booking.status.in_([models.BookingStatus.CONFIRMED, models.BookingStatus.PENDING]),
            ).all()
        ]

    occurrences = resolve_week(templates, exceptions, week_start)
    return merge_slots(week_start, bookings, occurrences, materialized_ids)


def find_room_conflicts(
    db: Session,
    room_id: int,
    interval: Interval,
    exclude_booking_id: int = None,
    exclude_template_id: int = None,
) -> List[Slot]:
    """Non-cancelled slots of the room's effective timetable that overlap ``interval``."""
    conflicts = []
    for week_start in weeks_spanned(interval):
        for slot in get_effective_timetable(db, room_id, week_start):
            if not slot.blocking:
                continue
            if exclude_booking_id is not None and slot.booking_id == exclude_booking_id:
                continue
            if exclude_template_id is not None and slot.kind == TEMPLATE and slot.template_id == exclude_template_id:
                continue
            if overlaps(slot.interval, interval):
                conflicts.append(slot)
    return conflicts


def check_slot_availability(
    db: Session,
    room_id: int,
    interval: Interval,
    exclude_booking_id: int = None,
) -> bool:
    return not find_room_conflicts(db, room_id, interval, exclude_booking_id=exclude_booking_id)
