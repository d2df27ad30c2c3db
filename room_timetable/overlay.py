# room_timetable/overlay.py
"""
Per-week cancellations of template occurrences.

A cancelled occurrence stays visible in the effective timetable (tagged) so
administrators keep an audit trail, but it never blocks a booking.
"""
import logging
from dataclasses import replace
from datetime import date
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from room_timetable import models
from room_timetable.eligibility import Occurrence, check_eligibility
from room_timetable.errors import ValidationError

logger = logging.getLogger(__name__)


def apply_exceptions(occurrence: Occurrence, exception_weeks: Iterable[date]) -> Occurrence:
    cancelled = occurrence.week_start in set(exception_weeks)
    return replace(occurrence, cancelled=cancelled)


def exception_weeks_by_template(exceptions) -> dict:
    weeks = {}
    for exception in exceptions:
        weeks.setdefault(exception.template_id, set()).add(exception.week_start_date)
    return weeks


def find_exception(db: Session, template_id: int, week_start: date) -> Optional[models.TemplateException]:
    return db.query(models.TemplateException).filter(
        models.TemplateException.template_id == template_id,
        models.TemplateException.week_start_date == week_start,
    ).first()


def generated_booking_for(db: Session, template_id: int, week_start: date) -> Optional[models.Booking]:
    return db.query(models.Booking).filter(
        models.Booking.template_id == template_id,
        models.Booking.generated_for_week == week_start,
    ).first()


def create_template_exception(
    db: Session,
    template,
    week_start: date,
    reason: str = None,
    created_by: int = None,
    require_occurrence: bool = True,
) -> models.TemplateException:
    """
    Cancel one occurrence of ``template``.

    Insert-if-absent on (template_id, week_start): an existing exception for
    the same week is returned as it is. Weeks in which the template has no
    occurrence are rejected unless ``require_occurrence`` is false. If the
    occurrence was already materialized, the generated booking is cancelled
    too and linked through ``resolved_booking_id`` so the slot stops blocking
    the room.
    """
    if week_start.weekday() != 0:
        raise ValidationError("week_start must be a Monday", reason="week_start_not_monday")

    existing = find_exception(db, template.id, week_start)
    if existing:
        return existing

    if require_occurrence:
        eligibility = check_eligibility(template, week_start)
        if not eligibility.eligible:
            raise ValidationError(
                f"Template {template.id} has no occurrence in week {week_start} ({eligibility.reason})",
                reason="not_an_occurrence",
            )

    generated = generated_booking_for(db, template.id, week_start)
    if generated is not None and generated.status not in (models.BookingStatus.CONFIRMED, models.BookingStatus.PENDING):
        generated = None

    exception = models.TemplateException(
        template_id=template.id,
        week_start_date=week_start,
        reason=reason,
        created_by=created_by,
        resolved_booking_id=generated.id if generated is not None else None,
    )
    try:
        with db.begin_nested():
            db.add(exception)
    except IntegrityError:
        # A concurrent request recorded the same cancellation first; its
        # transaction owns the generated booking
        logger.info("Exception for template %s week %s already recorded", template.id, week_start)
        db.rollback()
        return find_exception(db, template.id, week_start)

    if generated is not None:
        generated.status = models.BookingStatus.CANCELLED
    db.commit()
    db.refresh(exception)
    logger.info(
        "Cancelled template %s for week %s (resolved booking %s)",
        template.id, week_start, exception.resolved_booking_id,
    )
    return exception


def remove_generated_booking(
    db: Session,
    booking: models.Booking,
    removed_by: int = None,
    reason: str = "Generated booking removed by administrator",
) -> models.TemplateException:
    """Cancel a materialized booking; the job will not re-create it."""
    if booking.template_id is None:
        raise ValidationError("Booking was not generated from a template", reason="not_generated_booking")

    # The booking exists, so the week stays cancellable after template edits
    exception = create_template_exception(
        db,
        booking.template,
        booking.generated_for_week,
        reason=reason,
        created_by=removed_by,
        require_occurrence=False,
    )
    if booking.status != models.BookingStatus.CANCELLED:
        # The week was already cancelled before this booking was touched
        booking.status = models.BookingStatus.CANCELLED
        db.commit()
    return exception
