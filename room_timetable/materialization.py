# room_timetable/materialization.py
"""
Turns eligible template occurrences into concrete booking rows.

For every active template and every week of a rolling window the job
creates one confirmed booking, unless the week is ineligible, cancelled, or
already materialized. The ``(template_id, generated_for_week)`` unique key
makes re-runs and overlapping runs no-ops. Problems with one template-week
are logged and skipped; they never abort the run.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from room_timetable import models
from room_timetable.admission import check_conflicts, lock_room
from room_timetable.config import settings
from room_timetable.eligibility import check_eligibility, resolve_occurrence
from room_timetable.errors import BookingError, ConflictError, DataIntegrityError, ValidationError
from room_timetable.intervals import institution_now, week_start_of
from room_timetable.notifications import BookingSummary, fire
from room_timetable.overlay import find_exception, generated_booking_for
from room_timetable.owners import MATCHED, OwnerDirectory

logger = logging.getLogger(__name__)

CREATED = "created"
SKIPPED = "skipped"

ALREADY_EXISTS = "already_exists"
EXCEPTION = "exception"
NO_OWNER_MATCH = "no_owner_match"
CONFLICT = "conflict"


@dataclass
class OccurrenceResult:
    template_id: int
    week_start: date
    status: str
    reason: Optional[str] = None
    booking_id: Optional[int] = None


@dataclass
class MaterializationReport:
    weeks: List[date]
    results: List[OccurrenceResult] = field(default_factory=list)

    @property
    def generated_count(self) -> int:
        return sum(1 for r in self.results if r.status == CREATED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.status == SKIPPED)


def materialization_window(today: date, lookahead_weeks: int) -> List[date]:
    first = week_start_of(today)
    return [first + timedelta(weeks=offset) for offset in range(lookahead_weeks)]


def materialize_occurrence(
    db: Session,
    template: models.TimetableTemplate,
    week_start: date,
    directory: OwnerDirectory,
    owner_policy: str,
    notifier=None,
) -> OccurrenceResult:
    def skipped(reason):
        return OccurrenceResult(template.id, week_start, SKIPPED, reason)

    eligibility = check_eligibility(template, week_start)
    if not eligibility.eligible:
        return skipped(eligibility.reason)

    # Unique-key lookups, not time-range scans
    if generated_booking_for(db, template.id, week_start) is not None:
        return skipped(ALREADY_EXISTS)
    if find_exception(db, template.id, week_start) is not None:
        return skipped(EXCEPTION)

    occurrence = resolve_occurrence(template, week_start)
    owner = directory.resolve(template, owner_policy)
    if not owner.found:
        raise DataIntegrityError(
            f"No profile matches teacher '{template.teacher_name}' and policy '{owner_policy}' has no fallback",
            reason=NO_OWNER_MATCH,
        )

    lock_room(db, template.room_id)
    try:
        check_conflicts(db, template.room_id, owner.user_id, occurrence.interval, exclude_template_id=template.id)
    except ConflictError as exc:
        raise DataIntegrityError(
            f"Occurrence {occurrence.interval.start:%Y-%m-%d %H:%M} collides with the {exc.party} schedule: {exc.detail}",
            reason=CONFLICT,
            party=exc.party,
        ) from exc

    booking = models.Booking(
        room_id=template.room_id,
        owner_id=owner.user_id,
        title=template.title,
        description=template.notes,
        start_time=occurrence.interval.start,
        end_time=occurrence.interval.end,
        status=models.BookingStatus.CONFIRMED,
        template_id=template.id,
        template_teacher_name=template.teacher_name,
        generated_for_week=week_start,
    )
    try:
        with db.begin_nested():
            db.add(booking)
    except IntegrityError as exc:
        db.rollback()
        if generated_booking_for(db, template.id, week_start) is not None:
            # A concurrent run got there first
            return skipped(ALREADY_EXISTS)
        raise DataIntegrityError(
            f"Storage rejected occurrence {occurrence.interval.start:%Y-%m-%d %H:%M}: {exc.orig}",
            reason=CONFLICT,
        ) from exc

    db.commit()
    db.refresh(booking)
    logger.info(
        "Materialized template %s for week %s as booking %s (owner %s via %s)",
        template.id, week_start, booking.id, owner.user_id, owner.source,
    )

    # Only the matched teacher hears about it, never a fallback owner
    if owner.source == MATCHED and owner.email:
        fire(notifier, [owner.email], BookingSummary.from_booking(booking))

    return OccurrenceResult(template.id, week_start, CREATED, booking_id=booking.id)


def run_materialization(
    db: Session,
    *,
    today: date = None,
    lookahead_weeks: int = None,
    owner_policy: str = None,
    notifier=None,
) -> MaterializationReport:
    if today is None:
        today = institution_now().date()
    if lookahead_weeks is None:
        lookahead_weeks = settings.MATERIALIZE_LOOKAHEAD_WEEKS
    if owner_policy is None:
        owner_policy = settings.UNMATCHED_TEMPLATE_OWNER_POLICY
    if lookahead_weeks < 0:
        raise ValidationError("lookahead_weeks cannot be negative", reason="invalid_lookahead")

    report = MaterializationReport(weeks=materialization_window(today, lookahead_weeks))
    templates = db.query(models.TimetableTemplate).filter(
        models.TimetableTemplate.is_active.is_(True),
    ).order_by(models.TimetableTemplate.id).all()
    directory = OwnerDirectory.load(db)

    for template in templates:
        for week_start in report.weeks:
            try:
                result = materialize_occurrence(db, template, week_start, directory, owner_policy, notifier)
            except BookingError as exc:
                db.rollback()
                log = logger.error if isinstance(exc, DataIntegrityError) and exc.reason == CONFLICT else logger.warning
                log("Skipped template %s week %s (%s): %s", template.id, week_start, exc.reason, exc.detail)
                result = OccurrenceResult(template.id, week_start, SKIPPED, exc.reason)
            report.results.append(result)

    logger.info(
        "Materialization over %s: %s created, %s skipped",
        [w.isoformat() for w in report.weeks], report.generated_count, report.skipped_count,
    )
    return report
