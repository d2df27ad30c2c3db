# room_timetable/admission.py
"""
Admission of new and edited bookings.

This is the only path that creates or moves a booking. Checks run in a fixed
order and the first violation wins:

1. interval sanity and operating hours (plus the weekend policy flag),
2. start not in the past,
3. room-level conflict against the effective timetable,
4. owner-level conflict against the owner's confirmed bookings in any room.

The room row is locked for the scan-and-write sequence, and the storage
constraints reject whichever of two concurrent writers commits second.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, time
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from room_timetable import models, overlay
from room_timetable.config import settings
from room_timetable.errors import ConflictError, NotFoundError, RaceLostError, ValidationError
from room_timetable.intervals import Interval, institution_now, overlap_clause
from room_timetable.notifications import BookingSummary, fire
from room_timetable.timetable import find_room_conflicts

logger = logging.getLogger(__name__)

Notifier = Callable[[list, BookingSummary], object]

OPEN_STATUSES = (models.BookingStatus.PENDING, models.BookingStatus.CONFIRMED)


@dataclass(frozen=True)
class AdmissionPolicy:
    opening: time = time(7, 30)
    closing: time = time(22, 30)
    allow_weekend_bookings: bool = True

    @classmethod
    def from_settings(cls) -> "AdmissionPolicy":
        return cls(
            opening=settings.OPENING_TIME,
            closing=settings.CLOSING_TIME,
            allow_weekend_bookings=settings.ALLOW_WEEKEND_BOOKINGS,
        )


def validate_interval(interval: Interval, policy: AdmissionPolicy, now: datetime, check_past: bool = True) -> None:
    if interval.is_empty:
        raise ValidationError("End time must be after start time", reason="invalid_interval")

    if (
        interval.end.date() != interval.start.date()
        or interval.start.time() < policy.opening
        or interval.end.time() > policy.closing
    ):
        raise ValidationError(
            f"Bookings must lie within operating hours {policy.opening:%H:%M}-{policy.closing:%H:%M}",
            reason="outside_operating_hours",
        )

    if not policy.allow_weekend_bookings and interval.start.weekday() >= 5:
        raise ValidationError("Bookings are not allowed on weekends", reason="weekend_not_allowed")

    if check_past and interval.start < now:
        raise ValidationError("Cannot create bookings in the past", reason="start_in_past")


def find_owner_conflicts(db: Session, owner_id: int, interval: Interval, exclude_booking_id: int = None):
    query = db.query(models.Booking).filter(
        models.Booking.owner_id == owner_id,
        models.Booking.status == models.BookingStatus.CONFIRMED,
        overlap_clause(models.Booking.start_time, models.Booking.end_time, interval),
    )
    if exclude_booking_id is not None:
        query = query.filter(models.Booking.id != exclude_booking_id)
    return query.order_by(models.Booking.start_time, models.Booking.id).all()


def lock_room(db: Session, room_id: int) -> models.Room:
    # FOR UPDATE serializes admissions per room on PostgreSQL; SQLite ignores it
    room = db.query(models.Room).filter(models.Room.id == room_id).with_for_update().first()
    if room is None:
        raise NotFoundError(f"Room {room_id} not found")
    if not room.is_active:
        raise ValidationError(f"Room {room_id} is not available for booking", reason="room_inactive")
    return room


def check_conflicts(
    db: Session,
    room_id: int,
    owner_id: int,
    interval: Interval,
    exclude_booking_id: int = None,
    exclude_template_id: int = None,
) -> None:
    room_conflicts = find_room_conflicts(
        db, room_id, interval,
        exclude_booking_id=exclude_booking_id,
        exclude_template_id=exclude_template_id,
    )
    if room_conflicts:
        slot = room_conflicts[0]
        raise ConflictError(
            f"Room is already taken by '{slot.title}' "
            f"({slot.interval.start:%Y-%m-%d %H:%M}-{slot.interval.end:%H:%M})",
            party=ConflictError.ROOM,
        )

    owner_conflicts = find_owner_conflicts(db, owner_id, interval, exclude_booking_id=exclude_booking_id)
    if owner_conflicts:
        other = owner_conflicts[0]
        raise ConflictError(
            f"You already have '{other.title}' in room {other.room_id} "
            f"({other.start_time:%Y-%m-%d %H:%M}-{other.end_time:%H:%M})",
            party=ConflictError.OWNER,
        )


def commit_or_race(db: Session, room_id: int, interval: Interval) -> None:
    """Commit, turning a storage-level overlap rejection into RaceLostError."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        party = ConflictError.OWNER if "owner_overlap" in str(exc.orig) else ConflictError.ROOM
        logger.warning(
            "Lost booking race in room %s for %s-%s (%s constraint)",
            room_id, interval.start, interval.end, party,
        )
        raise RaceLostError("Slot was taken by a concurrent booking", party=party) from exc


def load_invitees(db: Session, owner_id: int, invitee_ids: Iterable[int]) -> List[models.User]:
    """Users to invite, in id order; the owner is never their own invitee."""
    wanted = {invitee_id for invitee_id in invitee_ids if invitee_id != owner_id}
    if not wanted:
        return []
    users = db.query(models.User).filter(models.User.id.in_(wanted)).order_by(models.User.id).all()
    missing = wanted - {user.id for user in users}
    if missing:
        raise ValidationError(f"Unknown invitees: {sorted(missing)}", reason="unknown_invitee")
    return users


def booking_recipients(booking: models.Booking, extra_emails: Iterable[str] = ()) -> List[str]:
    recipients = [booking.owner.email] if booking.owner is not None else []
    recipients += [invitee.invitee.email for invitee in booking.invitees if invitee.invitee is not None]
    recipients += list(extra_emails)
    unique = []
    for email in recipients:
        if email and email not in unique:
            unique.append(email)
    return unique


def notify_confirmed(booking: models.Booking, notifier: Optional[Notifier], extra_emails: Iterable[str] = ()) -> None:
    if booking.status != models.BookingStatus.CONFIRMED:
        return
    fire(notifier, booking_recipients(booking, extra_emails), BookingSummary.from_booking(booking))


def try_book(
    db: Session,
    *,
    room_id: int,
    owner_id: int,
    interval: Interval,
    title: str,
    description: str = None,
    invitee_ids: Iterable[int] = (),
    extra_emails: Iterable[str] = (),
    now: datetime = None,
    policy: AdmissionPolicy = None,
    notifier: Optional[Notifier] = None,
) -> models.Booking:
    """
    Admit a new booking or raise.

    Rooms that require approval get a ``pending`` booking; the checks are the
    same, but a pending booking does not block anyone until it is approved.
    Invitees are stored with the booking. ``extra_emails`` only receive the
    confirmation sent right after admission.
    """
    policy = policy or AdmissionPolicy.from_settings()
    now = now or institution_now()

    validate_interval(interval, policy, now)
    room = lock_room(db, room_id)
    check_conflicts(db, room.id, owner_id, interval)
    invitees = load_invitees(db, owner_id, invitee_ids)

    booking = models.Booking(
        room_id=room.id,
        owner_id=owner_id,
        title=title,
        description=description,
        start_time=interval.start,
        end_time=interval.end,
        status=models.BookingStatus.PENDING if room.requires_approval else models.BookingStatus.CONFIRMED,
        invitees=[models.BookingInvitee(invitee_id=user.id) for user in invitees],
    )
    db.add(booking)
    commit_or_race(db, room.id, interval)
    db.refresh(booking)

    logger.info(
        "Booking %s admitted as %s: room %s, owner %s, %s-%s",
        booking.id, booking.status, room.id, owner_id, interval.start, interval.end,
    )
    notify_confirmed(booking, notifier, extra_emails)
    return booking


def edit_booking(
    db: Session,
    booking: models.Booking,
    *,
    interval: Interval = None,
    title: str = None,
    description: str = None,
    now: datetime = None,
    policy: AdmissionPolicy = None,
) -> models.Booking:
    """
    Change a booking's time and/or content.

    Metadata-only edits skip every check. A time change reruns the full
    chain with the booking itself excluded; the past-time check is skipped
    only while the start stays where it was.
    """
    if booking.status not in OPEN_STATUSES:
        raise ValidationError(f"A {booking.status} booking cannot be edited", reason="booking_not_editable")

    policy = policy or AdmissionPolicy.from_settings()
    now = now or institution_now()
    current = Interval(booking.start_time, booking.end_time)

    if interval is not None and interval != current:
        validate_interval(interval, policy, now, check_past=interval.start != current.start)
        lock_room(db, booking.room_id)
        check_conflicts(db, booking.room_id, booking.owner_id, interval, exclude_booking_id=booking.id)
        booking.start_time = interval.start
        booking.end_time = interval.end

    if title is not None:
        booking.title = title
    if description is not None:
        booking.description = description

    commit_or_race(db, booking.room_id, interval or current)
    db.refresh(booking)
    logger.info("Booking %s updated", booking.id)
    return booking


def approve_booking(
    db: Session,
    booking: models.Booking,
    *,
    approver_id: int,
    now: datetime = None,
    policy: AdmissionPolicy = None,
    notifier: Optional[Notifier] = None,
) -> models.Booking:
    if booking.status != models.BookingStatus.PENDING:
        raise ValidationError(f"Only pending bookings can be approved (is {booking.status})", reason="booking_not_pending")

    policy = policy or AdmissionPolicy.from_settings()
    now = now or institution_now()
    interval = Interval(booking.start_time, booking.end_time)

    validate_interval(interval, policy, now)
    lock_room(db, booking.room_id)
    check_conflicts(db, booking.room_id, booking.owner_id, interval, exclude_booking_id=booking.id)

    booking.status = models.BookingStatus.CONFIRMED
    booking.approved_by = approver_id
    booking.approved_at = now
    commit_or_race(db, booking.room_id, interval)
    db.refresh(booking)

    logger.info("Booking %s approved by %s", booking.id, approver_id)
    notify_confirmed(booking, notifier)
    return booking


def deny_booking(db: Session, booking: models.Booking, *, approver_id: int, now: datetime = None) -> models.Booking:
    if booking.status != models.BookingStatus.PENDING:
        raise ValidationError(f"Only pending bookings can be denied (is {booking.status})", reason="booking_not_pending")

    booking.status = models.BookingStatus.DENIED
    booking.approved_by = approver_id
    booking.approved_at = now or institution_now()
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s denied by %s", booking.id, approver_id)
    return booking


def cancel_booking(db: Session, booking: models.Booking, *, cancelled_by: int = None) -> models.Booking:
    if booking.status not in OPEN_STATUSES:
        raise ValidationError(f"A {booking.status} booking cannot be cancelled", reason="booking_not_cancellable")

    if booking.template_id is not None:
        # Generated rows are cancelled through a template exception so the
        # occurrence neither reappears nor gets materialized again
        overlay.remove_generated_booking(db, booking, removed_by=cancelled_by, reason="Generated booking cancelled")
    else:
        booking.status = models.BookingStatus.CANCELLED
        db.commit()

    db.refresh(booking)
    logger.info("Booking %s cancelled by %s", booking.id, cancelled_by)
    return booking
