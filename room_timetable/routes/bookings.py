# room_timetable/routes/bookings.py
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from room_timetable import admission, models, database, schemas, auth
from room_timetable.intervals import local_interval
from room_timetable.notifications import background_notifier
from room_timetable.overlay import remove_generated_booking

router = APIRouter(
    prefix="/bookings",
    tags=["Bookings"]
)

def _get_booking(booking_id: int, db: Session) -> models.Booking:
    booking = db.query(models.Booking).filter(models.Booking.id == booking_id).first()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking

def _check_owner_or_admin(booking: models.Booking, user: models.User):
    if booking.owner_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your booking")

# Request a booking (confirmed, or pending when the room needs approval)
@router.post("/", response_model=schemas.BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: schemas.BookingCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(database.get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return admission.try_book(
        db,
        room_id=payload.room_id,
        owner_id=current_user.id,
        interval=local_interval(payload.start_time, payload.end_time),
        title=payload.title,
        description=payload.description,
        invitee_ids=payload.invitee_ids,
        extra_emails=payload.extra_emails,
        notifier=background_notifier(background_tasks),
    )

# List the caller's bookings, newest first
@router.get("/my-bookings", response_model=List[schemas.BookingResponse])
def list_user_bookings(db: Session = Depends(database.get_db), current_user: models.User = Depends(auth.get_current_user)):
    return db.query(models.Booking).filter(
        models.Booking.owner_id == current_user.id
    ).order_by(models.Booking.start_time.desc(), models.Booking.id.desc()).all()

# List bookings the caller is invited to
@router.get("/invited", response_model=List[schemas.BookingResponse])
def list_invited_bookings(db: Session = Depends(database.get_db), current_user: models.User = Depends(auth.get_current_user)):
    return db.query(models.Booking).join(models.BookingInvitee).filter(
        models.BookingInvitee.invitee_id == current_user.id,
        models.Booking.status.in_([models.BookingStatus.PENDING, models.BookingStatus.CONFIRMED]),
    ).order_by(models.Booking.start_time, models.Booking.id).all()

# Edit time and/or content of a booking
@router.put("/{booking_id}", response_model=schemas.BookingResponse)
def update_booking(
    booking_id: int,
    payload: schemas.BookingUpdate,
    db: Session = Depends(database.get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    booking = _get_booking(booking_id, db)
    _check_owner_or_admin(booking, current_user)

    interval = None
    if payload.start_time is not None or payload.end_time is not None:
        interval = local_interval(
            payload.start_time or booking.start_time,
            payload.end_time or booking.end_time,
        )

    return admission.edit_booking(
        db,
        booking,
        interval=interval,
        title=payload.title,
        description=payload.description,
    )

# Cancel a booking (owner or admin)
@router.post("/{booking_id}/cancel", response_model=schemas.BookingResponse)
def cancel_user_booking(
    booking_id: int,
    db: Session = Depends(database.get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    booking = _get_booking(booking_id, db)
    _check_owner_or_admin(booking, current_user)
    return admission.cancel_booking(db, booking, cancelled_by=current_user.id)

# Admin - List bookings awaiting approval
@router.get("/admin/pending", response_model=List[schemas.BookingResponse], dependencies=[Depends(auth.verify_admin_user)])
def list_pending_bookings(db: Session = Depends(database.get_db)):
    return db.query(models.Booking).filter(
        models.Booking.status == models.BookingStatus.PENDING
    ).order_by(models.Booking.start_time, models.Booking.id).all()

# Admin - Approve a pending booking
@router.post("/admin/{booking_id}/approve", response_model=schemas.BookingResponse)
def approve_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(database.get_db),
    admin: models.User = Depends(auth.verify_admin_user)
):
    booking = _get_booking(booking_id, db)
    return admission.approve_booking(
        db, booking, approver_id=admin.id, notifier=background_notifier(background_tasks)
    )

# Admin - Deny a pending booking
@router.post("/admin/{booking_id}/deny", response_model=schemas.BookingResponse)
def deny_booking(
    booking_id: int,
    db: Session = Depends(database.get_db),
    admin: models.User = Depends(auth.verify_admin_user)
):
    booking = _get_booking(booking_id, db)
    return admission.deny_booking(db, booking, approver_id=admin.id)

# Admin - Delete any booking; generated ones are cancelled for their week instead
@router.delete("/admin/{booking_id}")
def admin_delete_booking(
    booking_id: int,
    db: Session = Depends(database.get_db),
    admin: models.User = Depends(auth.verify_admin_user)
):
    booking = _get_booking(booking_id, db)

    if booking.template_id is not None:
        exception = remove_generated_booking(db, booking, removed_by=admin.id)
        return {
            "message": "Generated booking removed for its week",
            "exception_id": exception.id,
        }

    db.delete(booking)
    db.commit()
    return {"message": "Booking deleted successfully by Admin"}
