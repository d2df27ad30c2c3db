# room_timetable/routes/rooms.py
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from room_timetable import models, database, schemas
from room_timetable.intervals import local_interval, week_start_of
from room_timetable.timetable import check_slot_availability, get_effective_timetable

router = APIRouter(
    prefix="/rooms",
    tags=["Rooms"]
)

def _get_room(room_id: int, db: Session) -> models.Room:
    room = db.query(models.Room).filter(models.Room.id == room_id).first()
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room

# Public - Effective timetable of a room for one week
@router.get("/{room_id}/timetable", response_model=schemas.TimetableResponse)
def room_timetable(
    room_id: int,
    week_start: date,
    include_cancelled: bool = True,
    db: Session = Depends(database.get_db)
):
    _get_room(room_id, db)
    week_start = week_start_of(week_start)
    slots = get_effective_timetable(db, room_id, week_start)
    if not include_cancelled:
        slots = [slot for slot in slots if not slot.cancelled]

    return {
        "room_id": room_id,
        "week_start": week_start,
        "slots": [
            {
                "kind": slot.kind,
                "start_time": slot.interval.start,
                "end_time": slot.interval.end,
                "title": slot.title,
                "owner_or_teacher_name": slot.owner_or_teacher_name,
                "booking_id": slot.booking_id,
                "template_id": slot.template_id,
                "cancelled": slot.cancelled,
            }
            for slot in slots
        ],
    }

# Public - Is the room free for an interval
@router.get("/{room_id}/availability", response_model=schemas.AvailabilityResponse)
def room_availability(
    room_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_booking_id: Optional[int] = None,
    db: Session = Depends(database.get_db)
):
    _get_room(room_id, db)
    if end_time <= start_time:
        raise HTTPException(status_code=400, detail="end_time must be after start_time")

    interval = local_interval(start_time, end_time)
    available = check_slot_availability(db, room_id, interval, exclude_booking_id)
    return {"room_id": room_id, "start_time": interval.start, "end_time": interval.end, "available": available}
