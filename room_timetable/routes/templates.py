# room_timetable/routes/templates.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from room_timetable import models, database, schemas, auth
from room_timetable.config import settings
from room_timetable.eligibility import validate_template_fields
from room_timetable.materialization import run_materialization
from room_timetable.notifications import background_notifier
from room_timetable.overlay import create_template_exception

router = APIRouter(
    prefix="/templates",
    tags=["Timetable Templates"]
)

def _get_template(template_id: int, db: Session) -> models.TimetableTemplate:
    template = db.query(models.TimetableTemplate).filter(models.TimetableTemplate.id == template_id).first()
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template

def _validate(payload: schemas.TemplateCreate, db: Session):
    room = db.query(models.Room).filter(models.Room.id == payload.room_id).first()
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    validate_template_fields(
        weekday=payload.weekday,
        start_time=payload.start_time,
        duration_minutes=payload.duration_minutes,
        repeat_interval_weeks=payload.repeat_interval_weeks,
        effective_from=payload.effective_from,
        opening=settings.OPENING_TIME,
        closing=settings.CLOSING_TIME,
    )

# Admin Only - Create a template
@router.post("/", response_model=schemas.TemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: schemas.TemplateCreate,
    db: Session = Depends(database.get_db),
    admin: models.User = Depends(auth.verify_admin_user)
):
    _validate(payload, db)
    template = models.TimetableTemplate(**payload.model_dump(), created_by=admin.id)
    db.add(template)
    db.commit()
    db.refresh(template)
    return template

# Public - List templates, optionally for one room
@router.get("/", response_model=List[schemas.TemplateResponse])
def list_templates(room_id: Optional[int] = None, active_only: bool = False, db: Session = Depends(database.get_db)):
    query = db.query(models.TimetableTemplate)
    if room_id is not None:
        query = query.filter(models.TimetableTemplate.room_id == room_id)
    if active_only:
        query = query.filter(models.TimetableTemplate.is_active.is_(True))
    return query.order_by(models.TimetableTemplate.id).all()

# Admin Only - Update or deactivate a template
@router.put("/{template_id}", response_model=schemas.TemplateResponse, dependencies=[Depends(auth.verify_admin_user)])
def update_template(template_id: int, payload: schemas.TemplateCreate, db: Session = Depends(database.get_db)):
    template = _get_template(template_id, db)
    _validate(payload, db)

    for key, value in payload.model_dump().items():
        setattr(template, key, value)

    db.commit()
    db.refresh(template)
    return template

# Admin Only - Delete a template nothing references
@router.delete("/{template_id}", dependencies=[Depends(auth.verify_admin_user)])
def delete_template(template_id: int, db: Session = Depends(database.get_db)):
    template = _get_template(template_id, db)

    has_exceptions = db.query(models.TemplateException).filter(
        models.TemplateException.template_id == template_id
    ).first() is not None
    has_bookings = db.query(models.Booking).filter(
        models.Booking.template_id == template_id
    ).first() is not None
    if has_exceptions or has_bookings:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Template has exceptions or generated bookings; deactivate it instead"
        )

    db.delete(template)
    db.commit()
    return {"message": "Template deleted successfully"}

# Admin or the template's teacher - Cancel one week's occurrence
@router.post(
    "/{template_id}/exceptions",
    response_model=schemas.TemplateExceptionResponse,
    status_code=status.HTTP_201_CREATED,
)
def cancel_occurrence(
    payload: schemas.TemplateExceptionCreate,
    template: models.TimetableTemplate = Depends(auth.verify_template_manager),
    db: Session = Depends(database.get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return create_template_exception(
        db,
        template,
        payload.week_start_date,
        reason=payload.reason,
        created_by=current_user.id,
    )

# Public - Exceptions recorded for a template
@router.get("/{template_id}/exceptions", response_model=List[schemas.TemplateExceptionResponse])
def list_exceptions(template_id: int, db: Session = Depends(database.get_db)):
    _get_template(template_id, db)
    return db.query(models.TemplateException).filter(
        models.TemplateException.template_id == template_id
    ).order_by(models.TemplateException.week_start_date).all()

# Admin Only - Run the materialization job now
@router.post("/materialize", response_model=schemas.MaterializationResponse, dependencies=[Depends(auth.verify_admin_user)])
def materialize_templates(
    background_tasks: BackgroundTasks,
    today: Optional[date] = None,
    lookahead_weeks: Optional[int] = None,
    db: Session = Depends(database.get_db)
):
    report = run_materialization(
        db,
        today=today,
        lookahead_weeks=lookahead_weeks,
        notifier=background_notifier(background_tasks),
    )
    return {
        "weeks": report.weeks,
        "generated_count": report.generated_count,
        "skipped_count": report.skipped_count,
        "results": [vars(result) for result in report.results],
    }
