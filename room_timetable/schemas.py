# room_timetable/schemas.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional
from datetime import date, datetime, time

class UserCreate(BaseModel):
    username: str
    full_name: str
    email: EmailStr
    password: str

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class BookingCreate(BaseModel):
    room_id: int
    start_time: datetime
    end_time: datetime
    title: str = Field(min_length=1)
    description: Optional[str] = None
    invitee_ids: List[int] = []
    # Notified once on confirmation, not stored
    extra_emails: List[EmailStr] = []

class BookingUpdate(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None

class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    owner_id: int
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: str
    template_id: Optional[int] = None
    generated_for_week: Optional[date] = None
    invitee_ids: List[int] = []

class TemplateCreate(BaseModel):
    room_id: int
    teacher_name: str = Field(min_length=1)
    title: str = Field(min_length=1)
    weekday: int  # 0 = Monday ... 6 = Sunday
    start_time: time
    duration_minutes: int
    repeat_interval_weeks: int = 1
    effective_from: date
    is_active: bool = True
    notes: Optional[str] = None

class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    teacher_name: str
    title: str
    weekday: int
    start_time: time
    duration_minutes: int
    repeat_interval_weeks: int
    effective_from: date
    is_active: bool
    notes: Optional[str] = None

class TemplateExceptionCreate(BaseModel):
    week_start_date: date
    reason: Optional[str] = None

class TemplateExceptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    template_id: int
    week_start_date: date
    reason: Optional[str] = None
    resolved_booking_id: Optional[int] = None
    created_by: Optional[int] = None

class SlotResponse(BaseModel):
    kind: str
    start_time: datetime
    end_time: datetime
    title: str
    owner_or_teacher_name: Optional[str] = None
    booking_id: Optional[int] = None
    template_id: Optional[int] = None
    cancelled: bool = False

class TimetableResponse(BaseModel):
    room_id: int
    week_start: date
    slots: List[SlotResponse]

class AvailabilityResponse(BaseModel):
    room_id: int
    start_time: datetime
    end_time: datetime
    available: bool

class OccurrenceResultResponse(BaseModel):
    template_id: int
    week_start: date
    status: str
    reason: Optional[str] = None
    booking_id: Optional[int] = None

class MaterializationResponse(BaseModel):
    weeks: List[date]
    generated_count: int
    skipped_count: int
    results: List[OccurrenceResultResponse]
