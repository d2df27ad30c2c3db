# room_timetable/models.py
from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, DateTime, Date, Time, Text,
    UniqueConstraint, CheckConstraint, Index, DDL, event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from room_timetable.database import Base


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DENIED = "denied"
    CANCELLED = "cancelled"

    ALL = (PENDING, CONFIRMED, DENIED, CANCELLED)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True)
    full_name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True)
    password = Column(String)
    is_admin = Column(Boolean, default=False)


class Room(Base):
    __tablename__ = "rooms"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True)
    capacity = Column(Integer, default=0)
    room_type = Column(String, nullable=True)
    requires_approval = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class TimetableTemplate(Base):
    __tablename__ = "timetable_templates"
    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    # Matched against users.full_name case-insensitively, never a foreign key
    teacher_name = Column(String, nullable=False)
    title = Column(String, nullable=False)
    weekday = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    repeat_interval_weeks = Column(Integer, nullable=False, default=1)
    effective_from = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    room = relationship("Room")
    exceptions = relationship("TemplateException", back_populates="template")

    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_template_weekday"),
        CheckConstraint("duration_minutes > 0", name="ck_template_duration_positive"),
        CheckConstraint("repeat_interval_weeks > 0", name="ck_template_repeat_positive"),
        Index("ix_templates_room_weekday", "room_id", "weekday"),
    )


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=BookingStatus.CONFIRMED)

    template_id = Column(Integer, ForeignKey("timetable_templates.id", ondelete="SET NULL"), nullable=True)
    template_teacher_name = Column(String, nullable=True)
    generated_for_week = Column(Date, nullable=True)

    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    room = relationship("Room")
    owner = relationship("User", foreign_keys=[owner_id])
    template = relationship("TimetableTemplate")
    invitees = relationship(
        "BookingInvitee", back_populates="booking", cascade="all, delete-orphan",
        order_by="BookingInvitee.invitee_id",
    )

    @property
    def invitee_ids(self):
        return [invitee.invitee_id for invitee in self.invitees]

    __table_args__ = (
        # Idempotency key for materialization
        UniqueConstraint("template_id", "generated_for_week", name="uq_booking_template_week"),
        CheckConstraint(
            "template_id IS NULL OR generated_for_week IS NOT NULL",
            name="ck_booking_template_week_set",
        ),
        CheckConstraint("end_time > start_time", name="ck_booking_time_order"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'denied', 'cancelled')",
            name="ck_booking_status",
        ),
        Index("ix_bookings_room_time", "room_id", "start_time", "end_time"),
        Index("ix_bookings_owner_time", "owner_id", "start_time", "end_time"),
    )


class BookingInvitee(Base):
    __tablename__ = "booking_invitees"
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True)
    invitee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="invitees")
    invitee = relationship("User")


class TemplateException(Base):
    __tablename__ = "template_exceptions"
    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("timetable_templates.id", ondelete="RESTRICT"), nullable=False)
    week_start_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)
    resolved_booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    template = relationship("TimetableTemplate", back_populates="exceptions")

    __table_args__ = (
        UniqueConstraint("template_id", "week_start_date", name="uq_exception_template_week"),
    )


# Exclusion constraints only exist on PostgreSQL; they reject the second of two
# concurrent confirmed inserts even when both passed the application scan.
ROOM_EXCLUSION_DDL = (
    "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_room_overlap "
    "EXCLUDE USING gist (room_id WITH =, tsrange(start_time, end_time, '[)') WITH &&) "
    "WHERE (status = 'confirmed')"
)
OWNER_EXCLUSION_DDL = (
    "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_owner_overlap "
    "EXCLUDE USING gist (owner_id WITH =, tsrange(start_time, end_time, '[)') WITH &&) "
    "WHERE (status = 'confirmed')"
)

event.listen(
    Booking.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(Booking.__table__, "after_create", DDL(ROOM_EXCLUSION_DDL).execute_if(dialect="postgresql"))
event.listen(Booking.__table__, "after_create", DDL(OWNER_EXCLUSION_DDL).execute_if(dialect="postgresql"))
