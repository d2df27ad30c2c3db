import os

# Point the package at a throwaway database before anything imports it
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["NOTIFICATIONS_ENABLED"] = "false"

from datetime import date, datetime, time, timedelta

import pytest

from room_timetable import models
from room_timetable.database import Base, SessionLocal, engine


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(full_name="Test User", is_admin=False, email=None):
        counter["n"] += 1
        user = models.User(
            username=f"user{counter['n']}",
            full_name=full_name,
            email=email or f"user{counter['n']}@example.edu",
            password="not-a-real-hash",
            is_admin=is_admin,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_room(db):
    counter = {"n": 0}

    def _make_room(requires_approval=False, is_active=True, name=None):
        counter["n"] += 1
        room = models.Room(
            name=name or f"Room {counter['n']}",
            capacity=40,
            room_type="classroom",
            requires_approval=requires_approval,
            is_active=is_active,
        )
        db.add(room)
        db.commit()
        db.refresh(room)
        return room

    return _make_room


@pytest.fixture
def make_template(db):
    def _make_template(room, **overrides):
        fields = dict(
            room_id=room.id,
            teacher_name="Ada Lovelace",
            title="Algorithms",
            weekday=2,
            start_time=time(8, 30),
            duration_minutes=60,
            repeat_interval_weeks=2,
            effective_from=date(2024, 1, 1),
            is_active=True,
        )
        fields.update(overrides)
        template = models.TimetableTemplate(**fields)
        db.add(template)
        db.commit()
        db.refresh(template)
        return template

    return _make_template


@pytest.fixture
def make_booking(db):
    def _make_booking(room, owner, start, end, status=models.BookingStatus.CONFIRMED, title="Meeting", **extra):
        booking = models.Booking(
            room_id=room.id,
            owner_id=owner.id,
            title=title,
            start_time=start,
            end_time=end,
            status=status,
            **extra,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make_booking


def monday_after(moment: datetime, weeks: int = 1) -> date:
    day = moment.date()
    return day - timedelta(days=day.weekday()) + timedelta(weeks=weeks)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))
