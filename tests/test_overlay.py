from datetime import date, datetime

import pytest

from room_timetable import models, overlay
from room_timetable.errors import ValidationError
from room_timetable.overlay import create_template_exception, find_exception, remove_generated_booking

WEEK = date(2024, 1, 15)


def generated(make_booking, room, teacher, template, week=WEEK):
    return make_booking(
        room, teacher, datetime(2024, 1, 17, 8, 30), datetime(2024, 1, 17, 9, 30),
        title=template.title, template_id=template.id,
        template_teacher_name=template.teacher_name, generated_for_week=week,
    )


def test_second_request_for_the_same_week_returns_the_first(db, make_room, make_template):
    template = make_template(make_room())

    first = create_template_exception(db, template, WEEK, reason="Exam week")
    second = create_template_exception(db, template, WEEK, reason="Something else")

    assert second.id == first.id
    assert second.reason == "Exam week"


@pytest.mark.parametrize("week", [date(2024, 1, 22), date(2023, 12, 18)])
def test_weeks_without_an_occurrence_cannot_be_cancelled(db, make_room, make_template, week):
    template = make_template(make_room())

    with pytest.raises(ValidationError) as excinfo:
        create_template_exception(db, template, week)

    assert excinfo.value.reason == "not_an_occurrence"
    assert find_exception(db, template.id, week) is None


def test_week_start_must_be_a_monday(db, make_room, make_template):
    with pytest.raises(ValidationError) as excinfo:
        create_template_exception(db, make_template(make_room()), date(2024, 1, 17))
    assert excinfo.value.reason == "week_start_not_monday"


def test_generated_booking_of_a_deactivated_template_can_still_be_removed(
    db, make_room, make_user, make_template, make_booking
):
    room = make_room()
    template = make_template(room)
    booking = generated(make_booking, room, make_user(full_name="Ada Lovelace"), template)
    template.is_active = False
    db.commit()

    exception = remove_generated_booking(db, booking)

    assert exception.resolved_booking_id == booking.id
    assert booking.status == models.BookingStatus.CANCELLED


def test_losing_the_insert_leaves_the_generated_booking_alone(
    db, make_room, make_user, make_template, make_booking, monkeypatch
):
    room = make_room()
    template = make_template(room)
    booking = generated(make_booking, room, make_user(full_name="Ada Lovelace"), template)
    winner = models.TemplateException(template_id=template.id, week_start_date=WEEK, reason="Recorded elsewhere")
    db.add(winner)
    db.commit()

    real_find_exception = overlay.find_exception
    calls = []

    def not_seen_yet(db, template_id, week_start):
        calls.append(week_start)
        # The first lookup runs before the competing row is visible
        if len(calls) == 1:
            return None
        return real_find_exception(db, template_id, week_start)

    monkeypatch.setattr(overlay, "find_exception", not_seen_yet)
    result = create_template_exception(db, template, WEEK, reason="Late request")

    assert result.id == winner.id
    assert result.resolved_booking_id is None
    db.refresh(booking)
    assert booking.status == models.BookingStatus.CONFIRMED
