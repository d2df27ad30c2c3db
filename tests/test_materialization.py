from datetime import date, datetime

import pytest

from room_timetable import materialization, models
from room_timetable.errors import ValidationError
from room_timetable.eligibility import INTERVAL_MISMATCH
from room_timetable.materialization import (
    ALREADY_EXISTS,
    CONFLICT,
    CREATED,
    EXCEPTION,
    NO_OWNER_MATCH,
    SKIPPED,
    materialization_window,
    run_materialization,
)
from room_timetable.overlay import create_template_exception
from room_timetable.owners import ASSIGN_TO_ADMIN, ASSIGN_TO_CREATOR, SKIP
from room_timetable.timetable import BOOKING, get_effective_timetable

WEEK = date(2024, 1, 15)


def run(db, **kwargs):
    kwargs.setdefault("today", WEEK)
    kwargs.setdefault("lookahead_weeks", 2)
    kwargs.setdefault("owner_policy", SKIP)
    return run_materialization(db, **kwargs)


def generated_rows(db, template):
    return db.query(models.Booking).filter(models.Booking.template_id == template.id).all()


def test_window_starts_on_the_current_monday():
    assert materialization_window(date(2024, 1, 17), 3) == [date(2024, 1, 15), date(2024, 1, 22), date(2024, 1, 29)]


def test_eligible_week_becomes_a_confirmed_booking(db, make_room, make_user, make_template):
    room = make_room()
    teacher = make_user(full_name="Ada Lovelace")
    template = make_template(room, notes="Bring laptops")

    report = run(db)

    assert [(r.week_start, r.status, r.reason) for r in report.results] == [
        (date(2024, 1, 15), CREATED, None),
        (date(2024, 1, 22), SKIPPED, INTERVAL_MISMATCH),
    ]
    assert report.generated_count == 1
    [booking] = generated_rows(db, template)
    assert booking.owner_id == teacher.id
    assert booking.status == models.BookingStatus.CONFIRMED
    assert booking.generated_for_week == WEEK
    assert booking.template_teacher_name == "Ada Lovelace"
    assert booking.start_time == datetime(2024, 1, 17, 8, 30)
    assert booking.end_time == datetime(2024, 1, 17, 9, 30)
    assert booking.description == "Bring laptops"


def test_rerun_is_a_no_op(db, make_room, make_user, make_template):
    room = make_room()
    make_user(full_name="Ada Lovelace")
    template = make_template(room, repeat_interval_weeks=1)

    first = run(db)
    second = run(db)

    assert first.generated_count == 2
    assert second.generated_count == 0
    assert {r.reason for r in second.results} == {ALREADY_EXISTS}
    assert len(generated_rows(db, template)) == 2


def test_materialized_week_shows_the_booking_only(db, make_room, make_user, make_template):
    room = make_room()
    make_user(full_name="Ada Lovelace")
    make_template(room)
    run(db)

    slots = get_effective_timetable(db, room.id, WEEK)

    assert len(slots) == 1
    assert slots[0].kind == BOOKING


def test_cancelled_week_is_skipped(db, make_room, make_user, make_template):
    room = make_room()
    make_user(full_name="Ada Lovelace")
    template = make_template(room, repeat_interval_weeks=1)
    create_template_exception(db, template, WEEK, reason="Holiday")

    report = run(db)

    assert [(r.week_start, r.status, r.reason) for r in report.results] == [
        (date(2024, 1, 15), SKIPPED, EXCEPTION),
        (date(2024, 1, 22), CREATED, None),
    ]


def test_exception_after_materialization_cancels_the_generated_booking(db, make_room, make_user, make_template):
    room = make_room()
    make_user(full_name="Ada Lovelace")
    template = make_template(room)
    run(db)

    exception = create_template_exception(db, template, WEEK)
    [booking] = generated_rows(db, template)

    assert booking.status == models.BookingStatus.CANCELLED
    assert exception.resolved_booking_id == booking.id
    slots = get_effective_timetable(db, room.id, WEEK)
    assert len(slots) == 1
    assert slots[0].cancelled is True

    rerun = run(db)
    assert rerun.generated_count == 0


def test_unmatched_teacher_with_skip_policy(db, make_room, make_template):
    room = make_room()
    make_template(room, teacher_name="Nobody Known")

    report = run(db, owner_policy=SKIP)

    assert report.results[0].status == SKIPPED
    assert report.results[0].reason == NO_OWNER_MATCH


def test_unmatched_teacher_falls_back_to_creator(db, make_room, make_user, make_template):
    room = make_room()
    creator = make_user(full_name="Timetable Office")
    template = make_template(room, teacher_name="Nobody Known", created_by=creator.id)

    report = run(db, owner_policy=ASSIGN_TO_CREATOR)

    assert report.generated_count == 1
    assert generated_rows(db, template)[0].owner_id == creator.id


def test_creator_policy_without_creator_skips(db, make_room, make_user, make_template):
    room = make_room()
    make_user(full_name="Admin", is_admin=True)
    make_template(room, teacher_name="Nobody Known")

    report = run(db, owner_policy=ASSIGN_TO_CREATOR)

    assert report.results[0].reason == NO_OWNER_MATCH


def test_unmatched_teacher_falls_back_to_first_admin(db, make_room, make_user, make_template):
    room = make_room()
    make_user(full_name="Someone Else")
    admin = make_user(full_name="Registrar", is_admin=True)
    make_user(full_name="Second Admin", is_admin=True)
    template = make_template(room, teacher_name="Nobody Known")

    report = run(db, owner_policy=ASSIGN_TO_ADMIN)

    assert report.generated_count == 1
    assert generated_rows(db, template)[0].owner_id == admin.id


def test_teacher_name_match_ignores_case_and_spacing(db, make_room, make_user, make_template):
    room = make_room()
    teacher = make_user(full_name="Ada Lovelace")
    template = make_template(room, teacher_name="  ada LOVELACE ")

    run(db)

    assert generated_rows(db, template)[0].owner_id == teacher.id


def test_conflict_is_skipped_and_run_continues(db, make_room, make_user, make_template, make_booking):
    busy_room, free_room = make_room(), make_room()
    make_user(full_name="Ada Lovelace")
    other = make_user(full_name="Grace Hopper")
    blocked = make_template(busy_room)
    fine = make_template(free_room, teacher_name="Grace Hopper", start_time=datetime(2024, 1, 1, 11).time())
    make_booking(busy_room, other, datetime(2024, 1, 17, 9), datetime(2024, 1, 17, 10))

    report = run(db)

    by_template = {(r.template_id, r.week_start): r for r in report.results}
    assert by_template[(blocked.id, WEEK)].status == SKIPPED
    assert by_template[(blocked.id, WEEK)].reason == CONFLICT
    assert by_template[(fine.id, WEEK)].status == CREATED
    assert generated_rows(db, blocked) == []


def test_owner_double_booking_is_a_conflict(db, make_room, make_user, make_template, make_booking):
    room, elsewhere = make_room(), make_room()
    teacher = make_user(full_name="Ada Lovelace")
    template = make_template(room)
    make_booking(elsewhere, teacher, datetime(2024, 1, 17, 8), datetime(2024, 1, 17, 9))

    report = run(db)

    assert report.results[0].reason == CONFLICT
    assert generated_rows(db, template) == []


def test_inactive_template_is_not_materialized(db, make_room, make_user, make_template):
    room = make_room()
    make_user(full_name="Ada Lovelace")
    template = make_template(room, is_active=False)

    report = run(db)

    assert report.results == []
    assert generated_rows(db, template) == []


def test_only_matched_teacher_is_notified(db, make_room, make_user, make_template):
    sent = []
    room = make_room()
    make_user(full_name="Ada Lovelace", email="ada@example.edu")
    make_user(full_name="Registrar", is_admin=True, email="registrar@example.edu")
    make_template(room)
    make_template(room, teacher_name="Nobody Known", start_time=datetime(2024, 1, 1, 12).time())

    report = run(db, owner_policy=ASSIGN_TO_ADMIN, notifier=lambda recipients, summary: sent.append(recipients))

    assert report.generated_count == 2
    assert sent == [["ada@example.edu"]]


def test_row_inserted_by_a_concurrent_run_is_reported_as_existing(db, make_room, make_user, make_template, monkeypatch):
    room = make_room()
    teacher = make_user(full_name="Ada Lovelace")
    template = make_template(room)
    real_check_conflicts = materialization.check_conflicts

    def check_then_lose_race(*args, **kwargs):
        real_check_conflicts(*args, **kwargs)
        # Another job commits the same template-week after our checks passed
        db.add(models.Booking(
            room_id=room.id, owner_id=teacher.id, title=template.title,
            start_time=datetime(2024, 1, 17, 8, 30), end_time=datetime(2024, 1, 17, 9, 30),
            status=models.BookingStatus.CONFIRMED, template_id=template.id,
            template_teacher_name=template.teacher_name, generated_for_week=WEEK,
        ))
        db.commit()

    monkeypatch.setattr(materialization, "check_conflicts", check_then_lose_race)
    report = run(db, lookahead_weeks=1)

    assert [(r.status, r.reason) for r in report.results] == [(SKIPPED, ALREADY_EXISTS)]
    assert len(generated_rows(db, template)) == 1


def test_zero_lookahead_materializes_nothing(db, make_room, make_user, make_template):
    room = make_room()
    make_user(full_name="Ada Lovelace")
    template = make_template(room, repeat_interval_weeks=1)

    report = run(db, lookahead_weeks=0)

    assert report.weeks == []
    assert report.results == []
    assert generated_rows(db, template) == []


def test_negative_lookahead_is_rejected(db):
    with pytest.raises(ValidationError) as excinfo:
        run(db, lookahead_weeks=-1)
    assert excinfo.value.reason == "invalid_lookahead"


def test_missing_lookahead_uses_configured_window(db, monkeypatch):
    monkeypatch.setattr(materialization.settings, "MATERIALIZE_LOOKAHEAD_WEEKS", 3)
    report = run_materialization(db, today=WEEK)
    assert report.weeks == [date(2024, 1, 15), date(2024, 1, 22), date(2024, 1, 29)]
