from types import SimpleNamespace

from room_timetable.owners import (
    ADMIN,
    ASSIGN_TO_ADMIN,
    ASSIGN_TO_CREATOR,
    CREATOR,
    MATCHED,
    SKIP,
    UNMATCHED,
    OwnerDirectory,
    normalize_name,
)


def user(id, full_name, is_admin=False):
    return SimpleNamespace(id=id, full_name=full_name, email=f"u{id}@example.edu", is_admin=is_admin)


def template(teacher_name, created_by=None):
    return SimpleNamespace(teacher_name=teacher_name, created_by=created_by)


def test_normalize_name():
    assert normalize_name("  Ada LOVELACE ") == "ada lovelace"
    assert normalize_name(None) == ""


def test_first_profile_wins_for_duplicate_names():
    directory = OwnerDirectory([user(5, "Ada Lovelace"), user(2, "ada lovelace")])
    assert directory.lookup("Ada Lovelace") == 2


def test_blank_names_never_match():
    directory = OwnerDirectory([user(1, None), user(2, "  ")])
    assert directory.lookup("") is None


def test_match_carries_email():
    resolution = OwnerDirectory([user(3, "Ada Lovelace")]).resolve(template("ada lovelace"), SKIP)
    assert resolution.found
    assert (resolution.user_id, resolution.source, resolution.email) == (3, MATCHED, "u3@example.edu")


def test_fallback_order():
    directory = OwnerDirectory([user(1, "Someone"), user(4, "Second Admin", True), user(2, "Registrar", True)])

    assert directory.fallback_admin_id == 2
    assert directory.resolve(template("Unknown", created_by=9), ASSIGN_TO_ADMIN).source == CREATOR
    assert directory.resolve(template("Unknown"), ASSIGN_TO_ADMIN).source == ADMIN
    assert directory.resolve(template("Unknown"), ASSIGN_TO_CREATOR).source == UNMATCHED
    assert not directory.resolve(template("Unknown", created_by=9), SKIP).found
