import pytest
from fastapi import HTTPException
from jose import jwt

from room_timetable import auth


def test_token_subject_is_the_user_id(make_user):
    user = make_user(is_admin=True)
    token = auth.create_access_token(user)

    payload = jwt.decode(token, auth.SECRET_KEY, algorithms=[auth.ALGORITHM])
    assert payload["sub"] == str(user.id)
    assert payload["is_admin"] is True
    assert auth.decode_user_id(token) == user.id


def test_unusable_tokens_decode_to_nothing(make_user):
    assert auth.decode_user_id("not-a-token") is None

    email_subject = jwt.encode({"sub": "ada@example.edu"}, auth.SECRET_KEY, algorithm=auth.ALGORITHM)
    assert auth.decode_user_id(email_subject) is None

    expired = auth.create_access_token(make_user(), expires_minutes=-5)
    assert auth.decode_user_id(expired) is None


def test_current_user_is_looked_up_by_id(db, make_user):
    user = make_user()
    token = auth.create_access_token(user)

    assert auth.get_current_user(token=token, db=db).id == user.id

    db.delete(user)
    db.commit()
    with pytest.raises(HTTPException) as excinfo:
        auth.get_current_user(token=token, db=db)
    assert excinfo.value.status_code == 401


def test_admin_dependency(make_user):
    admin = make_user(is_admin=True)
    assert auth.verify_admin_user(current_user=admin) is admin

    with pytest.raises(HTTPException) as excinfo:
        auth.verify_admin_user(current_user=make_user())
    assert excinfo.value.status_code == 403


def test_template_manager_is_admin_or_named_teacher(db, make_user, make_room, make_template):
    template = make_template(make_room(), teacher_name="Ada Lovelace")
    teacher = make_user(full_name="  ADA lovelace")
    admin = make_user(full_name="Registrar", is_admin=True)
    stranger = make_user(full_name="Grace Hopper")

    assert auth.can_manage_template(teacher, template)
    assert auth.can_manage_template(admin, template)
    assert not auth.can_manage_template(stranger, template)
    assert not auth.can_manage_template(make_user(full_name=None), template)

    assert auth.verify_template_manager(template.id, db=db, current_user=teacher) is template

    with pytest.raises(HTTPException) as excinfo:
        auth.verify_template_manager(template.id, db=db, current_user=stranger)
    assert excinfo.value.status_code == 403

    with pytest.raises(HTTPException) as excinfo:
        auth.verify_template_manager(999, db=db, current_user=admin)
    assert excinfo.value.status_code == 404
