from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from jose import jwt

from src.markit.markit.core.enums import LectureStatus, Role
from src.markit.markit.core.exceptions import AuthenticationError, ValidationError
from src.markit.markit.users.service import AuthService, UserService


@pytest.fixture
def auth(users):
    return AuthService(users, secret="unit-secret", expires_days=7)


@pytest.fixture
def user_service(users, subjects, lectures, stats, auth):
    return UserService(users, subjects, lectures, stats, auth)


def test_register_stores_hash_and_defaults(auth, users):
    result = auth.register({"name": "Grace Hopper", "email": "GRACE@navy.mil", "password": "Cobol1959"})

    stored = users.get_by_email("grace@navy.mil")
    assert stored.role == Role.STUDENT
    assert stored.attendance_goal == 75
    assert stored.password_hash != "Cobol1959"
    assert stored.preferences["theme"] == "system"
    assert auth.resolve_token(result.token).user_id == stored.user_id


def test_register_duplicate_email(auth, student):
    with pytest.raises(ValidationError, match="User already exists with this email"):
        auth.register({"name": "Copy", "email": "STUDENT@example.com", "password": "Secret123"})


def test_password_needs_mixed_case_and_digit(auth):
    with pytest.raises(ValidationError) as exc:
        auth.register({"name": "Weak", "email": "weak@example.com", "password": "alllowercase"})

    assert [e.field for e in exc.value.errors] == ["password"]


def test_token_claims_and_expiry(auth, student):
    issued = datetime(2024, 1, 1, tzinfo=timezone.utc)
    token = auth.issue_token(student.user_id, now=issued)

    claims = jwt.get_unverified_claims(token)
    assert claims["sub"] == str(student.user_id)
    assert claims["exp"] - claims["iat"] == int(timedelta(days=7).total_seconds())
    with pytest.raises(AuthenticationError, match="token failed"):
        auth.resolve_token(token)


def test_token_signed_with_other_secret_is_rejected(users, student):
    foreign = AuthService(users, secret="someone-else").issue_token(student.user_id)

    with pytest.raises(AuthenticationError):
        AuthService(users, secret="unit-secret").resolve_token(foreign)


def test_inactive_user_cannot_log_in(auth, users, student):
    users.update_fields(student.user_id, {"is_active": False})

    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        auth.authenticate(student.email, "Secret123")


def test_update_profile_merges_preferences(user_service, student):
    user = user_service.update_profile(
        student.user_id,
        {"profile": {"phone": "+1 555 123 4567"}, "preferences": {"notifications": {"push": False}}},
    )

    assert user.profile["phone"] == "+1 555 123 4567"
    assert user.preferences["notifications"] == {"email": True, "push": False, "reminders": True}
    assert user.preferences["theme"] == "system"


def test_update_profile_rejects_bad_phone(user_service, student):
    with pytest.raises(ValidationError) as exc:
        user_service.update_profile(student.user_id, {"profile": {"phone": "call me"}})

    assert [e.field for e in exc.value.errors] == ["profile.phone"]


def test_attendance_goal_bounds(user_service, student):
    assert user_service.update_attendance_goal(student.user_id, 80).attendance_goal == 80
    with pytest.raises(ValidationError):
        user_service.update_attendance_goal(student.user_id, 120)


def test_stats_overview_and_monthly_activity(user_service, stats, lectures, student, math, fixed_now):
    lectures.add(student.user_id, math.subject_id, date(2024, 2, 1), LectureStatus.PRESENT)
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 1), LectureStatus.EXCUSED)
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 2), LectureStatus.ABSENT)
    stats.recompute_subject_stats(math.subject_id)

    result = user_service.stats(student.user_id, today=fixed_now.date())

    assert result["overview"]["totalSubjects"] == 1
    assert result["overview"]["averageAttendance"] == 33
    assert result["overview"]["attendanceRate"] == 67
    assert result["monthlyActivity"] == [
        {"year": 2024, "month": 2, "total": 1, "present": 1},
        {"year": 2024, "month": 3, "total": 2, "present": 1},
    ]


def test_delete_account_purges_everything(user_service, users, subjects, lectures, student, math):
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 1))

    with pytest.raises(AuthenticationError, match="Incorrect password"):
        user_service.delete_account(student.user_id, "Wrong1234")

    user_service.delete_account(student.user_id, "Secret123")

    assert users.get_by_id(student.user_id) is None
    assert subjects.count_all() == 0
    assert lectures.count_all() == 0
