from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from ..app_logger import get_logger
from ..common.datetime_utils import now_local
from ..common.validators import PayloadValidator, parse_id
from ..core.constants import DEFAULT_ATTENDANCE_GOAL
from ..core.enums import ATTENDED_STATUSES, Role, Theme
from ..core.exceptions import AuthenticationError, FieldError, NotFoundError, ValidationError
from ..lectures.repository import LectureRepository
from ..stats.service import StatisticsService, round_half_up
from ..subjects.repository import SubjectRepository
from .model import User, default_preferences, default_profile
from .repository import UserRepository

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
PHONE_PATTERN = re.compile(r"^[\+]?[0-9\s\-\(\)]{10,20}$")
MONTHLY_ACTIVITY_LIMIT = 12
RECENT_USERS_LIMIT = 5
LIFETIME_START = date(2020, 1, 1)


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: str

    def to_dict(self) -> dict:
        return {"user": self.user.to_dict(), "token": self.token}


def _check_notifications(v: PayloadValidator) -> None:
    v.boolean("email").boolean("push").boolean("reminders")


def _check_preferences(v: PayloadValidator) -> None:
    v.enum("theme", Theme).string("language", min_len=2, max_len=5).nested("notifications", _check_notifications)


def _check_profile(v: PayloadValidator) -> None:
    (
        v.string("bio", max_len=500, allow_blank=True)
        .string("phone", allow_blank=True)
        .string("university", max_len=100, allow_blank=True)
        .string("department", max_len=100, allow_blank=True)
        .number("year", minimum=1, maximum=6, integer=True)
    )
    phone = v.cleaned.get("phone")
    if phone and not PHONE_PATTERN.match(phone):
        v.errors.append(FieldError("phone", "Please provide a valid phone number"))


def _merge_preferences(current: dict, update: dict) -> dict:
    merged = {**default_preferences(), **current}
    for key, value in update.items():
        if key == "theme":
            value = value.value
        if key == "notifications":
            value = {**merged.get("notifications", {}), **value}
        merged[key] = value
    return merged


def _validate_goal(goal: Any) -> int:
    if isinstance(goal, bool) or not isinstance(goal, (int, float)) or goal < 0 or goal > 100:
        raise ValidationError("Attendance goal must be a number between 0 and 100")
    return round_half_up(goal)


class AuthService:
    """Use case: registration, login and bearer-token resolution."""

    def __init__(self, users: UserRepository, *, secret: str, expires_days: int = 7):
        self._users = users
        self._secret = secret
        self._expires = timedelta(days=int(expires_days))

    def register(self, payload: Any) -> LoginResult:
        v = PayloadValidator(payload)
        (
            v.string("name", required=True, min_len=2, max_len=50)
            .email("email", required=True)
            .string("password", required=True, min_len=6, max_len=128)
        )
        password = v.cleaned.get("password")
        if password and not PASSWORD_PATTERN.match(password):
            v.errors.append(
                FieldError(
                    "password",
                    "Password must contain at least one uppercase letter, one lowercase letter, and one number",
                )
            )
        fields = v.validate()

        if self._users.get_by_email(fields["email"]):
            raise ValidationError("User already exists with this email")

        user = self._users.create_user(
            name=fields["name"],
            email=fields["email"],
            password_hash=generate_password_hash(password),
            role=Role.STUDENT,
            profile=default_profile(),
            preferences=default_preferences(),
            attendance_goal=DEFAULT_ATTENDANCE_GOAL,
        )
        logger.info("User %s registered", user.user_id)
        return LoginResult(user, self.issue_token(user.user_id))

    def authenticate(self, email: Any, password: Any, *, now: Optional[datetime] = None) -> LoginResult:
        fields = PayloadValidator({"email": email, "password": password}).email("email", required=True).string(
            "password", required=True
        ).validate()

        user = self._users.get_by_email(fields["email"])
        if not user or not user.is_active:
            raise AuthenticationError("Invalid email or password")

        if not self.verify_password(user, password):
            raise AuthenticationError("Invalid email or password")

        self._users.record_login(user.user_id, at=now or now_local())
        logger.info("User %s logged in", user.user_id)
        return LoginResult(self._users.get_by_id(user.user_id) or user, self.issue_token(user.user_id))

    def issue_token(self, user_id: int, *, now: Optional[datetime] = None) -> str:
        issued = now or datetime.now(timezone.utc)
        claims = {"sub": str(user_id), "iat": issued, "exp": issued + self._expires}
        return jwt.encode(claims, self._secret, algorithm=JWT_ALGORITHM)

    def decode_token(self, token: str) -> int:
        """Verify signature and expiry; return the user id carried in ``sub``."""
        try:
            claims = jwt.decode(token, self._secret, algorithms=[JWT_ALGORITHM])
        except JWTError as e:
            raise AuthenticationError("Not authorized, token failed") from e
        user_id = parse_id(claims.get("sub"))
        if user_id is None:
            raise AuthenticationError("Not authorized, token failed")
        return user_id

    def active_user(self, user_id: int) -> Optional[User]:
        user = self._users.get_by_id(user_id)
        return user if user is not None and user.is_active else None

    def resolve_token(self, token: str) -> User:
        user = self.active_user(self.decode_token(token))
        if user is None:
            raise AuthenticationError("Not authorized, user not found or inactive")
        return user

    def verify_password(self, user: User, password: Any) -> bool:
        if not isinstance(password, str) or not password:
            return False
        try:
            return check_password_hash(user.password_hash, password)
        except (TypeError, ValueError):
            # placeholder or corrupted hashes
            return False


class UserService:
    """Use case: the caller's own account, plus admin-only cross-tenant views."""

    def __init__(
        self,
        users: UserRepository,
        subjects: SubjectRepository,
        lectures: LectureRepository,
        stats: StatisticsService,
        auth: AuthService,
    ):
        self._users = users
        self._subjects = subjects
        self._lectures = lectures
        self._stats = stats
        self._auth = auth

    def get(self, user_id: int) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update_profile(self, user_id: int, payload: Any) -> User:
        current = self.get(user_id)
        v = PayloadValidator(payload)
        (
            v.string("name", min_len=2, max_len=50)
            .nested("profile", _check_profile)
            .nested("preferences", _check_preferences)
            .number("attendanceGoal", target="attendance_goal", minimum=0, maximum=100)
        )
        fields = v.validate()
        if "profile" in fields:
            fields["profile"] = {**default_profile(), **current.profile, **fields["profile"]}
        if "preferences" in fields:
            fields["preferences"] = _merge_preferences(current.preferences, fields["preferences"])
        if "attendance_goal" in fields:
            fields["attendance_goal"] = round_half_up(fields["attendance_goal"])
        return self._users.update_fields(user_id, fields) or current

    def update_preferences(self, user_id: int, preferences: Any) -> dict:
        if not preferences:
            raise ValidationError("Preferences are required")
        current = self.get(user_id)
        cleaned = PayloadValidator({"preferences": preferences}).nested("preferences", _check_preferences).validate()
        merged = _merge_preferences(current.preferences, cleaned["preferences"])
        user = self._users.update_fields(user_id, {"preferences": merged}) or current
        return user.preferences

    def update_attendance_goal(self, user_id: int, goal: Any) -> User:
        value = _validate_goal(goal)
        self.get(user_id)
        return self._users.update_fields(user_id, {"attendance_goal": value})

    def stats(self, user_id: int, *, today=None) -> dict:
        today = today or now_local().date()
        summary = self._stats.user_subject_summary(user_id)
        lifetime = self._stats.attendance_stats(user_id, LIFETIME_START, today)

        months: dict[tuple[int, int], list] = {}
        for lec in self._lectures.list_for_user(user_id):
            months.setdefault((lec.date.year, lec.date.month), []).append(lec)
        recent_months = sorted(months.items())[-MONTHLY_ACTIVITY_LIMIT:]
        monthly_activity = [
            {
                "year": year,
                "month": month,
                "total": len(items),
                "present": sum(1 for lec in items if lec.status in ATTENDED_STATUSES),
            }
            for (year, month), items in recent_months
        ]
        return {"overview": {**summary.to_dict(), **lifetime.to_dict()}, "monthlyActivity": monthly_activity}

    def delete_account(self, user_id: int, password: Any) -> None:
        if not password:
            raise ValidationError("Password is required to delete account")
        user = self.get(user_id)
        if not self._auth.verify_password(user, password):
            raise AuthenticationError("Incorrect password")
        self._purge(user_id)

    def _purge(self, user_id: int) -> None:
        lectures = self._lectures.delete_for_user(user_id)
        subjects = self._subjects.delete_for_user(user_id)
        self._users.delete_by_id(user_id)
        logger.info("User %s deleted with %s subjects and %s lectures", user_id, subjects, lectures)

    # ---- admin --------------------------------------------------------

    def list_users(self, *, search: Optional[str], page: int, limit: int) -> tuple[Sequence[User], int]:
        return self._users.list_users(search=search or None, offset=(page - 1) * limit, limit=limit)

    def admin_update(self, user_id: int, payload: Any) -> User:
        current = self.get(user_id)
        v = PayloadValidator(payload)
        (
            v.string("name", min_len=2, max_len=50)
            .email("email")
            .enum("role", Role)
            .boolean("isActive", target="is_active")
            .number("attendanceGoal", target="attendance_goal", minimum=0, maximum=100)
            .nested("profile", _check_profile)
            .nested("preferences", _check_preferences)
        )
        fields = v.validate()
        if "email" in fields and fields["email"] != current.email:
            other = self._users.get_by_email(fields["email"])
            if other is not None and other.user_id != user_id:
                raise ValidationError("User already exists with this email")
        if "profile" in fields:
            fields["profile"] = {**default_profile(), **current.profile, **fields["profile"]}
        if "preferences" in fields:
            fields["preferences"] = _merge_preferences(current.preferences, fields["preferences"])
        if "attendance_goal" in fields:
            fields["attendance_goal"] = round_half_up(fields["attendance_goal"])
        return self._users.update_fields(user_id, fields) or current

    def admin_delete(self, user_id: int) -> None:
        self.get(user_id)
        self._purge(user_id)

    def admin_stats(self) -> dict:
        return {
            "users": self._users.count_users(),
            "subjects": self._subjects.count_all(),
            "lectures": self._lectures.count_all(),
            "recentUsers": [
                {"id": u.user_id, "name": u.name, "email": u.email, "createdAt": u.to_dict()["createdAt"]}
                for u in self._users.recent_users(RECENT_USERS_LIMIT)
            ],
        }
