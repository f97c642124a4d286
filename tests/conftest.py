from __future__ import annotations

import dataclasses
from datetime import date, datetime
from typing import Optional

import pytest
from werkzeug.security import generate_password_hash

from src.markit.markit.container import assemble
from src.markit.markit.core.enums import LectureStatus, Role
from src.markit.markit.lectures.model import Lecture
from src.markit.markit.lectures.service import LectureService
from src.markit.markit.main import create_app
from src.markit.markit.stats.service import StatisticsService
from src.markit.markit.subjects.model import Subject
from src.markit.markit.subjects.service import SubjectService
from src.markit.markit.users.model import User

FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0)


def _attrs(cls, fields: dict) -> dict:
    names = {f.name for f in dataclasses.fields(cls)}
    return {k: v for k, v in fields.items() if k in names}


class InMemoryUsers:
    def __init__(self):
        self._next_id = 1
        self.rows: dict[int, User] = {}

    def get_by_id(self, user_id):
        return self.rows.get(user_id)

    def get_by_email(self, email):
        for u in self.rows.values():
            if u.email == (email or "").lower():
                return u
        return None

    def create_user(self, *, name, email, password_hash, role, profile, preferences, attendance_goal):
        uid = self._next_id
        self._next_id += 1
        self.rows[uid] = User(
            user_id=uid,
            name=name,
            email=email.lower(),
            password_hash=password_hash,
            role=role,
            profile=profile,
            preferences=preferences,
            attendance_goal=attendance_goal,
            created_at=FIXED_NOW,
        )
        return self.rows[uid]

    def update_fields(self, user_id, fields):
        user = self.rows.get(user_id)
        if user is None:
            return None
        self.rows[user_id] = dataclasses.replace(user, **_attrs(User, fields))
        return self.rows[user_id]

    def record_login(self, user_id, *, at):
        user = self.rows[user_id]
        self.rows[user_id] = dataclasses.replace(user, last_login=at, login_count=user.login_count + 1)

    def delete_by_id(self, user_id):
        return self.rows.pop(user_id, None) is not None

    def list_users(self, *, search, offset, limit):
        users = [u for u in self.rows.values() if not search or search in u.name or search in u.email]
        return users[offset : offset + limit], len(users)

    def count_users(self):
        return {"totalUsers": len(self.rows), "activeUsers": sum(1 for u in self.rows.values() if u.is_active)}

    def recent_users(self, limit):
        return list(reversed(list(self.rows.values())))[:limit]

    def add(self, *, name="Student", email="student@example.com", password="Secret123", role=Role.STUDENT, **extra):
        user = self.create_user(
            name=name,
            email=email,
            password_hash=generate_password_hash(password),
            role=role,
            profile={},
            preferences={},
            attendance_goal=extra.pop("attendance_goal", 75),
        )
        if extra:
            user = self.update_fields(user.user_id, extra)
        return user


class InMemorySubjects:
    def __init__(self):
        self._next_id = 1
        self.rows: dict[int, Subject] = {}
        self.fail_stats_for: set[int] = set()

    def get_by_id(self, subject_id):
        return self.rows.get(subject_id)

    def get_for_user(self, user_id, subject_id):
        subject = self.rows.get(subject_id)
        return subject if subject is not None and subject.user_id == user_id else None

    def find_active_by_name(self, user_id, name, *, exclude_id=None):
        for s in self.rows.values():
            if s.user_id == user_id and s.is_active and s.name == name and s.subject_id != exclude_id:
                return s
        return None

    def create(self, *, user_id, fields):
        sid = self._next_id
        self._next_id += 1
        attrs = _attrs(Subject, fields)
        if not attrs.get("color"):
            attrs.pop("color", None)
        self.rows[sid] = Subject(subject_id=sid, user_id=user_id, created_at=FIXED_NOW, **attrs)
        return self.rows[sid]

    def update_fields(self, subject_id, fields):
        subject = self.rows.get(subject_id)
        if subject is None:
            return None
        self.rows[subject_id] = dataclasses.replace(subject, **_attrs(Subject, fields))
        return self.rows[subject_id]

    def update_stats(self, subject_id, *, total, attended, percentage):
        if subject_id in self.fail_stats_for:
            raise RuntimeError("store unavailable")
        subject = self.rows.get(subject_id)
        if subject is None:
            return False
        self.rows[subject_id] = dataclasses.replace(
            subject, total_lectures=total, attended_lectures=attended, attendance_percentage=percentage
        )
        return True

    def delete(self, subject_id):
        return self.rows.pop(subject_id, None) is not None

    def search(self, user_id, query, *, offset, limit):
        items = [
            s
            for s in self.rows.values()
            if s.user_id == user_id and (not query.search or query.search.lower() in s.name.lower())
        ]
        items.sort(key=lambda s: (getattr(s, query.sort_key) or 0, s.subject_id), reverse=query.descending)
        return items[offset : offset + limit], len(items)

    def list_for_user(self, user_id, *, active_only=False):
        return [s for s in self.rows.values() if s.user_id == user_id and (s.is_active or not active_only)]

    def delete_for_user(self, user_id):
        ids = [sid for sid, s in self.rows.items() if s.user_id == user_id]
        for sid in ids:
            del self.rows[sid]
        return len(ids)

    def count_all(self):
        return len(self.rows)


class InMemoryLectures:
    def __init__(self):
        self._next_id = 1
        self.rows: dict[int, Lecture] = {}

    def get_by_id(self, lecture_id):
        return self.rows.get(lecture_id)

    def get_for_user(self, user_id, lecture_id):
        lecture = self.rows.get(lecture_id)
        return lecture if lecture is not None and lecture.user_id == user_id else None

    def find_slot(self, *, subject_id, lecture_date, start_time):
        for lec in self.rows.values():
            if lec.subject_id == subject_id and lec.date == lecture_date and lec.start_time == start_time:
                return lec
        return None

    def find_for_subject_on_date(self, *, user_id, subject_id, lecture_date):
        matches = [
            lec
            for lec in self.rows.values()
            if lec.user_id == user_id and lec.subject_id == subject_id and lec.date == lecture_date
        ]
        return min(matches, key=lambda lec: lec.start_time) if matches else None

    def create(self, *, user_id, subject_id, fields):
        lid = self._next_id
        self._next_id += 1
        self.rows[lid] = Lecture(
            lecture_id=lid, user_id=user_id, subject_id=subject_id, created_at=FIXED_NOW, **_attrs(Lecture, fields)
        )
        return self.rows[lid]

    def update_fields(self, lecture_id, fields):
        lecture = self.rows.get(lecture_id)
        if lecture is None:
            return None
        self.rows[lecture_id] = dataclasses.replace(lecture, **_attrs(Lecture, fields))
        return self.rows[lecture_id]

    def delete(self, lecture_id):
        return self.rows.pop(lecture_id, None) is not None

    def list_for_subject(self, subject_id, *, limit=None):
        items = sorted(
            (lec for lec in self.rows.values() if lec.subject_id == subject_id),
            key=lambda lec: (lec.date, lec.start_time),
            reverse=True,
        )
        return items[:limit] if limit is not None else items

    def list_for_user(self, user_id, *, start=None, end=None, subject_id=None, statuses=None):
        allowed = set(statuses) if statuses is not None else None
        items = [
            lec
            for lec in self.rows.values()
            if lec.user_id == user_id
            and (start is None or lec.date >= start)
            and (end is None or lec.date <= end)
            and (subject_id is None or lec.subject_id == subject_id)
            and (allowed is None or lec.status in allowed)
        ]
        return sorted(items, key=lambda lec: (lec.date, lec.start_time))

    def search(self, user_id, query, *, offset, limit):
        items = [
            lec
            for lec in self.list_for_user(user_id, start=query.start, end=query.end, subject_id=query.subject_id)
            if (query.status is None or lec.status == query.status)
            and (not query.search or query.search.lower() in lec.title.lower())
        ]
        items.sort(key=lambda lec: (getattr(lec, query.sort_key), lec.lecture_id), reverse=query.descending)
        return items[offset : offset + limit], len(items)

    def count_for_subject(self, subject_id):
        return sum(1 for lec in self.rows.values() if lec.subject_id == subject_id)

    def delete_for_user(self, user_id):
        ids = [lid for lid, lec in self.rows.items() if lec.user_id == user_id]
        for lid in ids:
            del self.rows[lid]
        return len(ids)

    def count_all(self):
        return len(self.rows)

    def add(self, user_id, subject_id, day: date, status=LectureStatus.PRESENT, start_time="09:00", **extra):
        fields = {
            "title": extra.pop("title", f"Lecture {day.isoformat()} {start_time}"),
            "topic": "Topic",
            "date": day,
            "start_time": start_time,
            "end_time": extra.pop("end_time", "10:00"),
            "duration": 60,
            "status": status,
            **extra,
        }
        return self.create(user_id=user_id, subject_id=subject_id, fields=fields)


class RecordingNotifier:
    def __init__(self):
        self.notifications: list[tuple[int, str, str, Optional[dict]]] = []
        self.events: list[tuple[int, str, dict]] = []

    def notify(self, user_id, type_, message, data=None):
        self.notifications.append((user_id, type_.value, message, data))
        return 1

    def emit_to_user(self, user_id, event, payload):
        self.events.append((user_id, event, payload))
        return 1

    def types(self) -> list[str]:
        return [n[1] for n in self.notifications]


class RecordingEmitter:
    def __init__(self, failing: Optional[set[str]] = None):
        self.sent: list[tuple[str, str, dict]] = []
        self.failing = failing or set()

    def emit(self, event, payload, *, to):
        if to in self.failing:
            raise ConnectionError(f"socket {to} is gone")
        self.sent.append((to, event, payload))

    def to(self, sid: str) -> list[tuple[str, dict]]:
        return [(event, payload) for target, event, payload in self.sent if target == sid]


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def users() -> InMemoryUsers:
    return InMemoryUsers()


@pytest.fixture
def subjects() -> InMemorySubjects:
    return InMemorySubjects()


@pytest.fixture
def lectures() -> InMemoryLectures:
    return InMemoryLectures()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def stats(subjects, lectures) -> StatisticsService:
    return StatisticsService(subjects, lectures)


@pytest.fixture
def lecture_service(lectures, subjects, stats, notifier) -> LectureService:
    return LectureService(lectures, subjects, stats, notifier)


@pytest.fixture
def subject_service(subjects, lectures, users, stats, notifier) -> SubjectService:
    return SubjectService(subjects, lectures, users, stats, notifier)


@pytest.fixture
def student(users) -> User:
    return users.add()


@pytest.fixture
def math(subjects, student) -> Subject:
    return subjects.create(user_id=student.user_id, fields={"name": "Math", "code": "MATH101"})


@pytest.fixture
def app(users, subjects, lectures):
    def container_factory(emitter):
        return assemble(
            users_repo=users,
            subjects_repo=subjects,
            lectures_repo=lectures,
            emitter=emitter,
            jwt_secret="test-jwt-secret",
        )

    return create_app(settings_module="config.testing", container_factory=container_factory)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def token(app, student) -> str:
    return app.extensions["markit.container"].auth_service.issue_token(student.user_id)


@pytest.fixture
def auth_headers(token) -> dict:
    return {"Authorization": f"Bearer {token}"}
