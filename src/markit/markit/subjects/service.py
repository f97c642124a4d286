from __future__ import annotations

from typing import Any, Sequence

from ..app_logger import get_logger
from ..common.validators import PayloadValidator, parse_id, plain
from ..core.constants import SUBJECT_DETAIL_LECTURES_LIMIT, SUBJECT_STATS_RECENT_LIMIT
from ..core.enums import NotificationType, Weekday
from ..core.exceptions import ConflictError, FieldError, NotFoundError, ValidationError
from ..lectures.model import Lecture
from ..lectures.repository import LectureRepository
from ..realtime.channel import Notifier
from ..stats.service import StatisticsService, round_half_up
from ..users.repository import UserRepository
from .model import Subject, SubjectQuery
from .repository import SubjectRepository

logger = get_logger(__name__)


def _check_instructor(v: PayloadValidator) -> None:
    v.string("name", max_len=100, allow_blank=True).email("email", allow_blank=True)


def _check_slot(v: PayloadValidator) -> None:
    (
        v.enum("day", Weekday, required=True)
        .time("startTime", required=True)
        .time("endTime", required=True)
        .string("room", allow_blank=True)
    )


def _validate_subject(payload: Any, *, creating: bool) -> dict:
    v = PayloadValidator(payload)
    (
        v.string("name", required=creating, min_len=2, max_len=100)
        .string("code", min_len=2, max_len=20, allow_blank=creating, upper=True)
        .string("description", max_len=500, allow_blank=True)
        .nested("instructor", _check_instructor)
        .items("schedule", _check_slot)
        .string("semester", allow_blank=True)
        .number("year", minimum=2020, maximum=2030, integer=True)
        .hex_color("color")
    )
    if not creating:
        v.boolean("isActive", target="is_active")
    fields = v.validate()
    if "schedule" in fields:
        fields["schedule"] = plain(fields["schedule"])
    if fields.get("code") == "":
        fields["code"] = None
    return fields


class SubjectService:
    """Use case: manage a user's subjects.

    Deleting a subject that still has lectures archives it (``is_active=False``)
    so its history stays queryable; an empty subject is removed outright.
    """

    def __init__(
        self,
        subjects: SubjectRepository,
        lectures: LectureRepository,
        users: UserRepository,
        stats: StatisticsService,
        notifier: Notifier,
    ):
        self._subjects = subjects
        self._lectures = lectures
        self._users = users
        self._stats = stats
        self._notifier = notifier

    def _owned(self, user_id: int, subject_id: int) -> Subject:
        subject = self._subjects.get_for_user(user_id, subject_id)
        if subject is None:
            raise NotFoundError("Subject not found")
        return subject

    def _ensure_unique_name(self, user_id: int, name: str, *, exclude_id: int | None = None) -> None:
        if self._subjects.find_active_by_name(user_id, name, exclude_id=exclude_id):
            raise ConflictError("Subject with this name already exists")

    def create(self, user_id: int, payload: Any) -> Subject:
        fields = _validate_subject(payload, creating=True)
        self._ensure_unique_name(user_id, fields["name"])

        subject = self._subjects.create(user_id=user_id, fields=fields)
        logger.info("Subject %s created by user %s", subject.subject_id, user_id)
        self._notifier.notify(
            user_id,
            NotificationType.SUBJECT_CREATED,
            f'Subject "{subject.name}" created successfully',
            {"subjectId": subject.subject_id, "subjectName": subject.name},
        )
        return subject

    def list(self, user_id: int, query: SubjectQuery, *, page: int, limit: int) -> tuple[Sequence[Subject], int]:
        return self._subjects.search(user_id, query, offset=(page - 1) * limit, limit=limit)

    def get(self, user_id: int, subject_id: int) -> tuple[Subject, Sequence[Lecture]]:
        subject = self._owned(user_id, subject_id)
        lectures = self._lectures.list_for_subject(subject_id, limit=SUBJECT_DETAIL_LECTURES_LIMIT)
        return subject, lectures

    def update(self, user_id: int, subject_id: int, payload: Any) -> Subject:
        subject = self._owned(user_id, subject_id)
        fields = _validate_subject(payload, creating=False)
        if "name" in fields and fields["name"] != subject.name:
            self._ensure_unique_name(user_id, fields["name"], exclude_id=subject_id)

        updated = self._subjects.update_fields(subject_id, fields) or subject
        self._notifier.notify(
            user_id,
            NotificationType.SUBJECT_UPDATED,
            f'Subject "{updated.name}" updated successfully',
            {"subjectId": subject_id, "subjectName": updated.name},
        )
        return updated

    def delete(self, user_id: int, subject_id: int) -> bool:
        """Return True when the subject was archived rather than removed."""
        subject = self._owned(user_id, subject_id)

        if self._lectures.count_for_subject(subject_id) > 0:
            self._subjects.update_fields(subject_id, {"is_active": False})
            logger.info("Subject %s archived (has lectures)", subject_id)
            return True

        self._subjects.delete(subject_id)
        logger.info("Subject %s deleted", subject_id)
        self._notifier.notify(
            user_id,
            NotificationType.SUBJECT_DELETED,
            f'Subject "{subject.name}" deleted successfully',
        )
        return False

    def stats(self, user_id: int, subject_id: int, *, attendance_goal: int) -> dict:
        subject = self._owned(user_id, subject_id)
        counts = self._stats.subject_status_counts(subject_id)
        recent = self._lectures.list_for_subject(subject_id, limit=SUBJECT_STATS_RECENT_LIMIT)
        monthly = []
        for bucket in self._stats.monthly_trend(subject_id):
            monthly.append(
                {
                    "year": bucket.year,
                    "month": bucket.month,
                    "total": bucket.total,
                    "present": bucket.attended,
                    "percentage": bucket.attended / bucket.total * 100 if bucket.total else 0,
                }
            )
        return {
            "subject": subject.brief(),
            "stats": {
                **{status.value: count for status, count in counts.items()},
                "total": subject.total_lectures,
                "percentage": subject.attendance_percentage,
            },
            "monthlyTrend": monthly,
            "recentLectures": [
                {
                    "id": lec.lecture_id,
                    "title": lec.title,
                    "date": lec.date.isoformat(),
                    "status": lec.status.value,
                    "topic": lec.topic,
                }
                for lec in recent
            ],
            "meetsGoal": subject.meets_attendance_goal(attendance_goal),
        }

    def set_goal(self, user_id: int, subject_id: int, goal: Any) -> dict:
        """Goals are per user; the subject only answers whether it meets the new goal."""
        if isinstance(goal, bool) or not isinstance(goal, (int, float)) or goal < 0 or goal > 100:
            raise ValidationError("Attendance goal must be a number between 0 and 100")
        subject = self._owned(user_id, subject_id)
        self._users.update_fields(user_id, {"attendance_goal": round_half_up(goal)})
        return {"attendanceGoal": goal, "meetsGoal": subject.meets_attendance_goal(goal)}

    def bulk_update(self, user_id: int, items: Any) -> list[Subject]:
        if not isinstance(items, list) or not items:
            raise ValidationError("Subjects array is required")

        # Validate the whole batch before writing so a bad item leaves nothing half-applied.
        pending: list[tuple[int, dict]] = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                continue
            subject_id = parse_id(item.get("id", item.get("_id")))
            if subject_id is None:
                continue
            subject = self._subjects.get_for_user(user_id, subject_id)
            if subject is None:
                continue
            body = {k: v for k, v in item.items() if k not in ("id", "_id")}
            try:
                fields = _validate_subject(body, creating=False)
            except ValidationError as e:
                errors = [FieldError(f"subjects.{index}.{err.field}", err.message) for err in e.errors]
                raise ValidationError(str(e), errors) from e
            if "name" in fields and fields["name"] != subject.name:
                self._ensure_unique_name(user_id, fields["name"], exclude_id=subject_id)
            pending.append((subject_id, fields))

        updated: list[Subject] = []
        for subject_id, fields in pending:
            result = self._subjects.update_fields(subject_id, fields)
            if result is not None:
                updated.append(result)
        return updated
