from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional, Sequence

from ..app_logger import get_logger
from ..common.datetime_utils import duration_minutes, now_local
from ..common.validators import PayloadValidator, parse_id, plain
from ..core.constants import (
    OVERVIEW_DEFAULT_DAYS,
    OVERVIEW_TREND_WEEKS,
    PLACEHOLDER_END_TIME,
    PLACEHOLDER_START_TIME,
    PLACEHOLDER_TOPIC,
    UPCOMING_DAYS,
    UPCOMING_LIMIT,
)
from ..core.enums import AssignmentStatus, ExamType, LectureStatus, MaterialType, NotificationType
from ..core.exceptions import ConflictError, FieldError, NotFoundError, ValidationError
from ..realtime import events
from ..realtime.channel import Notifier
from ..stats.service import StatisticsService
from ..subjects.repository import SubjectRepository
from .model import Lecture, LectureQuery
from .repository import LectureRepository

logger = get_logger(__name__)

_STATUS_MESSAGES = {
    LectureStatus.PRESENT: "marked as Present",
    LectureStatus.ABSENT: "marked as Absent",
    LectureStatus.LATE: "marked as Late",
    LectureStatus.EXCUSED: "marked as Excused",
}


def _check_material(v: PayloadValidator) -> None:
    v.string("name", required=True).string("url", allow_blank=True).enum("type", MaterialType)


def _check_marks(v: PayloadValidator) -> None:
    v.number("obtained", minimum=0).number("total", minimum=0)


def _check_assignment(v: PayloadValidator) -> None:
    (
        v.string("title", required=True)
        .string("description", allow_blank=True)
        .date("dueDate")
        .enum("status", AssignmentStatus)
        .nested("marks", _check_marks)
    )


def _validate_common(v: PayloadValidator) -> PayloadValidator:
    return (
        v.string("description", max_len=1000, allow_blank=True)
        .string("room", max_len=50, allow_blank=True)
        .string("notes", max_len=1000, allow_blank=True)
        .items("materials", _check_material)
        .items("assignments", _check_assignment)
        .boolean("isImportant", target="is_important")
        .boolean("isExam", target="is_exam")
        .enum("examType", ExamType, target="exam_type")
    )


def _finish_fields(fields: dict) -> dict:
    for key in ("materials", "assignments"):
        if key in fields:
            fields[key] = plain(fields[key])
    return fields


class LectureService:
    """Lecture lifecycle: create, update, delete, bulk status and mark-attendance.

    Every mutation commits the lecture first, then recomputes the owning
    subject's cached stats, then notifies the owner. Recompute is a separate
    follow-up step: a failure there is logged and the write still succeeds.
    """

    def __init__(
        self,
        lectures: LectureRepository,
        subjects: SubjectRepository,
        stats: StatisticsService,
        notifier: Notifier,
    ):
        self._lectures = lectures
        self._subjects = subjects
        self._stats = stats
        self._notifier = notifier

    # ---- writes -------------------------------------------------------

    def create(self, user_id: int, payload: dict, *, now: Optional[datetime] = None) -> Lecture:
        now = now or now_local()
        v = PayloadValidator(payload)
        (
            v.string("title", required=True, min_len=2, max_len=200)
            .string("topic", required=True, min_len=2, max_len=300)
            .date("date", required=True, not_after=now.date())
            .time("startTime", target="start_time", required=True)
            .time("endTime", target="end_time", required=True)
            .enum("status", LectureStatus, blank_as=LectureStatus.ABSENT)
        )
        _validate_common(v)
        subject_id = parse_id((payload or {}).get("subjectId"))
        if subject_id is None:
            v.errors.append(FieldError("subjectId", "subjectId must be a valid id"))
        fields = _finish_fields(v.validate())

        subject = self._subjects.get_for_user(user_id, subject_id)
        if subject is None or not subject.is_active:
            raise NotFoundError("Subject not found or not accessible")

        if self._lectures.find_slot(
            subject_id=subject_id, lecture_date=fields["date"], start_time=fields["start_time"]
        ):
            raise ConflictError("A lecture already exists for this subject at the same date and time")

        fields.setdefault("status", LectureStatus.ABSENT)
        fields["duration"] = duration_minutes(fields["start_time"], fields["end_time"])
        lecture = self._lectures.create(user_id=user_id, subject_id=subject_id, fields=fields)
        logger.info("Lecture %s created for subject %s by user %s", lecture.lecture_id, subject_id, user_id)

        stats = self._stats.recompute_quietly(subject_id)

        self._notifier.notify(
            user_id,
            NotificationType.LECTURE_CREATED,
            f'New lecture "{lecture.title}" added to {subject.name}',
            {
                "lectureId": lecture.lecture_id,
                "lectureTitle": lecture.title,
                "subjectName": subject.name,
                "status": lecture.status.value,
            },
        )
        if stats is not None:
            self._notifier.emit_to_user(
                user_id,
                events.ATTENDANCE_UPDATED,
                {"subjectId": subject_id, "attendancePercentage": stats.attendance_percentage},
            )
        return lecture

    def update(self, user_id: int, lecture_id: int, payload: dict) -> Lecture:
        current = self._lectures.get_for_user(user_id, lecture_id)
        if current is None:
            raise NotFoundError("Lecture not found")

        v = PayloadValidator(payload)
        (
            v.string("title", min_len=2, max_len=200)
            .string("topic", min_len=2, max_len=300)
            .date("date")
            .time("startTime", target="start_time")
            .time("endTime", target="end_time")
            .enum("status", LectureStatus)
        )
        _validate_common(v)
        fields = _finish_fields(v.validate())

        if "start_time" in fields or "end_time" in fields:
            fields["duration"] = duration_minutes(
                fields.get("start_time", current.start_time),
                fields.get("end_time", current.end_time),
            )

        updated = self._lectures.update_fields(lecture_id, fields) or current

        new_status = fields.get("status")
        if new_status is not None and new_status != current.status:
            stats = self._stats.recompute_quietly(current.subject_id)
            if stats is not None:
                subject = self._subjects.get_by_id(current.subject_id)
                self._notifier.notify(
                    user_id,
                    NotificationType.LECTURE_UPDATED,
                    f"Attendance {_STATUS_MESSAGES[new_status]}",
                    {
                        "lectureId": lecture_id,
                        "subjectName": subject.name if subject else "Subject",
                        "status": new_status.value,
                    },
                )
                self._notifier.emit_to_user(
                    user_id,
                    events.ATTENDANCE_UPDATED,
                    {"subjectId": current.subject_id, "attendancePercentage": stats.attendance_percentage},
                )
        return updated

    def delete(self, user_id: int, lecture_id: int) -> None:
        lecture = self._lectures.get_for_user(user_id, lecture_id)
        if lecture is None:
            raise NotFoundError("Lecture not found")
        subject = self._subjects.get_by_id(lecture.subject_id)

        self._lectures.delete(lecture_id)
        logger.info("Lecture %s deleted by user %s", lecture_id, user_id)
        self._stats.recompute_quietly(lecture.subject_id)

        self._notifier.notify(
            user_id,
            NotificationType.LECTURE_DELETED,
            f'Lecture "{lecture.title}" deleted from {subject.name if subject else "subject"}',
            {"lectureId": lecture_id, "subjectId": lecture.subject_id},
        )

    def bulk_update_status(self, user_id: int, items: Any) -> list[Lecture]:
        if not isinstance(items, list) or not items:
            raise ValidationError("Lectures array is required")

        updated: list[Lecture] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            status = LectureStatus.parse(item.get("status"))
            lecture_id = parse_id(item.get("id", item.get("_id")))
            if status is None or lecture_id is None:
                continue
            if self._lectures.get_for_user(user_id, lecture_id) is None:
                continue
            lecture = self._lectures.update_fields(lecture_id, {"status": status})
            if lecture is not None:
                updated.append(lecture)

        self._recompute_quietly({lec.subject_id for lec in updated})

        if updated:
            self._notifier.notify(
                user_id,
                NotificationType.BULK_ATTENDANCE_UPDATED,
                f"Updated attendance for {len(updated)} lectures",
                {"count": len(updated)},
            )
        return updated

    def mark_attendance(self, user_id: int, lecture_date: Any, entries: Any) -> list[Lecture]:
        if not lecture_date or not isinstance(entries, list):
            raise ValidationError("Date and attendance data are required")
        v = PayloadValidator({"date": lecture_date}).date("date", required=True)
        day: date = v.validate()["date"]

        results: list[Lecture] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            status = LectureStatus.parse(entry.get("status"))
            subject_id = parse_id(entry.get("subjectId"))
            if status is None or subject_id is None:
                continue

            existing = self._lectures.find_for_subject_on_date(
                user_id=user_id, subject_id=subject_id, lecture_date=day
            )
            if existing is not None:
                lecture = self._lectures.update_fields(existing.lecture_id, {"status": status})
            else:
                subject = self._subjects.get_for_user(user_id, subject_id)
                if subject is None:
                    continue
                lecture = self._lectures.create(
                    user_id=user_id,
                    subject_id=subject_id,
                    fields={
                        "title": f"{subject.name} - {day.isoformat()}",
                        "topic": PLACEHOLDER_TOPIC,
                        "date": day,
                        "start_time": PLACEHOLDER_START_TIME,
                        "end_time": PLACEHOLDER_END_TIME,
                        "duration": duration_minutes(PLACEHOLDER_START_TIME, PLACEHOLDER_END_TIME),
                        "status": status,
                    },
                )
            if lecture is not None:
                results.append(lecture)

        self._recompute_quietly({lec.subject_id for lec in results})

        if results:
            self._notifier.notify(
                user_id,
                NotificationType.ATTENDANCE_MARKED,
                f"Attendance marked for {len(results)} subjects on {day.isoformat()}",
                {"count": len(results), "date": day.isoformat()},
            )
        return results

    def _recompute_quietly(self, subject_ids: Iterable[int]) -> None:
        for subject_id in sorted(subject_ids):
            self._stats.recompute_quietly(subject_id)

    # ---- reads --------------------------------------------------------

    def list(self, user_id: int, query: LectureQuery, *, page: int, limit: int) -> tuple[Sequence[Lecture], int]:
        return self._lectures.search(user_id, query, offset=(page - 1) * limit, limit=limit)

    def get(self, user_id: int, lecture_id: int) -> Lecture:
        lecture = self._lectures.get_for_user(user_id, lecture_id)
        if lecture is None:
            raise NotFoundError("Lecture not found")
        return lecture

    def by_range(self, user_id: int, start: date, end: date) -> dict[str, list[Lecture]]:
        if start > end:
            raise ValidationError("Start date must be before end date")
        grouped: dict[str, list[Lecture]] = {}
        for lec in self._lectures.list_for_user(user_id, start=start, end=end):
            grouped.setdefault(lec.date.isoformat(), []).append(lec)
        return grouped

    def today(self, user_id: int, *, today: Optional[date] = None) -> Sequence[Lecture]:
        today = today or now_local().date()
        return self._lectures.list_for_user(user_id, start=today, end=today)

    def upcoming(self, user_id: int, *, today: Optional[date] = None) -> Sequence[Lecture]:
        today = today or now_local().date()
        lectures = self._lectures.list_for_user(
            user_id, start=today + timedelta(days=1), end=today + timedelta(days=UPCOMING_DAYS)
        )
        return list(lectures)[:UPCOMING_LIMIT]

    def stats_overview(
        self,
        user_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        *,
        today: Optional[date] = None,
    ) -> dict:
        today = today or now_local().date()
        start = start or today - timedelta(days=OVERVIEW_DEFAULT_DAYS)
        end = end or today
        return {
            "overview": self._stats.attendance_stats(user_id, start, end).to_dict(),
            "weeklyTrend": [b.to_dict() for b in self._stats.weekly_trend(user_id, OVERVIEW_TREND_WEEKS, today=today)],
            "subjectWiseAttendance": [r.to_dict() for r in self._stats.subject_wise_attendance(user_id)],
        }

    def present(self, lectures: Iterable[Lecture]) -> list[dict]:
        """Serialize lectures with their subject populated as ``{id, name, code, color}``."""
        briefs: dict[int, Optional[dict]] = {}
        out = []
        for lec in lectures:
            if lec.subject_id not in briefs:
                subject = self._subjects.get_by_id(lec.subject_id)
                briefs[lec.subject_id] = subject.brief() if subject else None
            out.append(lec.to_dict(briefs[lec.subject_id]))
        return out
