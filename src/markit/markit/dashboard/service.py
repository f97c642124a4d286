from __future__ import annotations

import calendar
import random
from datetime import date, timedelta
from typing import Optional

from ..app_logger import get_logger
from ..common.datetime_utils import duration_minutes, now_local
from ..core.constants import (
    DEMO_LECTURES_PER_SUBJECT,
    DEMO_PRESENT_PROBABILITY,
    LOW_ATTENDANCE_LIMIT,
    PLACEHOLDER_END_TIME,
    PLACEHOLDER_START_TIME,
    RECENT_LECTURES_LIMIT,
    UPCOMING_DAYS,
    UPCOMING_LIMIT,
)
from ..core.enums import LectureStatus
from ..core.exceptions import ConflictError
from ..lectures.repository import LectureRepository
from ..lectures.service import LectureService
from ..stats.service import StatisticsService, percentage
from ..subjects.repository import SubjectRepository
from ..users.model import User

logger = get_logger(__name__)

SUMMARY_PERIODS = {"week", "month", "semester"}
MISSED_LECTURES_WARNING = 3

DEMO_SUBJECTS = (
    {"name": "Mathematics", "code": "MATH101", "description": "Advanced Mathematics"},
    {"name": "Computer Science", "code": "CS101", "description": "Introduction to Computer Science"},
)


def months_before(d: date, months: int) -> date:
    """Same day ``months`` calendar months earlier, clamped to the month's last day."""
    total = d.year * 12 + (d.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    return date(year, month, min(d.day, calendar.monthrange(year, month)[1]))


def _insights(overview: dict, goal: int, present_share: float) -> list[dict]:
    insights = []
    rate = overview["averageAttendance"]
    if rate >= goal:
        insights.append(
            {"type": "positive", "message": f"Great job! You're meeting your attendance goal of {goal}%", "icon": "trophy"}
        )
    else:
        insights.append(
            {"type": "warning", "message": f"You need to improve by {goal - rate:.1f}% to meet your goal", "icon": "target"}
        )
    if overview["totalSubjects"] > 0:
        insights.append(
            {
                "type": "info",
                "message": (
                    f"You're tracking {overview['totalSubjects']} subjects "
                    f"with {overview['totalLectures']} total lectures"
                ),
                "icon": "book",
            }
        )
    if overview["totalLectures"] > 0 and present_share > 90:
        insights.append({"type": "positive", "message": "Excellent attendance record! Keep it up!", "icon": "star"})
    return insights


class DashboardService:
    """Read-mostly aggregates for the dashboard screens."""

    def __init__(
        self,
        subjects: SubjectRepository,
        lectures: LectureRepository,
        stats: StatisticsService,
        lecture_service: LectureService,
        *,
        rng: Optional[random.Random] = None,
    ):
        self._subjects = subjects
        self._lectures = lectures
        self._stats = stats
        self._lecture_service = lecture_service
        self._rng = rng or random.Random()

    def overview(self, user: User, *, today: Optional[date] = None) -> dict:
        today = today or now_local().date()
        user_id = user.user_id
        goal = user.attendance_goal

        active = self._subjects.list_for_user(user_id, active_only=True)
        for subject in active:
            self._stats.recompute_quietly(subject.subject_id)
        active = self._subjects.list_for_user(user_id, active_only=True)

        lectures = self._lectures.list_for_user(user_id)
        total = len(lectures)
        # Overall figure counts exact "present" only, like the cached per-subject field.
        attended = sum(1 for lec in lectures if lec.status == LectureStatus.PRESENT)
        average = percentage(attended, total)
        overview = {
            "totalSubjects": len(active),
            "totalLectures": total,
            "totalAttended": attended,
            "averageAttendance": average,
            "attendanceGoal": goal,
            "meetsGoal": average >= goal,
        }
        period = {
            "attendancePercentage": attended / total * 100 if total else 0,
            "totalLectures": total,
            "attendedLectures": attended,
        }

        recent = sorted(lectures, key=lambda lec: (lec.date, lec.start_time), reverse=True)[:RECENT_LECTURES_LIMIT]
        upcoming = self._lectures.list_for_user(
            user_id, start=today + timedelta(days=1), end=today + timedelta(days=UPCOMING_DAYS)
        )
        low = sorted(
            (s for s in active if s.attendance_percentage < goal),
            key=lambda s: s.attendance_percentage,
        )[:LOW_ATTENDANCE_LIMIT]

        present = self._lecture_service.present
        return {
            "user": {
                "name": user.name,
                "attendanceGoal": goal,
                "totalSubjects": len(active),
                "joinDate": user.created_at.isoformat() if user.created_at else None,
            },
            "overview": overview,
            "periods": {"overall": period, "monthly": period, "weekly": period},
            "lectures": {
                "today": present(self._lectures.list_for_user(user_id, start=today, end=today)),
                "upcoming": present(list(upcoming)[:UPCOMING_LIMIT]),
                "recent": present(recent),
            },
            "subjects": {
                "all": [r.to_dict() for r in self._stats.subject_wise_attendance(user_id)],
                "lowAttendance": [s.to_dict() for s in low],
            },
            "trends": {
                "weekly": [b.to_dict() for b in self._stats.weekly_trend(user_id, today=today)],
                "monthly": self._monthly_comparison(user_id, today),
            },
            "streak": self._stats.attendance_streak(user_id).to_dict(),
            "insights": _insights(overview, goal, period["attendancePercentage"]),
        }

    def _monthly_comparison(self, user_id: int, today: date) -> dict:
        month_start = today.replace(day=1)
        previous_end = month_start - timedelta(days=1)
        current = self._stats.attendance_stats(user_id, month_start, today)
        previous = self._stats.attendance_stats(user_id, previous_end.replace(day=1), previous_end)
        delta = current.attendance_rate - previous.attendance_rate
        trend = "up" if delta > 0 else "down" if delta < 0 else "stable"
        return {"current": current.to_dict(), "previous": previous.to_dict(), "improvement": delta, "trend": trend}

    def attendance_summary(
        self,
        user_id: int,
        *,
        period: Optional[str] = None,
        subject_id: Optional[int] = None,
        today: Optional[date] = None,
    ) -> list[dict]:
        today = today or now_local().date()
        period = period if period in SUMMARY_PERIODS else "month"
        if period == "week":
            start = today - timedelta(days=7)
        elif period == "semester":
            start = months_before(today, 6)
        else:
            start = months_before(today, 1)

        by_day: dict[str, dict[str, int]] = {}
        for lec in self._lectures.list_for_user(user_id, start=start, end=today, subject_id=subject_id):
            counts = by_day.setdefault(lec.date.isoformat(), {})
            counts[lec.status.value] = counts.get(lec.status.value, 0) + 1

        return [
            {
                "date": day,
                "statuses": [{"status": s, "count": c} for s, c in sorted(counts.items())],
                "total": sum(counts.values()),
            }
            for day, counts in sorted(by_day.items())
        ]

    def analytics(self, user: User, *, today: Optional[date] = None) -> dict:
        today = today or now_local().date()
        return {
            "dayWisePerformance": [b.to_dict("day") for b in self._stats.day_wise_performance(user.user_id)],
            "timeWisePerformance": [b.to_dict("hour") for b in self._stats.time_wise_performance(user.user_id)],
            "suggestions": self._suggestions(user, today),
        }

    def _suggestions(self, user: User, today: date) -> list[dict]:
        suggestions = []
        low = [
            s
            for s in self._subjects.list_for_user(user.user_id, active_only=True)
            if s.attendance_percentage < user.attendance_goal
        ][:LOW_ATTENDANCE_LIMIT]
        if low:
            suggestions.append(
                {
                    "type": "improvement",
                    "title": "Focus on Low Attendance Subjects",
                    "message": f"Prioritize attending {', '.join(s.name for s in low)}",
                    "action": "view_subjects",
                }
            )
        missed = self._lectures.list_for_user(
            user.user_id, start=today - timedelta(days=7), statuses=[LectureStatus.ABSENT]
        )
        if len(missed) > MISSED_LECTURES_WARNING:
            suggestions.append(
                {
                    "type": "warning",
                    "title": "High Absence Rate",
                    "message": f"You missed {len(missed)} lectures last week. Consider setting reminders",
                    "action": "set_reminders",
                }
            )
        return suggestions

    def init_demo_data(self, user_id: int, *, today: Optional[date] = None) -> dict:
        today = today or now_local().date()
        if self._subjects.list_for_user(user_id):
            raise ConflictError("Demo data already exists. Delete existing subjects first.")

        lecture_count = 0
        subjects = [self._subjects.create(user_id=user_id, fields=dict(demo)) for demo in DEMO_SUBJECTS]
        for subject in subjects:
            for i in range(DEMO_LECTURES_PER_SUBJECT):
                status = LectureStatus.PRESENT if self._rng.random() < DEMO_PRESENT_PROBABILITY else LectureStatus.ABSENT
                self._lectures.create(
                    user_id=user_id,
                    subject_id=subject.subject_id,
                    fields={
                        "title": f"{subject.name} - Lecture {i + 1}",
                        "topic": f"Topic {i + 1}",
                        "date": today - timedelta(days=i),
                        "start_time": PLACEHOLDER_START_TIME,
                        "end_time": PLACEHOLDER_END_TIME,
                        "duration": duration_minutes(PLACEHOLDER_START_TIME, PLACEHOLDER_END_TIME),
                        "status": status,
                    },
                )
                lecture_count += 1
            self._stats.recompute_quietly(subject.subject_id)
        logger.info("Demo data created for user %s", user_id)
        return {"subjects": len(subjects), "lectures": lecture_count}

    def debug(self, user_id: int) -> dict:
        subjects = self._subjects.list_for_user(user_id)
        lectures = self._lectures.list_for_user(user_id)
        return {
            "userId": user_id,
            "subjectsCount": len(subjects),
            "lecturesCount": len(lectures),
            "subjects": [
                {
                    "id": s.subject_id,
                    "name": s.name,
                    "totalLectures": s.total_lectures,
                    "attendedLectures": s.attended_lectures,
                    "attendancePercentage": s.attendance_percentage,
                }
                for s in subjects
            ],
            "lectures": [
                {"id": lec.lecture_id, "subjectId": lec.subject_id, "status": lec.status.value, "date": lec.date.isoformat()}
                for lec in lectures
            ],
        }
