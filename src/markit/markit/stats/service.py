from __future__ import annotations

import math
from collections import Counter
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from ..app_logger import get_logger
from ..common.datetime_utils import day_of_week_sunday_first, iso_year_week, now_local
from ..core.constants import DEFAULT_TREND_WEEKS, STREAK_DATES_LIMIT
from ..core.enums import ATTENDED_STATUSES, LectureStatus
from ..core.exceptions import NotFoundError, StoreError
from ..lectures.model import Lecture
from ..lectures.repository import LectureRepository
from ..subjects.repository import SubjectRepository
from .model import (
    AttendanceStats,
    MonthBucket,
    PerformanceBucket,
    Streak,
    SubjectAttendanceRow,
    SubjectStats,
    SubjectSummary,
    WeekBucket,
)

logger = get_logger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    return round_half_up(part / whole * 100) if whole > 0 else 0


def _ratio(part: int, whole: int) -> float:
    return part / whole * 100 if whole > 0 else 0


def _attended(lectures: Iterable[Lecture]) -> int:
    return sum(1 for lec in lectures if lec.status in ATTENDED_STATUSES)


class StatisticsService:
    """Rollups over lecture records.

    ``recompute_subject_stats`` is the only writer; every other method is a pure query.
    """

    def __init__(self, subjects: SubjectRepository, lectures: LectureRepository):
        self._subjects = subjects
        self._lectures = lectures

    def recompute_subject_stats(self, subject_id: int) -> SubjectStats:
        if self._subjects.get_by_id(subject_id) is None:
            raise NotFoundError("Subject not found")

        lectures = self._lectures.list_for_subject(subject_id)
        total = len(lectures)
        # Only an exact "present" counts toward the cached rollup.
        attended = sum(1 for lec in lectures if lec.status == LectureStatus.PRESENT)
        stats = SubjectStats(total, attended, percentage(attended, total))

        if not self._subjects.update_stats(
            subject_id,
            total=stats.total_lectures,
            attended=stats.attended_lectures,
            percentage=stats.attendance_percentage,
        ):
            raise StoreError("Failed to update subject statistics")
        logger.debug(
            "Recomputed subject %s: %s/%s (%s%%)",
            subject_id,
            stats.attended_lectures,
            stats.total_lectures,
            stats.attendance_percentage,
        )
        return stats

    def recompute_quietly(self, subject_id: int) -> Optional[SubjectStats]:
        """Follow-up recompute after a committed write; failures are logged and yield None."""
        try:
            return self.recompute_subject_stats(subject_id)
        except Exception as e:
            logger.error("Error updating subject stats for %s: %s", subject_id, e)
            return None

    def attendance_stats(self, user_id: int, start: date, end: date) -> AttendanceStats:
        counts = Counter(lec.status for lec in self._lectures.list_for_user(user_id, start=start, end=end))
        total = sum(counts.values())
        attended = sum(counts[s] for s in ATTENDED_STATUSES)
        return AttendanceStats(
            present=counts[LectureStatus.PRESENT],
            absent=counts[LectureStatus.ABSENT],
            late=counts[LectureStatus.LATE],
            excused=counts[LectureStatus.EXCUSED],
            total=total,
            attendance_rate=percentage(attended, total),
        )

    def weekly_trend(
        self, user_id: int, weeks: int = DEFAULT_TREND_WEEKS, *, today: Optional[date] = None
    ) -> list[WeekBucket]:
        today = today or now_local().date()
        start = today - timedelta(days=weeks * 7)
        buckets: dict[tuple[int, int], list[Lecture]] = {}
        for lec in self._lectures.list_for_user(user_id, start=start, end=today):
            buckets.setdefault(iso_year_week(lec.date), []).append(lec)

        out = []
        for (year, week), items in sorted(buckets.items()):
            attended = _attended(items)
            out.append(WeekBucket(year, week, len(items), attended, _ratio(attended, len(items))))
        return out

    def subject_wise_attendance(self, user_id: int) -> list[SubjectAttendanceRow]:
        rows = []
        for subject in self._subjects.list_for_user(user_id):
            lectures = self._lectures.list_for_user(user_id, subject_id=subject.subject_id)
            if not lectures:
                continue
            attended = _attended(lectures)
            absent = sum(1 for lec in lectures if lec.status == LectureStatus.ABSENT)
            rows.append(
                SubjectAttendanceRow(
                    subject_id=subject.subject_id,
                    subject_name=subject.name,
                    subject_code=subject.code,
                    subject_color=subject.color,
                    total=len(lectures),
                    present=attended,
                    absent=absent,
                    percentage=_ratio(attended, len(lectures)),
                )
            )
        rows.sort(key=lambda r: r.percentage, reverse=True)
        return rows

    def attendance_streak(self, user_id: int) -> Streak:
        by_date: dict[date, bool] = {}
        for lec in self._lectures.list_for_user(user_id):
            by_date[lec.date] = by_date.get(lec.date, False) or lec.status in ATTENDED_STATUSES

        # Walk the dates that have records, newest first, stopping at the first unattended one.
        # Gaps in the calendar do not break a run.
        ordered = sorted(by_date, reverse=True)
        current = maximum = 0
        for d in ordered:
            if not by_date[d]:
                break
            current += 1
            maximum = max(maximum, current)

        return Streak(current=current, maximum=maximum, dates=ordered[: min(current, STREAK_DATES_LIMIT)])

    def subject_status_counts(self, subject_id: int) -> dict[LectureStatus, int]:
        counts = Counter(lec.status for lec in self._lectures.list_for_subject(subject_id))
        return {status: counts[status] for status in LectureStatus}

    def monthly_trend(self, subject_id: int) -> list[MonthBucket]:
        buckets: dict[tuple[int, int], list[Lecture]] = {}
        for lec in self._lectures.list_for_subject(subject_id):
            buckets.setdefault((lec.date.year, lec.date.month), []).append(lec)
        return [
            MonthBucket(year, month, len(items), _attended(items))
            for (year, month), items in sorted(buckets.items())
        ]

    def day_wise_performance(self, user_id: int) -> list[PerformanceBucket]:
        return self._performance(self._lectures.list_for_user(user_id), lambda lec: day_of_week_sunday_first(lec.date))

    def time_wise_performance(self, user_id: int) -> list[PerformanceBucket]:
        return self._performance(self._lectures.list_for_user(user_id), lambda lec: int(lec.start_time[:2]))

    @staticmethod
    def _performance(lectures: Sequence[Lecture], key) -> list[PerformanceBucket]:
        buckets: dict[int, list[Lecture]] = {}
        for lec in lectures:
            buckets.setdefault(key(lec), []).append(lec)
        out = []
        for k in sorted(buckets):
            items = buckets[k]
            attended = _attended(items)
            out.append(PerformanceBucket(k, len(items), attended, _ratio(attended, len(items))))
        return out

    def user_subject_summary(self, user_id: int) -> SubjectSummary:
        subjects = self._subjects.list_for_user(user_id, active_only=True)
        if not subjects:
            return SubjectSummary()
        mean = sum(s.attendance_percentage for s in subjects) / len(subjects)
        return SubjectSummary(
            total_subjects=len(subjects),
            average_attendance=round_half_up(mean),
            total_lectures=sum(s.total_lectures for s in subjects),
            total_attended=sum(s.attended_lectures for s in subjects),
        )
