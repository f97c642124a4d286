from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class SubjectStats:
    """Cached rollup written back onto a subject."""

    total_lectures: int
    attended_lectures: int
    attendance_percentage: int

    def to_dict(self) -> dict:
        return {
            "totalLectures": self.total_lectures,
            "attendedLectures": self.attended_lectures,
            "attendancePercentage": self.attendance_percentage,
        }


@dataclass(frozen=True)
class AttendanceStats:
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    total: int = 0
    attendance_rate: int = 0

    def to_dict(self) -> dict:
        return {
            "present": self.present,
            "absent": self.absent,
            "late": self.late,
            "excused": self.excused,
            "total": self.total,
            "attendanceRate": self.attendance_rate,
        }


@dataclass(frozen=True)
class WeekBucket:
    year: int
    week: int
    total: int
    present: int
    percentage: float

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "week": self.week,
            "total": self.total,
            "present": self.present,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class MonthBucket:
    year: int
    month: int
    total: int
    attended: int

    def to_dict(self) -> dict:
        return {"year": self.year, "month": self.month, "total": self.total, "attended": self.attended}


@dataclass(frozen=True)
class PerformanceBucket:
    """One day-of-week or hour-of-day analytics bucket; ``key`` is the day (1=Sunday) or the hour."""

    key: int
    total: int
    present: int
    percentage: float

    def to_dict(self, key_name: str) -> dict:
        return {key_name: self.key, "total": self.total, "present": self.present, "percentage": self.percentage}


@dataclass(frozen=True)
class SubjectAttendanceRow:
    subject_id: int
    subject_name: str
    subject_code: Optional[str]
    subject_color: str
    total: int
    present: int
    absent: int
    percentage: float

    def to_dict(self) -> dict:
        return {
            "subjectId": self.subject_id,
            "subjectName": self.subject_name,
            "subjectCode": self.subject_code,
            "subjectColor": self.subject_color,
            "total": self.total,
            "present": self.present,
            "absent": self.absent,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class Streak:
    current: int = 0
    maximum: int = 0
    dates: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"current": self.current, "maximum": self.maximum, "dates": [d.isoformat() for d in self.dates]}


@dataclass(frozen=True)
class SubjectSummary:
    """Per-user rollup over active subjects, built from their cached fields."""

    total_subjects: int = 0
    average_attendance: int = 0
    total_lectures: int = 0
    total_attended: int = 0

    def to_dict(self) -> dict:
        return {
            "totalSubjects": self.total_subjects,
            "averageAttendance": self.average_attendance,
            "totalLectures": self.total_lectures,
            "totalAttended": self.total_attended,
        }
