from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..core.constants import DEFAULT_ATTENDANCE_GOAL, DEFAULT_SUBJECT_COLOR


@dataclass(frozen=True)
class Subject:
    """Domain entity: a tracked course.

    ``total_lectures``/``attended_lectures``/``attendance_percentage`` are a cached
    rollup of the subject's lectures, rewritten by StatisticsService.recompute_subject_stats.
    """

    subject_id: int
    user_id: int
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    instructor: dict = field(default_factory=dict)
    schedule: list = field(default_factory=list)
    semester: Optional[str] = None
    year: Optional[int] = None
    color: str = DEFAULT_SUBJECT_COLOR
    is_active: bool = True
    total_lectures: int = 0
    attended_lectures: int = 0
    attendance_percentage: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def meets_attendance_goal(self, goal: int = DEFAULT_ATTENDANCE_GOAL) -> bool:
        return self.attendance_percentage >= goal

    def brief(self) -> dict:
        return {"id": self.subject_id, "name": self.name, "code": self.code, "color": self.color}

    def to_dict(self) -> dict:
        return {
            "id": self.subject_id,
            "userId": self.user_id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "instructor": self.instructor,
            "schedule": self.schedule,
            "semester": self.semester,
            "year": self.year,
            "color": self.color,
            "isActive": self.is_active,
            "totalLectures": self.total_lectures,
            "attendedLectures": self.attended_lectures,
            "attendancePercentage": self.attendance_percentage,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class SubjectQuery:
    search: Optional[str] = None
    sort_key: str = "created_at"
    descending: bool = True
