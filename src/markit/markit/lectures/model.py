from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..core.enums import ExamType, LectureStatus


@dataclass(frozen=True)
class Lecture:
    """Domain entity: one dated attendance event of a subject.

    ``subject_id`` and ``user_id`` never change after creation.
    """

    lecture_id: int
    user_id: int
    subject_id: int
    title: str
    topic: str
    date: date
    start_time: str
    end_time: str
    duration: int = 0
    status: LectureStatus = LectureStatus.ABSENT
    description: Optional[str] = None
    room: Optional[str] = None
    notes: Optional[str] = None
    materials: list = field(default_factory=list)
    assignments: list = field(default_factory=list)
    is_important: bool = False
    is_exam: bool = False
    exam_type: Optional[ExamType] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self, subject: Optional[dict] = None) -> dict:
        return {
            "id": self.lecture_id,
            "userId": self.user_id,
            "subjectId": subject if subject is not None else self.subject_id,
            "title": self.title,
            "topic": self.topic,
            "description": self.description,
            "date": self.date.isoformat(),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "room": self.room,
            "status": self.status.value,
            "notes": self.notes,
            "materials": self.materials,
            "assignments": self.assignments,
            "isImportant": self.is_important,
            "isExam": self.is_exam,
            "examType": self.exam_type.value if self.exam_type else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class LectureQuery:
    """Filters for the paginated lecture listing."""

    search: Optional[str] = None
    subject_id: Optional[int] = None
    status: Optional[LectureStatus] = None
    start: Optional[date] = None
    end: Optional[date] = None
    sort_key: str = "date"
    descending: bool = True
