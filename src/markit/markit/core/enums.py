from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Account roles used for authorization."""

    STUDENT = "student"
    ADMIN = "admin"


class LectureStatus(str, Enum):
    """Attendance status stored on each lecture."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"

    @classmethod
    def parse(cls, value) -> "LectureStatus | None":
        """Return the member for ``value`` or None when it is not a valid status."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


# Statuses counted as "attended" by the read-side aggregations.
# The cached Subject.attended_lectures counts PRESENT only.
ATTENDED_STATUSES = frozenset({LectureStatus.PRESENT, LectureStatus.LATE, LectureStatus.EXCUSED})


class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


class ExamType(str, Enum):
    QUIZ = "quiz"
    MIDTERM = "midterm"
    FINAL = "final"
    ASSIGNMENT = "assignment"
    PRESENTATION = "presentation"
    OTHER = "other"


class MaterialType(str, Enum):
    PDF = "pdf"
    DOC = "doc"
    PPT = "ppt"
    VIDEO = "video"
    AUDIO = "audio"
    LINK = "link"
    OTHER = "other"


class AssignmentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    SUBMITTED = "submitted"
    GRADED = "graded"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class NotificationType(str, Enum):
    """Discriminator carried by the generic ``notification`` event."""

    LECTURE_CREATED = "lecture_created"
    LECTURE_UPDATED = "lecture_updated"
    LECTURE_DELETED = "lecture_deleted"
    BULK_ATTENDANCE_UPDATED = "bulk_attendance_updated"
    ATTENDANCE_MARKED = "attendance_marked"
    SUBJECT_CREATED = "subject_created"
    SUBJECT_UPDATED = "subject_updated"
    SUBJECT_DELETED = "subject_deleted"
    GOAL_ACHIEVED = "goal_achieved"
