from __future__ import annotations

from datetime import date

import pytest

from src.markit.markit.core.enums import LectureStatus
from src.markit.markit.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.markit.markit.subjects.model import SubjectQuery


def test_create_normalizes_fields_and_notifies(subject_service, notifier, student):
    subject = subject_service.create(
        student.user_id,
        {
            "name": "Linear Algebra",
            "code": "ma201",
            "instructor": {"name": "Dr. Noether", "email": "Noether@Uni.edu"},
            "schedule": [{"day": "Monday", "startTime": "9:00", "endTime": "10:30", "room": "B2"}],
            "color": "#10b981",
        },
    )

    assert subject.code == "MA201"
    assert subject.instructor["email"] == "noether@uni.edu"
    assert subject.schedule == [{"day": "Monday", "startTime": "09:00", "endTime": "10:30", "room": "B2"}]
    assert notifier.types() == ["subject_created"]


def test_create_rejects_bad_schedule_and_color(subject_service, student):
    with pytest.raises(ValidationError) as exc:
        subject_service.create(
            student.user_id,
            {"name": "Art", "schedule": [{"day": "Funday", "startTime": "9", "endTime": "10:00"}], "color": "red"},
        )

    fields = {e.field for e in exc.value.errors}
    assert fields == {"schedule.0.day", "schedule.0.startTime", "color"}


def test_duplicate_active_name_conflicts(subject_service, student, math):
    with pytest.raises(ConflictError, match="Subject with this name already exists"):
        subject_service.create(student.user_id, {"name": "Math"})


def test_archived_name_can_be_reused(subject_service, subjects, student, math):
    subjects.update_fields(math.subject_id, {"is_active": False})

    assert subject_service.create(student.user_id, {"name": "Math"}).name == "Math"


def test_update_rename_checks_conflict(subject_service, subjects, student, math):
    physics = subjects.create(user_id=student.user_id, fields={"name": "Physics"})

    with pytest.raises(ConflictError):
        subject_service.update(student.user_id, physics.subject_id, {"name": "Math"})

    assert subject_service.update(student.user_id, physics.subject_id, {"name": "Physics II"}).name == "Physics II"


def test_delete_with_lectures_archives(subject_service, subjects, lectures, notifier, student, math):
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 1))

    archived = subject_service.delete(student.user_id, math.subject_id)

    assert archived is True
    assert subjects.get_by_id(math.subject_id).is_active is False
    assert lectures.count_for_subject(math.subject_id) == 1
    assert notifier.notifications == []


def test_delete_without_lectures_removes(subject_service, subjects, notifier, student, math):
    archived = subject_service.delete(student.user_id, math.subject_id)

    assert archived is False
    assert subjects.get_by_id(math.subject_id) is None
    assert notifier.types() == ["subject_deleted"]


def test_other_users_subject_is_not_found(subject_service, users, math):
    other = users.add(email="other@example.com")

    with pytest.raises(NotFoundError):
        subject_service.get(other.user_id, math.subject_id)
    with pytest.raises(NotFoundError):
        subject_service.delete(other.user_id, math.subject_id)


def test_stats_end_to_end(subject_service, lecture_service, student, fixed_now):
    subject = subject_service.create(student.user_id, {"name": "Math"})
    for day, status in enumerate(["present", "present", "absent", "late"], start=1):
        lecture_service.create(
            student.user_id,
            {
                "subjectId": subject.subject_id,
                "title": f"Lecture {day}",
                "topic": "Calculus",
                "date": f"2024-03-0{day}",
                "startTime": "09:00",
                "endTime": "10:00",
                "status": status,
            },
            now=fixed_now,
        )

    result = subject_service.stats(student.user_id, subject.subject_id, attendance_goal=75)

    assert result["stats"] == {
        "present": 2,
        "absent": 1,
        "late": 1,
        "excused": 0,
        "total": 4,
        "percentage": 50,
    }
    assert result["meetsGoal"] is False
    assert result["monthlyTrend"] == [{"year": 2024, "month": 3, "total": 4, "present": 3, "percentage": 75.0}]
    assert [r["date"] for r in result["recentLectures"]] == ["2024-03-04", "2024-03-03", "2024-03-02", "2024-03-01"]


def test_set_goal_updates_user(subject_service, users, subjects, student, math):
    subjects.update_stats(math.subject_id, total=4, attended=3, percentage=75)

    result = subject_service.set_goal(student.user_id, math.subject_id, 70.5)

    assert result == {"attendanceGoal": 70.5, "meetsGoal": True}
    assert users.get_by_id(student.user_id).attendance_goal == 71


@pytest.mark.parametrize("goal", [-1, 101, "80", True, None])
def test_set_goal_rejects_out_of_range(subject_service, student, math, goal):
    with pytest.raises(ValidationError):
        subject_service.set_goal(student.user_id, math.subject_id, goal)


def test_bulk_update_prefixes_field_errors(subject_service, subjects, student, math):
    physics = subjects.create(user_id=student.user_id, fields={"name": "Physics"})

    updated = subject_service.bulk_update(
        student.user_id,
        [{"id": math.subject_id, "color": "#000000"}, {"id": 999, "color": "#ffffff"}],
    )
    assert [s.color for s in updated] == ["#000000"]

    with pytest.raises(ValidationError) as exc:
        subject_service.bulk_update(student.user_id, [{"_id": physics.subject_id, "color": "blue"}])
    assert [e.field for e in exc.value.errors] == ["subjects.0.color"]


def test_bulk_update_writes_nothing_when_a_later_item_is_invalid(subject_service, subjects, student, math):
    physics = subjects.create(user_id=student.user_id, fields={"name": "Physics"})

    with pytest.raises(ValidationError) as exc:
        subject_service.bulk_update(
            student.user_id,
            [{"id": math.subject_id, "color": "#000000"}, {"id": physics.subject_id, "year": 1999}],
        )

    assert [e.field for e in exc.value.errors] == ["subjects.1.year"]
    assert subjects.get_by_id(math.subject_id).color == math.color


def test_list_searches_by_name(subject_service, subjects, student, math):
    subjects.create(user_id=student.user_id, fields={"name": "Physics"})

    items, total = subject_service.list(student.user_id, SubjectQuery(search="phy"), page=1, limit=10)

    assert total == 1
    assert items[0].name == "Physics"


def test_get_returns_recent_lectures(subject_service, lectures, student, math):
    for day in range(1, 4):
        lectures.add(student.user_id, math.subject_id, date(2024, 3, day), LectureStatus.ABSENT)

    subject, recent = subject_service.get(student.user_id, math.subject_id)

    assert subject.name == "Math"
    assert [lec.date.day for lec in recent] == [3, 2, 1]
