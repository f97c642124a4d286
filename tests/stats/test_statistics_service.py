from __future__ import annotations

from datetime import date

import pytest

from src.markit.markit.core.enums import LectureStatus
from src.markit.markit.core.exceptions import NotFoundError
from src.markit.markit.stats.service import percentage, round_half_up

P, A, L, E = LectureStatus.PRESENT, LectureStatus.ABSENT, LectureStatus.LATE, LectureStatus.EXCUSED


def test_round_half_up_rounds_point_five_up():
    assert round_half_up(62.5) == 63
    assert round_half_up(66.4) == 66
    assert percentage(1, 3) == 33
    assert percentage(2, 3) == 67
    assert percentage(0, 0) == 0


def test_recompute_counts_only_present(stats, subjects, lectures, student, math):
    for i, status in enumerate([P, P, A, L]):
        lectures.add(student.user_id, math.subject_id, date(2024, 3, 1 + i), status)

    result = stats.recompute_subject_stats(math.subject_id)

    assert (result.total_lectures, result.attended_lectures, result.attendance_percentage) == (4, 2, 50)
    cached = subjects.get_by_id(math.subject_id)
    assert (cached.total_lectures, cached.attended_lectures, cached.attendance_percentage) == (4, 2, 50)


def test_recompute_without_lectures_resets_to_zero(stats, subjects, math):
    subjects.update_stats(math.subject_id, total=3, attended=3, percentage=100)

    result = stats.recompute_subject_stats(math.subject_id)

    assert result.to_dict() == {"totalLectures": 0, "attendedLectures": 0, "attendancePercentage": 0}


def test_recompute_unknown_subject(stats):
    with pytest.raises(NotFoundError):
        stats.recompute_subject_stats(999)


def test_recompute_quietly_logs_and_returns_none(stats, subjects, lectures, student, math):
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 1), P)
    subjects.fail_stats_for.add(math.subject_id)

    assert stats.recompute_quietly(math.subject_id) is None
    assert stats.recompute_quietly(999) is None

    subjects.fail_stats_for.clear()
    assert stats.recompute_quietly(math.subject_id).attendance_percentage == 100


def test_attendance_stats_counts_late_and_excused_as_attended(stats, lectures, student, math):
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 1), P)
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 2), L)
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 3), E)
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 4), A)
    lectures.add(student.user_id, math.subject_id, date(2024, 4, 1), A)

    result = stats.attendance_stats(student.user_id, date(2024, 3, 1), date(2024, 3, 31))

    assert result.to_dict() == {
        "present": 1,
        "absent": 1,
        "late": 1,
        "excused": 1,
        "total": 4,
        "attendanceRate": 75,
    }


def test_attendance_stats_empty_range(stats, student):
    assert stats.attendance_stats(student.user_id, date(2024, 1, 1), date(2024, 1, 31)).attendance_rate == 0


def test_weekly_trend_groups_by_iso_week(stats, lectures, student, math, fixed_now):
    lectures.add(student.user_id, math.subject_id, date(2024, 2, 28), P)
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 4), P)
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 5), A)
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 12), L)

    trend = stats.weekly_trend(student.user_id, 2, today=fixed_now.date())

    assert [b.to_dict() for b in trend] == [
        {"year": 2024, "week": 10, "total": 2, "present": 1, "percentage": 50.0},
        {"year": 2024, "week": 11, "total": 1, "present": 1, "percentage": 100.0},
    ]


def test_subject_wise_attendance_skips_empty_subjects(stats, subjects, lectures, student, math):
    physics = subjects.create(user_id=student.user_id, fields={"name": "Physics"})
    subjects.create(user_id=student.user_id, fields={"name": "Empty"})
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 1), A)
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 2), P)
    lectures.add(student.user_id, physics.subject_id, date(2024, 3, 1), E)

    rows = stats.subject_wise_attendance(student.user_id)

    assert [r.subject_name for r in rows] == ["Physics", "Math"]
    assert rows[1].to_dict()["absent"] == 1
    assert rows[1].percentage == 50.0


def test_streak_broken_by_absent_day(stats, lectures, student, math):
    lectures.add(student.user_id, math.subject_id, date(2024, 1, 5), P)
    lectures.add(student.user_id, math.subject_id, date(2024, 1, 4), A)
    lectures.add(student.user_id, math.subject_id, date(2024, 1, 3), P)

    streak = stats.attendance_streak(student.user_id)

    assert streak.current == 1
    assert streak.maximum == 1
    assert streak.to_dict()["dates"] == ["2024-01-05"]


def test_streak_three_consecutive_attended_dates(stats, lectures, student, math):
    lectures.add(student.user_id, math.subject_id, date(2024, 1, 3), P)
    lectures.add(student.user_id, math.subject_id, date(2024, 1, 4), L)
    lectures.add(student.user_id, math.subject_id, date(2024, 1, 5), E)

    streak = stats.attendance_streak(student.user_id)

    assert streak.current == streak.maximum == 3


def test_streak_day_counts_if_any_lecture_attended(stats, lectures, student, math):
    lectures.add(student.user_id, math.subject_id, date(2024, 1, 5), A, start_time="08:00")
    lectures.add(student.user_id, math.subject_id, date(2024, 1, 5), P, start_time="11:00")

    assert stats.attendance_streak(student.user_id).current == 1


def test_streak_stops_at_first_missed_date_and_dates_capped(stats, lectures, student, math):
    for day in range(1, 6):
        lectures.add(student.user_id, math.subject_id, date(2024, 2, day), P)
    lectures.add(student.user_id, math.subject_id, date(2024, 2, 6), A)
    for day in range(7, 10):
        lectures.add(student.user_id, math.subject_id, date(2024, 2, day), P)

    streak = stats.attendance_streak(student.user_id)

    # The older five-day run sits behind the absence and is never reached.
    assert (streak.current, streak.maximum) == (3, 3)

    for day in range(10, 22):
        lectures.add(student.user_id, math.subject_id, date(2024, 2, day), P)
    streak = stats.attendance_streak(student.user_id)
    assert streak.current == streak.maximum == 15
    assert len(streak.dates) == 7
    assert streak.dates[0] == date(2024, 2, 21)


def test_streak_empty(stats, student):
    assert stats.attendance_streak(student.user_id).to_dict() == {"current": 0, "maximum": 0, "dates": []}


def test_monthly_trend_and_status_counts(stats, lectures, student, math):
    lectures.add(student.user_id, math.subject_id, date(2024, 1, 10), P)
    lectures.add(student.user_id, math.subject_id, date(2024, 1, 11), A)
    lectures.add(student.user_id, math.subject_id, date(2024, 2, 1), L)

    assert [b.to_dict() for b in stats.monthly_trend(math.subject_id)] == [
        {"year": 2024, "month": 1, "total": 2, "attended": 1},
        {"year": 2024, "month": 2, "total": 1, "attended": 1},
    ]
    counts = stats.subject_status_counts(math.subject_id)
    assert counts == {P: 1, A: 1, L: 1, E: 0}


def test_day_and_time_wise_performance(stats, lectures, student, math):
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 10), P, start_time="09:00")
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 11), A, start_time="14:30")
    lectures.add(student.user_id, math.subject_id, date(2024, 3, 18), P, start_time="14:00")

    by_day = [b.to_dict("day") for b in stats.day_wise_performance(student.user_id)]
    assert by_day == [
        {"day": 1, "total": 1, "present": 1, "percentage": 100.0},
        {"day": 2, "total": 2, "present": 1, "percentage": 50.0},
    ]
    by_hour = [(b.key, b.total) for b in stats.time_wise_performance(student.user_id)]
    assert by_hour == [(9, 1), (14, 2)]


def test_user_subject_summary_uses_active_subjects(stats, subjects, student, math):
    archived = subjects.create(user_id=student.user_id, fields={"name": "Old"})
    subjects.update_fields(archived.subject_id, {"is_active": False})
    physics = subjects.create(user_id=student.user_id, fields={"name": "Physics"})
    subjects.update_stats(math.subject_id, total=4, attended=2, percentage=50)
    subjects.update_stats(physics.subject_id, total=3, attended=3, percentage=100)

    summary = stats.user_subject_summary(student.user_id)

    assert summary.to_dict() == {
        "totalSubjects": 2,
        "averageAttendance": 75,
        "totalLectures": 7,
        "totalAttended": 5,
    }
