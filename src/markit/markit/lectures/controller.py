from __future__ import annotations

import math

from flask import Flask, request

from ..common.responses import ok
from ..common.security import build_guards, current_user
from ..common.validators import PayloadValidator, parse_pagination, parse_sort
from ..core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..core.enums import LectureStatus
from ..container import Container
from .model import LectureQuery

_SORT_FIELDS = {
    "date": "date",
    "createdAt": "created_at",
    "title": "title",
    "status": "status",
    "startTime": "start_time",
}


def _query_from_args(args) -> LectureQuery:
    cleaned = (
        PayloadValidator(args.to_dict())
        .string("search", allow_blank=True)
        .string("subjectId", allow_blank=True)
        .enum("status", LectureStatus, blank_as=None)
        .date("startDate", target="start")
        .date("endDate", target="end")
        .validate("Query validation failed")
    )
    sort_key, descending = parse_sort(args.get("sort"), _SORT_FIELDS, "-date")
    subject = cleaned.get("subjectId")
    return LectureQuery(
        search=cleaned.get("search") or None,
        subject_id=int(subject) if subject and subject.isdigit() else None,
        status=cleaned.get("status"),
        start=cleaned.get("start"),
        end=cleaned.get("end"),
        sort_key=sort_key,
        descending=descending,
    )


def register(app: Flask, container: Container, *, prefix: str = "/api") -> None:
    auth_required, _ = build_guards(container.auth_service)
    lectures = container.lecture_service
    base = f"{prefix}/lectures"

    @app.route(base, methods=["GET"], endpoint="lectures_list")
    @auth_required
    def lectures_list():
        page, limit = parse_pagination(request.args, default_limit=DEFAULT_PAGE_SIZE, max_limit=MAX_PAGE_SIZE)
        query = _query_from_args(request.args)
        items, total = lectures.list(current_user().user_id, query, page=page, limit=limit)
        return ok(
            lectures.present(items),
            count=len(items),
            total=total,
            page=page,
            pages=math.ceil(total / limit),
        )

    @app.route(base, methods=["POST"], endpoint="lectures_create")
    @auth_required
    def lectures_create():
        lecture = lectures.create(current_user().user_id, request.get_json(silent=True) or {})
        return ok(lectures.present([lecture])[0], message="Lecture created successfully", status=201)

    @app.route(f"{base}/<int:lecture_id>", methods=["GET"], endpoint="lectures_get")
    @auth_required
    def lectures_get(lecture_id: int):
        lecture = lectures.get(current_user().user_id, lecture_id)
        return ok(lectures.present([lecture])[0])

    @app.route(f"{base}/<int:lecture_id>", methods=["PUT"], endpoint="lectures_update")
    @auth_required
    def lectures_update(lecture_id: int):
        lecture = lectures.update(current_user().user_id, lecture_id, request.get_json(silent=True) or {})
        return ok(lectures.present([lecture])[0], message="Attendance updated successfully")

    @app.route(f"{base}/<int:lecture_id>", methods=["DELETE"], endpoint="lectures_delete")
    @auth_required
    def lectures_delete(lecture_id: int):
        lectures.delete(current_user().user_id, lecture_id)
        return ok(message="Lecture deleted successfully")

    @app.route(f"{base}/range/<start>/<end>", methods=["GET"], endpoint="lectures_range")
    @auth_required
    def lectures_range(start: str, end: str):
        cleaned = (
            PayloadValidator({"startDate": start, "endDate": end})
            .date("startDate", required=True)
            .date("endDate", required=True)
            .validate()
        )
        grouped = lectures.by_range(current_user().user_id, cleaned["startDate"], cleaned["endDate"])
        return ok(
            {day: lectures.present(items) for day, items in grouped.items()},
            count=sum(len(items) for items in grouped.values()),
        )

    @app.route(f"{base}/today/list", methods=["GET"], endpoint="lectures_today")
    @auth_required
    def lectures_today():
        items = lectures.today(current_user().user_id)
        return ok(lectures.present(items), count=len(items))

    @app.route(f"{base}/upcoming/list", methods=["GET"], endpoint="lectures_upcoming")
    @auth_required
    def lectures_upcoming():
        items = lectures.upcoming(current_user().user_id)
        return ok(lectures.present(items), count=len(items))

    @app.route(f"{base}/bulk-attendance", methods=["PUT"], endpoint="lectures_bulk_attendance")
    @auth_required
    def lectures_bulk_attendance():
        body = request.get_json(silent=True) or {}
        updated = lectures.bulk_update_status(current_user().user_id, body.get("lectures"))
        return ok(lectures.present(updated), message=f"{len(updated)} lectures updated successfully")

    @app.route(f"{base}/mark-attendance", methods=["POST"], endpoint="lectures_mark_attendance")
    @auth_required
    def lectures_mark_attendance():
        body = request.get_json(silent=True) or {}
        marked = lectures.mark_attendance(current_user().user_id, body.get("date"), body.get("attendanceData"))
        return ok(lectures.present(marked), message=f"Attendance marked for {len(marked)} lectures")

    @app.route(f"{base}/stats/overview", methods=["GET"], endpoint="lectures_stats_overview")
    @auth_required
    def lectures_stats_overview():
        cleaned = (
            PayloadValidator(request.args.to_dict())
            .date("startDate", target="start")
            .date("endDate", target="end")
            .validate("Query validation failed")
        )
        data = lectures.stats_overview(current_user().user_id, cleaned.get("start"), cleaned.get("end"))
        return ok(data)
