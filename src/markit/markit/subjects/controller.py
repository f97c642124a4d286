from __future__ import annotations

import math

from flask import Flask, request

from ..common.responses import ok
from ..common.security import build_guards, current_user
from ..common.validators import parse_pagination, parse_sort
from ..core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..container import Container
from .model import SubjectQuery

_SORT_FIELDS = {
    "createdAt": "created_at",
    "name": "name",
    "code": "code",
    "attendancePercentage": "attendance_percentage",
}


def register(app: Flask, container: Container, *, prefix: str = "/api") -> None:
    auth_required, _ = build_guards(container.auth_service)
    subjects = container.subject_service
    base = f"{prefix}/subjects"

    @app.route(base, methods=["GET"], endpoint="subjects_list")
    @auth_required
    def subjects_list():
        page, limit = parse_pagination(request.args, default_limit=DEFAULT_PAGE_SIZE, max_limit=MAX_PAGE_SIZE)
        sort_key, descending = parse_sort(request.args.get("sort"), _SORT_FIELDS, "-createdAt")
        search = (request.args.get("search") or "").strip() or None
        query = SubjectQuery(search=search, sort_key=sort_key, descending=descending)
        items, total = subjects.list(current_user().user_id, query, page=page, limit=limit)
        return ok(
            [s.to_dict() for s in items],
            count=len(items),
            total=total,
            page=page,
            pages=math.ceil(total / limit),
        )

    @app.route(base, methods=["POST"], endpoint="subjects_create")
    @auth_required
    def subjects_create():
        subject = subjects.create(current_user().user_id, request.get_json(silent=True) or {})
        return ok(subject.to_dict(), message="Subject created successfully", status=201)

    @app.route(f"{base}/bulk", methods=["PUT"], endpoint="subjects_bulk")
    @auth_required
    def subjects_bulk():
        body = request.get_json(silent=True) or {}
        updated = subjects.bulk_update(current_user().user_id, body.get("subjects"))
        return ok([s.to_dict() for s in updated], message=f"{len(updated)} subjects updated successfully")

    @app.route(f"{base}/<int:subject_id>", methods=["GET"], endpoint="subjects_get")
    @auth_required
    def subjects_get(subject_id: int):
        subject, recent = subjects.get(current_user().user_id, subject_id)
        return ok({**subject.to_dict(), "lectures": [lec.to_dict() for lec in recent]})

    @app.route(f"{base}/<int:subject_id>", methods=["PUT"], endpoint="subjects_update")
    @auth_required
    def subjects_update(subject_id: int):
        subject = subjects.update(current_user().user_id, subject_id, request.get_json(silent=True) or {})
        return ok(subject.to_dict(), message="Subject updated successfully")

    @app.route(f"{base}/<int:subject_id>", methods=["DELETE"], endpoint="subjects_delete")
    @auth_required
    def subjects_delete(subject_id: int):
        archived = subjects.delete(current_user().user_id, subject_id)
        if archived:
            return ok(message="Subject archived successfully (has existing lectures)")
        return ok(message="Subject deleted successfully")

    @app.route(f"{base}/<int:subject_id>/stats", methods=["GET"], endpoint="subjects_stats")
    @auth_required
    def subjects_stats(subject_id: int):
        user = current_user()
        return ok(subjects.stats(user.user_id, subject_id, attendance_goal=user.attendance_goal))

    @app.route(f"{base}/<int:subject_id>/goal", methods=["PUT"], endpoint="subjects_goal")
    @auth_required
    def subjects_goal(subject_id: int):
        body = request.get_json(silent=True) or {}
        data = subjects.set_goal(current_user().user_id, subject_id, body.get("attendanceGoal"))
        return ok(data, message="Attendance goal updated successfully")
