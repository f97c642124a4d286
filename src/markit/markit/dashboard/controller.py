from __future__ import annotations

from flask import Flask, request

from ..common.responses import ok
from ..common.security import build_guards, current_user
from ..common.validators import parse_id
from ..container import Container


def register(app: Flask, container: Container, *, prefix: str = "/api") -> None:
    auth_required, _ = build_guards(container.auth_service)
    dashboard = container.dashboard_service
    base = f"{prefix}/dashboard"

    @app.route(base, methods=["GET"], endpoint="dashboard_overview")
    @auth_required
    def dashboard_overview():
        return ok(dashboard.overview(current_user()))

    @app.route(f"{base}/attendance-summary", methods=["GET"], endpoint="dashboard_attendance_summary")
    @auth_required
    def dashboard_attendance_summary():
        data = dashboard.attendance_summary(
            current_user().user_id,
            period=request.args.get("period"),
            subject_id=parse_id(request.args.get("subjectId")),
        )
        return ok(data)

    @app.route(f"{base}/analytics", methods=["GET"], endpoint="dashboard_analytics")
    @auth_required
    def dashboard_analytics():
        return ok(dashboard.analytics(current_user()))

    @app.route(f"{base}/init-demo-data", methods=["POST"], endpoint="dashboard_init_demo_data")
    @auth_required
    def dashboard_init_demo_data():
        data = dashboard.init_demo_data(current_user().user_id)
        return ok(data, message="Demo data created successfully!", status=201)

    @app.route(f"{base}/debug", methods=["GET"], endpoint="dashboard_debug")
    @auth_required
    def dashboard_debug():
        return ok(debug=dashboard.debug(current_user().user_id))
