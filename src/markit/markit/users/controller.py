from __future__ import annotations

import math

from flask import Flask, request

from ..common.responses import ok
from ..common.security import build_guards, current_user
from ..common.validators import parse_pagination
from ..core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..container import Container


def register(app: Flask, container: Container, *, prefix: str = "/api") -> None:
    auth_required, admin_required = build_guards(container.auth_service)
    auth = container.auth_service
    users = container.user_service

    # ---- auth ---------------------------------------------------------

    @app.route(f"{prefix}/auth/register", methods=["POST"], endpoint="auth_register")
    def auth_register():
        result = auth.register(request.get_json(silent=True) or {})
        return ok(result.to_dict(), message="User registered successfully", status=201)

    @app.route(f"{prefix}/auth/login", methods=["POST"], endpoint="auth_login")
    def auth_login():
        body = request.get_json(silent=True) or {}
        result = auth.authenticate(body.get("email"), body.get("password"))
        return ok(result.to_dict(), message="Login successful")

    @app.route(f"{prefix}/auth/me", methods=["GET"], endpoint="auth_me")
    @auth_required
    def auth_me():
        return ok(current_user().to_dict())

    # ---- own account --------------------------------------------------

    @app.route(f"{prefix}/users/profile", methods=["GET"], endpoint="users_profile")
    @auth_required
    def users_profile():
        return ok(users.get(current_user().user_id).to_dict())

    @app.route(f"{prefix}/users/profile", methods=["PUT"], endpoint="users_profile_update")
    @auth_required
    def users_profile_update():
        user = users.update_profile(current_user().user_id, request.get_json(silent=True) or {})
        return ok(user.to_dict(), message="Profile updated successfully")

    @app.route(f"{prefix}/users/preferences", methods=["PUT"], endpoint="users_preferences")
    @auth_required
    def users_preferences():
        body = request.get_json(silent=True) or {}
        preferences = users.update_preferences(current_user().user_id, body.get("preferences"))
        return ok({"preferences": preferences}, message="Preferences updated successfully")

    @app.route(f"{prefix}/users/attendance-goal", methods=["PUT"], endpoint="users_attendance_goal")
    @auth_required
    def users_attendance_goal():
        body = request.get_json(silent=True) or {}
        user = users.update_attendance_goal(current_user().user_id, body.get("attendanceGoal"))
        return ok(
            {"attendanceGoal": user.attendance_goal, "preferences": user.preferences},
            message="Attendance goal updated successfully",
        )

    @app.route(f"{prefix}/users/stats", methods=["GET"], endpoint="users_stats")
    @auth_required
    def users_stats():
        return ok(users.stats(current_user().user_id))

    @app.route(f"{prefix}/users/account", methods=["DELETE"], endpoint="users_delete_account")
    @auth_required
    def users_delete_account():
        body = request.get_json(silent=True) or {}
        users.delete_account(current_user().user_id, body.get("password"))
        return ok(message="Account deleted successfully")

    # ---- admin --------------------------------------------------------

    @app.route(f"{prefix}/users", methods=["GET"], endpoint="users_list")
    @admin_required
    def users_list():
        page, limit = parse_pagination(request.args, default_limit=DEFAULT_PAGE_SIZE, max_limit=MAX_PAGE_SIZE)
        items, total = users.list_users(search=request.args.get("search"), page=page, limit=limit)
        return ok(
            [u.to_dict() for u in items],
            count=len(items),
            total=total,
            page=page,
            pages=math.ceil(total / limit),
        )

    @app.route(f"{prefix}/users/admin/stats", methods=["GET"], endpoint="users_admin_stats")
    @admin_required
    def users_admin_stats():
        return ok(users.admin_stats())

    @app.route(f"{prefix}/users/<int:user_id>", methods=["GET"], endpoint="users_get")
    @admin_required
    def users_get(user_id: int):
        return ok(users.get(user_id).to_dict())

    @app.route(f"{prefix}/users/<int:user_id>", methods=["PUT"], endpoint="users_update")
    @admin_required
    def users_update(user_id: int):
        user = users.admin_update(user_id, request.get_json(silent=True) or {})
        return ok(user.to_dict(), message="User updated successfully")

    @app.route(f"{prefix}/users/<int:user_id>", methods=["DELETE"], endpoint="users_delete")
    @admin_required
    def users_delete(user_id: int):
        users.admin_delete(user_id)
        return ok(message="User deleted successfully")
