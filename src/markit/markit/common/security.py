from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import g, request

from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError


def bearer_token(header_value: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not header_value:
        return None
    parts = header_value.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


def build_guards(auth_service):
    """Return (auth_required, admin_required) decorators bound to ``auth_service``.

    The resolved user is stored on ``flask.g.current_user`` for the view.
    """

    def _resolve():
        token = bearer_token(request.headers.get("Authorization"))
        if not token:
            raise AuthenticationError("Not authorized, no token provided")
        g.current_user = auth_service.resolve_token(token)
        return g.current_user

    def auth_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            _resolve()
            return view(*args, **kwargs)

        return wrapper

    def admin_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = _resolve()
            if user.role != Role.ADMIN:
                raise AuthorizationError("Access denied. Admin role required")
            return view(*args, **kwargs)

        return wrapper

    return auth_required, admin_required


def current_user():
    return g.current_user
