from __future__ import annotations

import traceback
from typing import Any, Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from ..app_logger import get_logger
from ..core.exceptions import DomainError, ValidationError

logger = get_logger(__name__)


def ok(data: Any = None, *, message: Optional[str] = None, status: int = 200, **extra):
    """Standard success envelope: {success: true, data, message?, ...}."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body.update(extra)
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def fail(message: str, *, status: int, errors=None, stack: Optional[str] = None):
    body: dict[str, Any] = {"success": False, "message": message, "error": message}
    if errors:
        body["errors"] = [e.to_dict() for e in errors]
    if stack:
        body["stack"] = stack
    return jsonify(body), status


def _format_stack(e: BaseException) -> str:
    return "".join(traceback.format_exception(type(e), e, e.__traceback__))


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        status = getattr(e, "status_code", 400)
        if status >= 500:
            logger.error("Store failure: %s", e, exc_info=e)
            stack = _format_stack(e) if app.config.get("DEBUG") else None
            return fail(str(e) or "Server Error", status=status, stack=stack)
        errors = e.errors if isinstance(e, ValidationError) else None
        return fail(str(e), status=status, errors=errors)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        message = "Route not found" if e.code == 404 else (e.description or e.name)
        return fail(message, status=e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("Unhandled error: %s", e)
        stack = _format_stack(e) if app.config.get("DEBUG") else None
        return fail("Server Error", status=500, stack=stack)
