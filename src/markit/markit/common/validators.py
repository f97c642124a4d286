from __future__ import annotations

import re
from datetime import date
from enum import Enum
from typing import Any, Optional

from ..core.exceptions import FieldError, ValidationError
from .datetime_utils import is_valid_hhmm, normalize_hhmm, parse_iso_date

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]{2,}$")
HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")

_MISSING = object()


class PayloadValidator:
    """Collects field-level errors for one JSON payload.

    Each check reads ``payload[field]``, stores the cleaned value under
    ``target`` (defaults to ``field``) and records a FieldError instead of
    raising, so a single response can report every problem at once.
    """

    def __init__(self, payload: Optional[dict]):
        self._payload = payload if isinstance(payload, dict) else {}
        self.cleaned: dict[str, Any] = {}
        self.errors: list[FieldError] = []

    def _get(self, field: str):
        return self._payload.get(field, _MISSING)

    def _fail(self, field: str, message: str) -> None:
        self.errors.append(FieldError(field, message))

    def _missing(self, field: str, value, required: bool) -> bool:
        if value is _MISSING or value is None:
            if required:
                self._fail(field, f"{field} is required")
            return True
        return False

    def string(
        self,
        field: str,
        *,
        target: Optional[str] = None,
        required: bool = False,
        min_len: int = 0,
        max_len: Optional[int] = None,
        allow_blank: bool = False,
        upper: bool = False,
        lower: bool = False,
    ) -> "PayloadValidator":
        value = self._get(field)
        if self._missing(field, value, required):
            return self
        if not isinstance(value, str):
            self._fail(field, f"{field} must be a string")
            return self
        value = value.strip()
        if not value:
            if allow_blank and not required:
                self.cleaned[target or field] = ""
            else:
                self._fail(field, f"{field} is not allowed to be empty")
            return self
        if len(value) < min_len:
            self._fail(field, f"{field} must be at least {min_len} characters long")
            return self
        if max_len is not None and len(value) > max_len:
            self._fail(field, f"{field} cannot exceed {max_len} characters")
            return self
        if upper:
            value = value.upper()
        if lower:
            value = value.lower()
        self.cleaned[target or field] = value
        return self

    def email(
        self, field: str, *, target: Optional[str] = None, required: bool = False, allow_blank: bool = False
    ) -> "PayloadValidator":
        value = self._get(field)
        if self._missing(field, value, required):
            return self
        if allow_blank and not required and isinstance(value, str) and not value.strip():
            self.cleaned[target or field] = ""
            return self
        if not isinstance(value, str) or not EMAIL_PATTERN.match(value.strip()):
            self._fail(field, "Please provide a valid email address")
            return self
        self.cleaned[target or field] = value.strip().lower()
        return self

    def time(self, field: str, *, target: Optional[str] = None, required: bool = False) -> "PayloadValidator":
        value = self._get(field)
        if self._missing(field, value, required):
            return self
        if not is_valid_hhmm(value):
            self._fail(field, f"{field} must be a valid time (HH:MM)")
            return self
        self.cleaned[target or field] = normalize_hhmm(value)
        return self

    def date(
        self,
        field: str,
        *,
        target: Optional[str] = None,
        required: bool = False,
        not_after: Optional[date] = None,
        not_after_message: str = "Cannot mark attendance for future dates",
    ) -> "PayloadValidator":
        value = self._get(field)
        if self._missing(field, value, required):
            return self
        try:
            parsed = parse_iso_date(value)
        except (TypeError, ValueError):
            self._fail(field, f"{field} must be a valid date (YYYY-MM-DD)")
            return self
        if not_after is not None and parsed > not_after:
            self._fail(field, not_after_message)
            return self
        self.cleaned[target or field] = parsed
        return self

    def enum(
        self,
        field: str,
        enum_cls: type[Enum],
        *,
        target: Optional[str] = None,
        required: bool = False,
        blank_as: Any = _MISSING,
    ) -> "PayloadValidator":
        value = self._get(field)
        if self._missing(field, value, required):
            return self
        if value == "" and blank_as is not _MISSING:
            self.cleaned[target or field] = blank_as
            return self
        try:
            self.cleaned[target or field] = enum_cls(value)
        except ValueError:
            allowed = ", ".join(m.value for m in enum_cls)
            self._fail(field, f"{field} must be one of [{allowed}]")
        return self

    def boolean(self, field: str, *, target: Optional[str] = None) -> "PayloadValidator":
        value = self._get(field)
        if self._missing(field, value, False):
            return self
        if not isinstance(value, bool):
            self._fail(field, f"{field} must be a boolean")
            return self
        self.cleaned[target or field] = value
        return self

    def number(
        self,
        field: str,
        *,
        target: Optional[str] = None,
        required: bool = False,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
        integer: bool = False,
    ) -> "PayloadValidator":
        value = self._get(field)
        if self._missing(field, value, required):
            return self
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            self._fail(field, f"{field} must be a number")
            return self
        if integer and int(value) != value:
            self._fail(field, f"{field} must be an integer")
            return self
        if minimum is not None and value < minimum:
            self._fail(field, f"{field} must be greater than or equal to {minimum:g}")
            return self
        if maximum is not None and value > maximum:
            self._fail(field, f"{field} must be less than or equal to {maximum:g}")
            return self
        self.cleaned[target or field] = int(value) if integer else value
        return self

    def hex_color(self, field: str, *, target: Optional[str] = None) -> "PayloadValidator":
        value = self._get(field)
        if self._missing(field, value, False):
            return self
        if not isinstance(value, str) or not HEX_COLOR_PATTERN.match(value):
            self._fail(field, "Please enter a valid hex color")
            return self
        self.cleaned[target or field] = value
        return self

    def nested(self, field: str, check, *, target: Optional[str] = None) -> "PayloadValidator":
        """Validate a sub-record with ``check(sub_validator)``; errors are prefixed with ``field.``."""
        value = self._get(field)
        if self._missing(field, value, False):
            return self
        if not isinstance(value, dict):
            self._fail(field, f"{field} must be an object")
            return self
        sub = PayloadValidator(value)
        check(sub)
        self._absorb(field, sub)
        if not sub.errors:
            self.cleaned[target or field] = sub.cleaned
        return self

    def items(self, field: str, check, *, target: Optional[str] = None) -> "PayloadValidator":
        """Validate a list of sub-records; errors are reported as ``field.<index>.<name>``."""
        value = self._get(field)
        if self._missing(field, value, False):
            return self
        if not isinstance(value, list):
            self._fail(field, f"{field} must be an array")
            return self
        out: list[dict] = []
        failed = False
        for index, item in enumerate(value):
            if not isinstance(item, dict):
                self._fail(f"{field}.{index}", f"{field}.{index} must be an object")
                failed = True
                continue
            sub = PayloadValidator(item)
            check(sub)
            if sub.errors:
                self._absorb(f"{field}.{index}", sub)
                failed = True
            else:
                out.append(sub.cleaned)
        if not failed:
            self.cleaned[target or field] = out
        return self

    def _absorb(self, prefix: str, sub: "PayloadValidator") -> None:
        for err in sub.errors:
            self.errors.append(FieldError(f"{prefix}.{err.field}", err.message))

    def validate(self, message: str = "Validation failed") -> dict:
        if self.errors:
            raise ValidationError(message, self.errors)
        return self.cleaned


def parse_pagination(args, *, default_limit: int, max_limit: int) -> tuple[int, int]:
    """Read page/limit query parameters (page >= 1, 1 <= limit <= max_limit)."""
    errors: list[FieldError] = []

    def _int(name: str, default: int) -> int:
        raw = args.get(name)
        if raw in (None, ""):
            return default
        try:
            return int(raw)
        except (TypeError, ValueError):
            errors.append(FieldError(name, f"{name} must be a number"))
            return default

    page = _int("page", 1)
    limit = _int("limit", default_limit)
    if page < 1:
        errors.append(FieldError("page", "page must be greater than or equal to 1"))
    if limit < 1 or limit > max_limit:
        errors.append(FieldError("limit", f"limit must be between 1 and {max_limit}"))
    if errors:
        raise ValidationError("Query validation failed", errors)
    return page, limit


def parse_sort(raw: Optional[str], allowed: dict[str, str], default: str) -> tuple[str, bool]:
    """'-date' -> ('date', True). ``allowed`` maps API field names to attribute names."""
    value = (raw or default).strip()
    descending = value.startswith("-")
    name = value.lstrip("-+")
    if name not in allowed:
        message = f"sort must be one of [{', '.join(sorted(allowed))}]"
        raise ValidationError("Query validation failed", [FieldError("sort", message)])
    return allowed[name], descending


def plain(value: Any) -> Any:
    """Enum members and dates inside cleaned sub-records become their JSON representation."""
    if isinstance(value, dict):
        return {k: plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


def parse_id(value: Any) -> Optional[int]:
    """Record ids arrive as JSON numbers or numeric strings."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    return None
