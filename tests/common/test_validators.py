from __future__ import annotations

import pytest

from src.markit.markit.common.validators import PayloadValidator, parse_id, parse_pagination, parse_sort
from src.markit.markit.core.enums import Weekday
from src.markit.markit.core.exceptions import ValidationError


def test_collects_every_error():
    v = PayloadValidator({"name": "", "year": 1999, "color": "#12345"})
    v.string("name", required=True).number("year", minimum=2020).hex_color("color").time("start", required=True)

    with pytest.raises(ValidationError) as exc:
        v.validate()

    assert [e.field for e in exc.value.errors] == ["name", "year", "color", "start"]


def test_items_prefix_nested_errors():
    def check(sub):
        sub.enum("day", Weekday, required=True)

    v = PayloadValidator({"schedule": [{"day": "Monday"}, {"day": "Someday"}]}).items("schedule", check)

    assert [e.field for e in v.errors] == ["schedule.1.day"]


def test_parse_id():
    assert parse_id(5) == 5
    assert parse_id("12") == 12
    assert parse_id(True) is None
    assert parse_id(0) is None
    assert parse_id("abc") is None


def test_parse_pagination_bounds():
    assert parse_pagination({}, default_limit=10, max_limit=100) == (1, 10)
    with pytest.raises(ValidationError):
        parse_pagination({"page": "0", "limit": "500"}, default_limit=10, max_limit=100)


def test_parse_sort():
    allowed = {"date": "date", "createdAt": "created_at"}
    assert parse_sort("-createdAt", allowed, "-date") == ("created_at", True)
    assert parse_sort(None, allowed, "date") == ("date", False)
    with pytest.raises(ValidationError):
        parse_sort("password", allowed, "date")
