from __future__ import annotations

from typing import Optional, Sequence

from ..core.constants import DEFAULT_SUBJECT_COLOR
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, placeholders
from .model import Subject, SubjectQuery
from .repository import SubjectRepository

_COLUMNS = (
    "subject_id, user_id, name, code, description, instructor, schedule, semester, year, color, is_active, "
    "total_lectures, attended_lectures, attendance_percentage, created_at, updated_at"
)

_UPDATABLE = {
    "name": ("name", False),
    "code": ("code", False),
    "description": ("description", False),
    "instructor": ("instructor", True),
    "schedule": ("schedule", True),
    "semester": ("semester", False),
    "year": ("year", False),
    "color": ("color", False),
    "is_active": ("is_active", False),
}

_SORT_COLUMNS = {
    "created_at": "created_at",
    "name": "name",
    "code": "code",
    "attendance_percentage": "attendance_percentage",
}


def _to_subject(row: dict) -> Subject:
    return Subject(
        subject_id=int(row["subject_id"]),
        user_id=int(row["user_id"]),
        name=row["name"],
        code=row.get("code"),
        description=row.get("description"),
        instructor=load_json(row.get("instructor"), {}),
        schedule=load_json(row.get("schedule"), []),
        semester=row.get("semester"),
        year=row.get("year"),
        color=row.get("color") or DEFAULT_SUBJECT_COLOR,
        is_active=bool(row.get("is_active", True)),
        total_lectures=int(row.get("total_lectures") or 0),
        attended_lectures=int(row.get("attended_lectures") or 0),
        attendance_percentage=int(row.get("attendance_percentage") or 0),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _assignments(fields: dict) -> tuple[list[str], list]:
    sets: list[str] = []
    params: list = []
    for attr, value in fields.items():
        if attr not in _UPDATABLE:
            continue
        column, is_json = _UPDATABLE[attr]
        sets.append(column)
        params.append(dump_json(value) if is_json else value)
    return sets, params


class MySQLSubjectRepository(SubjectRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, subject_id: int) -> Optional[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM subjects WHERE subject_id=%s", (subject_id,))
            row = fetchone(cur)
            return _to_subject(row) if row else None

    def get_for_user(self, user_id: int, subject_id: int) -> Optional[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM subjects WHERE subject_id=%s AND user_id=%s",
                (subject_id, user_id),
            )
            row = fetchone(cur)
            return _to_subject(row) if row else None

    def find_active_by_name(self, user_id: int, name: str, *, exclude_id: Optional[int] = None) -> Optional[Subject]:
        sql = f"SELECT {_COLUMNS} FROM subjects WHERE user_id=%s AND name=%s AND is_active=1"
        params: list = [user_id, name]
        if exclude_id is not None:
            sql += " AND subject_id<>%s"
            params.append(exclude_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql + " LIMIT 1", tuple(params))
            row = fetchone(cur)
            return _to_subject(row) if row else None

    def create(self, *, user_id: int, fields: dict) -> Subject:
        columns, params = _assignments(fields)
        columns = ["user_id", *columns]
        params = [user_id, *params]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO subjects({', '.join(columns)}) VALUES({placeholders(len(columns))})",
                tuple(params),
            )
            subject_id = int(cur.lastrowid)
        return self.get_by_id(subject_id)

    def update_fields(self, subject_id: int, fields: dict) -> Optional[Subject]:
        columns, params = _assignments(fields)
        if columns:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"UPDATE subjects SET {', '.join(c + '=%s' for c in columns)} WHERE subject_id=%s",
                    (*params, subject_id),
                )
        return self.get_by_id(subject_id)

    def update_stats(self, subject_id: int, *, total: int, attended: int, percentage: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE subjects
                SET total_lectures=%s, attended_lectures=%s, attendance_percentage=%s
                WHERE subject_id=%s
                """,
                (total, attended, percentage, subject_id),
            )
            # rowcount is 0 for an unchanged row too, so confirm existence separately.
            if cur.rowcount > 0:
                return True
            cur.execute("SELECT 1 AS found FROM subjects WHERE subject_id=%s", (subject_id,))
            return fetchone(cur) is not None

    def delete(self, subject_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM subjects WHERE subject_id=%s", (subject_id,))
            return cur.rowcount > 0

    def search(self, user_id: int, query: SubjectQuery, *, offset: int, limit: int) -> tuple[Sequence[Subject], int]:
        where = "WHERE user_id=%s"
        params: list = [user_id]
        if query.search:
            like = f"%{query.search}%"
            where += (
                " AND (name LIKE %s OR code LIKE %s"
                " OR JSON_UNQUOTE(JSON_EXTRACT(instructor, '$.name')) LIKE %s)"
            )
            params += [like, like, like]
        order = _SORT_COLUMNS.get(query.sort_key, "created_at")
        direction = "DESC" if query.descending else "ASC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM subjects {where}", tuple(params))
            total = int(fetchone(cur)["n"])
            cur.execute(
                f"SELECT {_COLUMNS} FROM subjects {where} ORDER BY {order} {direction} LIMIT %s OFFSET %s",
                (*params, int(limit), int(offset)),
            )
            return [_to_subject(r) for r in fetchall(cur)], total

    def list_for_user(self, user_id: int, *, active_only: bool = False) -> Sequence[Subject]:
        sql = f"SELECT {_COLUMNS} FROM subjects WHERE user_id=%s"
        if active_only:
            sql += " AND is_active=1"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql + " ORDER BY created_at ASC, subject_id ASC", (user_id,))
            return [_to_subject(r) for r in fetchall(cur)]

    def delete_for_user(self, user_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM subjects WHERE user_id=%s", (user_id,))
            return int(cur.rowcount)

    def count_all(self) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS n FROM subjects")
            return int(fetchone(cur)["n"])
