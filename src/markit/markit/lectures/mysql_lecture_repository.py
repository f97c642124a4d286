from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Sequence

from ..core.enums import ExamType, LectureStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_date, db_cursor, dump_json, fetchall, fetchone, load_json, placeholders
from .model import Lecture, LectureQuery
from .repository import LectureRepository

_COLUMNS = (
    "lecture_id, user_id, subject_id, title, topic, description, lecture_date, start_time, end_time, duration, "
    "room, status, notes, materials, assignments, is_important, is_exam, exam_type, created_at, updated_at"
)

_UPDATABLE = {
    "title": ("title", False),
    "topic": ("topic", False),
    "description": ("description", False),
    "date": ("lecture_date", False),
    "start_time": ("start_time", False),
    "end_time": ("end_time", False),
    "duration": ("duration", False),
    "room": ("room", False),
    "status": ("status", False),
    "notes": ("notes", False),
    "materials": ("materials", True),
    "assignments": ("assignments", True),
    "is_important": ("is_important", False),
    "is_exam": ("is_exam", False),
    "exam_type": ("exam_type", False),
}

_SORT_COLUMNS = {
    "date": "lecture_date",
    "created_at": "created_at",
    "title": "title",
    "status": "status",
    "start_time": "start_time",
}


def _to_lecture(row: dict) -> Lecture:
    exam_type = row.get("exam_type")
    return Lecture(
        lecture_id=int(row["lecture_id"]),
        user_id=int(row["user_id"]),
        subject_id=int(row["subject_id"]),
        title=row["title"],
        topic=row["topic"],
        description=row.get("description"),
        date=as_date(row["lecture_date"]),
        start_time=row["start_time"],
        end_time=row["end_time"],
        duration=int(row.get("duration") or 0),
        room=row.get("room"),
        status=LectureStatus(row["status"]),
        notes=row.get("notes"),
        materials=load_json(row.get("materials"), []),
        assignments=load_json(row.get("assignments"), []),
        is_important=bool(row.get("is_important")),
        is_exam=bool(row.get("is_exam")),
        exam_type=ExamType(exam_type) if exam_type else None,
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _assignments(fields: dict) -> tuple[list[str], list]:
    columns: list[str] = []
    params: list = []
    for attr, value in fields.items():
        if attr not in _UPDATABLE:
            continue
        column, is_json = _UPDATABLE[attr]
        if is_json:
            value = dump_json(value)
        elif isinstance(value, (LectureStatus, ExamType)):
            value = value.value
        columns.append(column)
        params.append(value)
    return columns, params


class MySQLLectureRepository(LectureRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _one(self, sql: str, params: tuple) -> Optional[Lecture]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            row = fetchone(cur)
            return _to_lecture(row) if row else None

    def _many(self, sql: str, params: tuple) -> list[Lecture]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [_to_lecture(r) for r in fetchall(cur)]

    def get_by_id(self, lecture_id: int) -> Optional[Lecture]:
        return self._one(f"SELECT {_COLUMNS} FROM lectures WHERE lecture_id=%s", (lecture_id,))

    def get_for_user(self, user_id: int, lecture_id: int) -> Optional[Lecture]:
        return self._one(
            f"SELECT {_COLUMNS} FROM lectures WHERE lecture_id=%s AND user_id=%s",
            (lecture_id, user_id),
        )

    def find_slot(self, *, subject_id: int, lecture_date: date, start_time: str) -> Optional[Lecture]:
        return self._one(
            f"SELECT {_COLUMNS} FROM lectures WHERE subject_id=%s AND lecture_date=%s AND start_time=%s LIMIT 1",
            (subject_id, lecture_date, start_time),
        )

    def find_for_subject_on_date(self, *, user_id: int, subject_id: int, lecture_date: date) -> Optional[Lecture]:
        return self._one(
            f"""
            SELECT {_COLUMNS} FROM lectures
            WHERE user_id=%s AND subject_id=%s AND lecture_date=%s
            ORDER BY start_time ASC
            LIMIT 1
            """,
            (user_id, subject_id, lecture_date),
        )

    def create(self, *, user_id: int, subject_id: int, fields: dict) -> Lecture:
        columns, params = _assignments(fields)
        columns = ["user_id", "subject_id", *columns]
        params = [user_id, subject_id, *params]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO lectures({', '.join(columns)}) VALUES({placeholders(len(columns))})",
                tuple(params),
            )
            lecture_id = int(cur.lastrowid)
        return self.get_by_id(lecture_id)

    def update_fields(self, lecture_id: int, fields: dict) -> Optional[Lecture]:
        columns, params = _assignments(fields)
        if columns:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"UPDATE lectures SET {', '.join(c + '=%s' for c in columns)} WHERE lecture_id=%s",
                    (*params, lecture_id),
                )
        return self.get_by_id(lecture_id)

    def delete(self, lecture_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM lectures WHERE lecture_id=%s", (lecture_id,))
            return cur.rowcount > 0

    def list_for_subject(self, subject_id: int, *, limit: Optional[int] = None) -> Sequence[Lecture]:
        sql = f"SELECT {_COLUMNS} FROM lectures WHERE subject_id=%s ORDER BY lecture_date DESC, start_time DESC"
        params: tuple = (subject_id,)
        if limit is not None:
            sql += " LIMIT %s"
            params = (subject_id, int(limit))
        return self._many(sql, params)

    def list_for_user(
        self,
        user_id: int,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        subject_id: Optional[int] = None,
        statuses: Optional[Iterable[LectureStatus]] = None,
    ) -> Sequence[Lecture]:
        where = ["user_id=%s"]
        params: list = [user_id]
        if start is not None:
            where.append("lecture_date>=%s")
            params.append(start)
        if end is not None:
            where.append("lecture_date<=%s")
            params.append(end)
        if subject_id is not None:
            where.append("subject_id=%s")
            params.append(subject_id)
        if statuses is not None:
            values = [s.value for s in statuses]
            if not values:
                return []
            where.append(f"status IN ({placeholders(len(values))})")
            params += values
        return self._many(
            f"SELECT {_COLUMNS} FROM lectures WHERE {' AND '.join(where)} ORDER BY lecture_date ASC, start_time ASC",
            tuple(params),
        )

    def search(self, user_id: int, query: LectureQuery, *, offset: int, limit: int) -> tuple[Sequence[Lecture], int]:
        where = ["user_id=%s"]
        params: list = [user_id]
        if query.search:
            like = f"%{query.search}%"
            where.append("(title LIKE %s OR topic LIKE %s OR notes LIKE %s)")
            params += [like, like, like]
        if query.subject_id is not None:
            where.append("subject_id=%s")
            params.append(query.subject_id)
        if query.status is not None:
            where.append("status=%s")
            params.append(query.status.value)
        if query.start is not None:
            where.append("lecture_date>=%s")
            params.append(query.start)
        if query.end is not None:
            where.append("lecture_date<=%s")
            params.append(query.end)
        clause = " AND ".join(where)
        order = _SORT_COLUMNS.get(query.sort_key, "lecture_date")
        direction = "DESC" if query.descending else "ASC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM lectures WHERE {clause}", tuple(params))
            total = int(fetchone(cur)["n"])
            cur.execute(
                f"SELECT {_COLUMNS} FROM lectures WHERE {clause} "
                f"ORDER BY {order} {direction}, lecture_id {direction} LIMIT %s OFFSET %s",
                (*params, int(limit), int(offset)),
            )
            return [_to_lecture(r) for r in fetchall(cur)], total

    def count_for_subject(self, subject_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS n FROM lectures WHERE subject_id=%s", (subject_id,))
            return int(fetchone(cur)["n"])

    def delete_for_user(self, user_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM lectures WHERE user_id=%s", (user_id,))
            return int(cur.rowcount)

    def count_all(self) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS n FROM lectures")
            return int(fetchone(cur)["n"])
