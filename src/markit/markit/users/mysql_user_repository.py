from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .model import User, default_preferences, default_profile
from .repository import UserRepository

_COLUMNS = (
    "user_id, name, email, password_hash, role, profile, preferences, attendance_goal, "
    "is_active, last_login, login_count, created_at"
)

# Attribute name -> column name, JSON columns flagged.
_UPDATABLE = {
    "name": ("name", False),
    "email": ("email", False),
    "password_hash": ("password_hash", False),
    "role": ("role", False),
    "profile": ("profile", True),
    "preferences": ("preferences", True),
    "attendance_goal": ("attendance_goal", False),
    "is_active": ("is_active", False),
}


def _to_user(row: dict) -> User:
    return User(
        user_id=int(row["user_id"]),
        name=row["name"],
        email=row["email"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        profile=load_json(row.get("profile"), default_profile()),
        preferences=load_json(row.get("preferences"), default_preferences()),
        attendance_goal=int(row.get("attendance_goal", 75)),
        is_active=bool(row.get("is_active", True)),
        last_login=row.get("last_login"),
        login_count=int(row.get("login_count") or 0),
        created_at=row.get("created_at"),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id=%s", (user_id,))
            row = fetchone(cur)
            return _to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE email=%s", (email.strip().lower(),))
            row = fetchone(cur)
            return _to_user(row) if row else None

    def create_user(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        role: Role,
        profile: dict,
        preferences: dict,
        attendance_goal: int,
    ) -> User:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(name, email, password_hash, role, profile, preferences, attendance_goal, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,%s,1)
                """,
                (name, email.lower(), password_hash, role.value, dump_json(profile), dump_json(preferences), attendance_goal),
            )
            user_id = int(cur.lastrowid)
        return self.get_by_id(user_id)

    def update_fields(self, user_id: int, fields: dict) -> Optional[User]:
        sets: list[str] = []
        params: list = []
        for attr, value in fields.items():
            if attr not in _UPDATABLE:
                continue
            column, is_json = _UPDATABLE[attr]
            if is_json:
                value = dump_json(value)
            elif isinstance(value, Role):
                value = value.value
            sets.append(f"{column}=%s")
            params.append(value)
        if sets:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(f"UPDATE users SET {', '.join(sets)} WHERE user_id=%s", (*params, user_id))
        return self.get_by_id(user_id)

    def record_login(self, user_id: int, *, at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE users SET last_login=%s, login_count=login_count+1 WHERE user_id=%s",
                (at, user_id),
            )

    def delete_by_id(self, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM users WHERE user_id=%s", (user_id,))
            return cur.rowcount > 0

    def list_users(self, *, search: Optional[str], offset: int, limit: int) -> tuple[Sequence[User], int]:
        where = ""
        params: list = []
        if search:
            where = "WHERE name LIKE %s OR email LIKE %s"
            like = f"%{search}%"
            params = [like, like]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM users {where}", tuple(params))
            total = int(fetchone(cur)["n"])
            cur.execute(
                f"SELECT {_COLUMNS} FROM users {where} ORDER BY created_at DESC LIMIT %s OFFSET %s",
                (*params, int(limit), int(offset)),
            )
            return [_to_user(r) for r in fetchall(cur)], total

    def count_users(self) -> dict:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS total, COALESCE(SUM(is_active), 0) AS active FROM users")
            row = fetchone(cur) or {}
            return {"totalUsers": int(row.get("total") or 0), "activeUsers": int(row.get("active") or 0)}

    def recent_users(self, limit: int) -> Sequence[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users ORDER BY created_at DESC LIMIT %s", (int(limit),))
            return [_to_user(r) for r in fetchall(cur)]
