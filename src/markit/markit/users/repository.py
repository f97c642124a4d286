from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import Role
from .model import User


class UserRepository(Protocol):
    """Repository interface for User.

    Note (DIP): services depend on this interface, never on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

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
        raise NotImplementedError

    def update_fields(self, user_id: int, fields: dict) -> Optional[User]:
        """Apply a partial update (keys are User attribute names); returns the fresh record."""
        raise NotImplementedError

    def record_login(self, user_id: int, *, at: datetime) -> None:
        raise NotImplementedError

    def delete_by_id(self, user_id: int) -> bool:
        raise NotImplementedError

    def list_users(self, *, search: Optional[str], offset: int, limit: int) -> tuple[Sequence[User], int]:
        raise NotImplementedError

    def count_users(self) -> dict:
        """{"totalUsers": n, "activeUsers": n}."""
        raise NotImplementedError

    def recent_users(self, limit: int) -> Sequence[User]:
        raise NotImplementedError
