from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..core.constants import DEFAULT_ATTENDANCE_GOAL
from ..core.enums import Role


def default_profile() -> dict:
    return {"avatar": "", "bio": "", "phone": "", "university": "", "department": "", "year": None}


def default_preferences() -> dict:
    return {
        "theme": "system",
        "language": "en",
        "notifications": {"email": True, "push": True, "reminders": True},
    }


@dataclass(frozen=True)
class User:
    """Domain entity: account + preferences.

    Note: plain data object; ``password_hash`` is never part of ``to_dict``.
    """

    user_id: int
    name: str
    email: str
    password_hash: str
    role: Role = Role.STUDENT
    profile: dict = field(default_factory=default_profile)
    preferences: dict = field(default_factory=default_preferences)
    attendance_goal: int = DEFAULT_ATTENDANCE_GOAL
    is_active: bool = True
    last_login: Optional[datetime] = None
    login_count: int = 0
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "profile": self.profile,
            "preferences": self.preferences,
            "attendanceGoal": self.attendance_goal,
            "isActive": self.is_active,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
            "loginCount": self.login_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
