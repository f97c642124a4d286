from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Subject, SubjectQuery


class SubjectRepository(Protocol):
    def get_by_id(self, subject_id: int) -> Optional[Subject]:
        raise NotImplementedError

    def get_for_user(self, user_id: int, subject_id: int) -> Optional[Subject]:
        raise NotImplementedError

    def find_active_by_name(self, user_id: int, name: str, *, exclude_id: Optional[int] = None) -> Optional[Subject]:
        raise NotImplementedError

    def create(self, *, user_id: int, fields: dict) -> Subject:
        """``fields`` uses Subject attribute names (name, code, schedule, ...)."""
        raise NotImplementedError

    def update_fields(self, subject_id: int, fields: dict) -> Optional[Subject]:
        raise NotImplementedError

    def update_stats(self, subject_id: int, *, total: int, attended: int, percentage: int) -> bool:
        """Overwrite the cached rollup; False when the subject no longer exists."""
        raise NotImplementedError

    def delete(self, subject_id: int) -> bool:
        raise NotImplementedError

    def search(self, user_id: int, query: SubjectQuery, *, offset: int, limit: int) -> tuple[Sequence[Subject], int]:
        raise NotImplementedError

    def list_for_user(self, user_id: int, *, active_only: bool = False) -> Sequence[Subject]:
        raise NotImplementedError

    def delete_for_user(self, user_id: int) -> int:
        raise NotImplementedError

    def count_all(self) -> int:
        raise NotImplementedError
