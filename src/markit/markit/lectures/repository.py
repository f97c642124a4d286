from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import LectureStatus
from .model import Lecture, LectureQuery


class LectureRepository(Protocol):
    def get_by_id(self, lecture_id: int) -> Optional[Lecture]:
        raise NotImplementedError

    def get_for_user(self, user_id: int, lecture_id: int) -> Optional[Lecture]:
        raise NotImplementedError

    def find_slot(self, *, subject_id: int, lecture_date: date, start_time: str) -> Optional[Lecture]:
        """Lecture occupying (subject, date, start time), if any."""
        raise NotImplementedError

    def find_for_subject_on_date(self, *, user_id: int, subject_id: int, lecture_date: date) -> Optional[Lecture]:
        raise NotImplementedError

    def create(self, *, user_id: int, subject_id: int, fields: dict) -> Lecture:
        raise NotImplementedError

    def update_fields(self, lecture_id: int, fields: dict) -> Optional[Lecture]:
        raise NotImplementedError

    def delete(self, lecture_id: int) -> bool:
        raise NotImplementedError

    def list_for_subject(self, subject_id: int, *, limit: Optional[int] = None) -> Sequence[Lecture]:
        """Newest first."""
        raise NotImplementedError

    def list_for_user(
        self,
        user_id: int,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        subject_id: Optional[int] = None,
        statuses: Optional[Iterable[LectureStatus]] = None,
    ) -> Sequence[Lecture]:
        """All matching lectures ordered by (date, start_time) ascending; bounds are inclusive."""
        raise NotImplementedError

    def search(self, user_id: int, query: LectureQuery, *, offset: int, limit: int) -> tuple[Sequence[Lecture], int]:
        raise NotImplementedError

    def count_for_subject(self, subject_id: int) -> int:
        raise NotImplementedError

    def delete_for_user(self, user_id: int) -> int:
        raise NotImplementedError

    def count_all(self) -> int:
        raise NotImplementedError
