from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .dashboard.service import DashboardService
from .database.connection import DBConfig, DatabaseConnection
from .lectures.mysql_lecture_repository import MySQLLectureRepository
from .lectures.repository import LectureRepository
from .lectures.service import LectureService
from .realtime.channel import Emitter, NotificationChannel, RoomRegistry
from .stats.service import StatisticsService
from .subjects.mysql_subject_repository import MySQLSubjectRepository
from .subjects.repository import SubjectRepository
from .subjects.service import SubjectService
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    users_repo: UserRepository
    subjects_repo: SubjectRepository
    lectures_repo: LectureRepository

    channel: NotificationChannel

    auth_service: AuthService
    user_service: UserService
    stats_service: StatisticsService
    subject_service: SubjectService
    lecture_service: LectureService
    dashboard_service: DashboardService


def assemble(
    *,
    users_repo: UserRepository,
    subjects_repo: SubjectRepository,
    lectures_repo: LectureRepository,
    emitter: Emitter,
    jwt_secret: str,
    jwt_expires_days: int = 7,
    conn: Optional[DatabaseConnection] = None,
) -> Container:
    """Wire services over the given repositories (MySQL in the app, in-memory in tests)."""
    stats_service = StatisticsService(subjects_repo, lectures_repo)
    auth_service = AuthService(users_repo, secret=jwt_secret, expires_days=jwt_expires_days)
    channel = NotificationChannel(RoomRegistry(), emitter, auth_service)

    lecture_service = LectureService(lectures_repo, subjects_repo, stats_service, channel)
    subject_service = SubjectService(subjects_repo, lectures_repo, users_repo, stats_service, channel)
    user_service = UserService(users_repo, subjects_repo, lectures_repo, stats_service, auth_service)
    dashboard_service = DashboardService(subjects_repo, lectures_repo, stats_service, lecture_service)

    return Container(
        conn=conn,
        users_repo=users_repo,
        subjects_repo=subjects_repo,
        lectures_repo=lectures_repo,
        channel=channel,
        auth_service=auth_service,
        user_service=user_service,
        stats_service=stats_service,
        subject_service=subject_service,
        lecture_service=lecture_service,
        dashboard_service=dashboard_service,
    )


def build_container(*, db_config: dict, emitter: Emitter, jwt_secret: str, jwt_expires_days: int = 7) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_settings(db_config))
    return assemble(
        users_repo=MySQLUserRepository(conn),
        subjects_repo=MySQLSubjectRepository(conn),
        lectures_repo=MySQLLectureRepository(conn),
        emitter=emitter,
        jwt_secret=jwt_secret,
        jwt_expires_days=jwt_expires_days,
        conn=conn,
    )
