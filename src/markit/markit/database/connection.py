from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

import mysql.connector

CONNECT_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class DBConfig:
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str = "markit"

    @classmethod
    def from_settings(cls, db_config: dict[str, Any]) -> "DBConfig":
        """Build from a settings ``DB_CONFIG`` dict; missing keys keep the defaults."""
        known = {k: db_config[k] for k in ("host", "user", "password", "database") if db_config.get(k) is not None}
        if db_config.get("port") is not None:
            known["port"] = int(db_config["port"])
        return cls(**known)

    def connect_kwargs(self, *, with_database: bool = True) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "charset": "utf8mb4",
            "use_pure": True,
            "connection_timeout": CONNECT_TIMEOUT_SECONDS,
        }
        if with_database:
            kwargs["database"] = self.database
        return kwargs


class DatabaseConnection:
    """Hands out short-lived MySQL connections, one factory per distinct config."""

    _instances: ClassVar[dict[DBConfig, "DatabaseConnection"]] = {}

    def __init__(self, config: DBConfig):
        self.config = config

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if config not in cls._instances:
            cls._instances[config] = cls(config)
        return cls._instances[config]

    def connect(self, *, with_database: bool = True):
        return mysql.connector.connect(**self.config.connect_kwargs(with_database=with_database))
