from __future__ import annotations

import importlib
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv
from flask import Flask
from flask_socketio import SocketIO

from config import get_settings_module

from .app_logger import get_logger, setup_logging
from .common.datetime_utils import now_local
from .common.rate_limit import RateLimiter, install_rate_limit
from .common.responses import ok, register_error_handlers
from .container import Container, build_container
from .database.bootstrap import apply_schema, ensure_admin_user, list_tables
from .realtime.channel import Emitter, SocketIOEmitter
from .realtime.sockets import register_socket_handlers
from .dashboard.controller import register as register_dashboard
from .lectures.controller import register as register_lectures
from .subjects.controller import register as register_subjects
from .users.controller import register as register_users

logger = get_logger(__name__)

ContainerFactory = Callable[[Emitter], Container]


def create_app(
    *,
    settings_module: Optional[str] = None,
    container_factory: Optional[ContainerFactory] = None,
) -> Flask:
    """Build the Flask app and its SocketIO server.

    ``container_factory`` receives the socket emitter and returns a wired
    Container; tests pass one over in-memory repositories. Without it the
    MySQL container from the settings module is used.
    """
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    setup_logging(getattr(settings, "LOG_LEVEL", None))

    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    prefix = getattr(settings, "API_PREFIX", "/api")

    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    socketio = SocketIO(app, cors_allowed_origins=getattr(settings, "CORS_ORIGINS", "*"), async_mode="threading")
    emitter = SocketIOEmitter(socketio)

    if container_factory is not None:
        container = container_factory(emitter)
    else:
        if getattr(settings, "AUTO_INIT_DB", False):
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(db_config, schema_path=schema_path)
            logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))
        if getattr(settings, "AUTO_SEED_DB", False):
            ensure_admin_user(db_config, email=settings.ADMIN_EMAIL, password=settings.ADMIN_PASSWORD)
        container = build_container(
            db_config=db_config,
            emitter=emitter,
            jwt_secret=getattr(settings, "JWT_SECRET"),
            jwt_expires_days=int(getattr(settings, "JWT_EXPIRES_DAYS", 7)),
        )

    register_error_handlers(app)
    capacity, refill = getattr(settings, "RATE_LIMIT", (100, 100 / 900))
    install_rate_limit(app, RateLimiter(capacity=capacity, refill_rate=refill), prefix=prefix)

    @app.route(f"{prefix}/health", methods=["GET"], endpoint="health")
    def health():
        return ok(
            message="MarkIt API is running",
            timestamp=now_local().isoformat(),
            environment=settings_module.rsplit(".", 1)[-1],
            sockets={
                "users": container.channel.registry.user_count(),
                "connections": container.channel.registry.connection_count(),
            },
        )

    @app.route(prefix, methods=["GET"], endpoint="api_index")
    def api_index():
        return ok(
            message="Welcome to MarkIt API",
            version="1.0.0",
            endpoints={
                "auth": f"{prefix}/auth",
                "users": f"{prefix}/users",
                "subjects": f"{prefix}/subjects",
                "lectures": f"{prefix}/lectures",
                "dashboard": f"{prefix}/dashboard",
            },
        )

    register_users(app, container, prefix=prefix)
    register_subjects(app, container, prefix=prefix)
    register_lectures(app, container, prefix=prefix)
    register_dashboard(app, container, prefix=prefix)
    register_socket_handlers(socketio, container)

    app.extensions["markit.container"] = container
    app.extensions["markit.socketio"] = socketio
    return app
