from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from ..app_logger import get_logger
from ..core.enums import NotificationType
from ..core.exceptions import AuthenticationError, DomainError
from ..users.model import User
from . import events

logger = get_logger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Emitter(Protocol):
    """Transport that delivers one event to one connection."""

    def emit(self, event: str, payload: dict, *, to: str) -> None: ...


class TokenResolver(Protocol):
    def decode_token(self, token: str) -> int: ...

    def active_user(self, user_id: int) -> Optional[User]: ...


class Notifier(Protocol):
    """What the services need from the channel."""

    def notify(self, user_id: int, type_: NotificationType, message: str, data: Any = None) -> int: ...

    def emit_to_user(self, user_id: int, event: str, payload: dict) -> int: ...


class SocketIOEmitter:
    """Adapts a flask_socketio.SocketIO server to the Emitter protocol."""

    def __init__(self, socketio):
        self._socketio = socketio

    def emit(self, event: str, payload: dict, *, to: str) -> None:
        self._socketio.emit(event, payload, to=to)


class RoomRegistry:
    """User id -> live connection ids.

    Transient routing table; it is empty after a restart and clients re-run the handshake.
    """

    def __init__(self) -> None:
        self._rooms: dict[int, set[str]] = {}
        self._owners: dict[str, int] = {}
        self._lock = threading.Lock()

    def join(self, user_id: int, sid: str) -> None:
        with self._lock:
            self._rooms.setdefault(user_id, set()).add(sid)
            self._owners[sid] = user_id

    def leave(self, sid: str) -> Optional[int]:
        with self._lock:
            user_id = self._owners.pop(sid, None)
            if user_id is None:
                return None
            sids = self._rooms.get(user_id)
            if sids is not None:
                sids.discard(sid)
                if not sids:
                    del self._rooms[user_id]
            return user_id

    def owner_of(self, sid: str) -> Optional[int]:
        with self._lock:
            return self._owners.get(sid)

    def connections(self, user_id: int) -> list[str]:
        with self._lock:
            return sorted(self._rooms.get(user_id, ()))

    def user_count(self) -> int:
        with self._lock:
            return len(self._rooms)

    def connection_count(self) -> int:
        with self._lock:
            return len(self._owners)


class NotificationChannel:
    """User-scoped fan-out: every event for a user goes to each of their live connections.

    Delivery is at-most-once. Nothing is queued for offline users and no
    emission error ever reaches the caller.
    """

    def __init__(self, registry: RoomRegistry, emitter: Emitter, auth: TokenResolver):
        self._registry = registry
        self._emitter = emitter
        self._auth = auth

    @property
    def registry(self) -> RoomRegistry:
        return self._registry

    def authenticate(self, token: Optional[str]) -> User:
        if not token:
            raise AuthenticationError("Authentication error: No token provided")
        try:
            user_id = self._auth.decode_token(token)
        except DomainError as e:
            raise AuthenticationError("Authentication error: Invalid token") from e
        user = self._auth.active_user(user_id)
        if user is None:
            raise AuthenticationError("Authentication error: User not found or inactive")
        return user

    def connect(self, sid: str, token: Optional[str]) -> User:
        user = self.authenticate(token)
        self._registry.join(user.user_id, sid)
        logger.info("Socket %s connected for user %s", sid, user.user_id)
        self._send(
            sid,
            events.CONNECTED,
            {"message": events.WELCOME_MESSAGE, "userId": user.user_id, "timestamp": utc_timestamp()},
        )
        return user

    def disconnect(self, sid: str) -> Optional[int]:
        user_id = self._registry.leave(sid)
        if user_id is not None:
            logger.info("Socket %s disconnected for user %s", sid, user_id)
        return user_id

    def emit_to_user(self, user_id: int, event: str, payload: dict) -> int:
        return self._fan_out(self._registry.connections(user_id), event, payload)

    def emit_to_others(self, user_id: int, sid: str, event: str, payload: dict) -> int:
        """Send to the user's connections except ``sid`` (the originating socket)."""
        return self._fan_out([s for s in self._registry.connections(user_id) if s != sid], event, payload)

    def notify(self, user_id: int, type_: NotificationType, message: str, data: Any = None) -> int:
        payload = {"type": type_.value, "message": message}
        if data is not None:
            payload["data"] = data
        return self.emit_to_user(user_id, events.NOTIFICATION, payload)

    def _fan_out(self, sids: list[str], event: str, payload: dict) -> int:
        if not sids:
            logger.debug("No live connections for %s", event)
            return 0
        message = {**payload, "timestamp": utc_timestamp()}
        return sum(1 for sid in sids if self._send(sid, event, message))

    def _send(self, sid: str, event: str, payload: dict) -> bool:
        try:
            self._emitter.emit(event, payload, to=sid)
            return True
        except Exception as e:
            logger.error("Error emitting %s to %s: %s", event, sid, e)
            return False
