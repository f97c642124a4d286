from __future__ import annotations

import threading
from typing import Any, Optional

from flask import request
from flask_socketio import ConnectionRefusedError, SocketIO, emit, join_room, leave_room

from ..app_logger import get_logger
from ..common.security import bearer_token
from ..container import Container
from ..core.enums import NotificationType
from ..core.exceptions import AuthenticationError
from . import events
from .channel import utc_timestamp

logger = get_logger(__name__)


def _handshake_token(auth: Any) -> Optional[str]:
    if isinstance(auth, dict) and auth.get("token"):
        return str(auth["token"])
    return bearer_token(request.headers.get("Authorization"))


def register_socket_handlers(socketio: SocketIO, container: Container) -> None:
    channel = container.channel
    names: dict[str, str] = {}
    names_lock = threading.Lock()

    def _identity() -> tuple[Optional[int], str]:
        sid = request.sid
        with names_lock:
            name = names.get(sid, "")
        return channel.registry.owner_of(sid), name

    @socketio.on("connect")
    def on_connect(auth=None):
        try:
            user = channel.connect(request.sid, _handshake_token(auth))
        except AuthenticationError as e:
            logger.info("Socket connection rejected: %s", e)
            raise ConnectionRefusedError(str(e))
        with names_lock:
            names[request.sid] = user.name

    @socketio.on("disconnect")
    def on_disconnect(*args):
        sid = request.sid
        user_id = channel.disconnect(sid)
        with names_lock:
            name = names.pop(sid, "")
        if user_id is not None:
            emit(
                events.USER_DISCONNECTED,
                {"userId": user_id, "userName": name, "timestamp": utc_timestamp()},
                broadcast=True,
                include_self=False,
            )

    @socketio.on("join_room")
    def on_join_room(room_id):
        user_id, name = _identity()
        room = str(room_id)
        join_room(room)
        emit(
            events.USER_JOINED,
            {"userId": user_id, "userName": name, "timestamp": utc_timestamp()},
            to=room,
            include_self=False,
        )

    @socketio.on("leave_room")
    def on_leave_room(room_id):
        user_id, name = _identity()
        room = str(room_id)
        leave_room(room)
        emit(
            events.USER_LEFT,
            {"userId": user_id, "userName": name, "timestamp": utc_timestamp()},
            to=room,
            include_self=False,
        )

    @socketio.on("attendance_update")
    def on_attendance_update(data):
        user_id, _ = _identity()
        if user_id is None:
            return
        payload = {**(data if isinstance(data, dict) else {}), "userId": user_id}
        channel.emit_to_others(user_id, request.sid, events.ATTENDANCE_UPDATED, payload)

    @socketio.on("lecture_created")
    def on_lecture_created(data):
        user_id, _ = _identity()
        if user_id is None:
            return
        data = data if isinstance(data, dict) else {}
        channel.emit_to_others(
            user_id,
            request.sid,
            events.LECTURE_NOTIFICATION,
            {
                "type": NotificationType.LECTURE_CREATED.value,
                "message": f'New lecture "{data.get("title")}" has been added',
                "data": data,
            },
        )

    @socketio.on("subject_updated")
    def on_subject_updated(data):
        user_id, _ = _identity()
        if user_id is None:
            return
        data = data if isinstance(data, dict) else {}
        channel.emit_to_others(
            user_id,
            request.sid,
            events.SUBJECT_NOTIFICATION,
            {
                "type": NotificationType.SUBJECT_UPDATED.value,
                "message": f'Subject "{data.get("name")}" has been updated',
                "data": data,
            },
        )

    @socketio.on("goal_achieved")
    def on_goal_achieved(data):
        data = data if isinstance(data, dict) else {}
        emit(
            events.ACHIEVEMENT,
            {
                "type": NotificationType.GOAL_ACHIEVED.value,
                "message": f"Congratulations! You've achieved {data.get('goal')}% attendance",
                "data": data,
                "timestamp": utc_timestamp(),
            },
        )

    @socketio.on("set_reminder")
    def on_set_reminder(data):
        data = data if isinstance(data, dict) else {}
        emit(
            events.REMINDER_SET,
            {
                "message": "Reminder set successfully",
                "lectureId": data.get("lectureId"),
                "reminderTime": data.get("reminderTime"),
                "timestamp": utc_timestamp(),
            },
        )

    @socketio.on("typing_start")
    def on_typing_start(data):
        user_id, name = _identity()
        room = (data or {}).get("roomId") if isinstance(data, dict) else None
        if room is None:
            return
        emit(
            events.USER_TYPING,
            {"userId": user_id, "userName": name, "timestamp": utc_timestamp()},
            to=str(room),
            include_self=False,
        )

    @socketio.on("typing_stop")
    def on_typing_stop(data):
        user_id, _ = _identity()
        room = (data or {}).get("roomId") if isinstance(data, dict) else None
        if room is None:
            return
        emit(
            events.USER_STOPPED_TYPING,
            {"userId": user_id, "timestamp": utc_timestamp()},
            to=str(room),
            include_self=False,
        )

    @socketio.on("update_status")
    def on_update_status(status):
        user_id, name = _identity()
        emit(
            events.USER_STATUS_UPDATED,
            {"userId": user_id, "userName": name, "status": status, "timestamp": utc_timestamp()},
            broadcast=True,
            include_self=False,
        )

    @socketio.on("ping")
    def on_ping(*args):
        emit(events.PONG, {"timestamp": utc_timestamp()})
