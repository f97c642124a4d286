from __future__ import annotations

import pytest

from src.markit.markit.core.enums import NotificationType
from src.markit.markit.core.exceptions import AuthenticationError
from src.markit.markit.realtime import events
from src.markit.markit.realtime.channel import NotificationChannel, RoomRegistry
from src.markit.markit.users.service import AuthService


@pytest.fixture
def auth(users):
    return AuthService(users, secret="socket-secret")


@pytest.fixture
def channel(auth, emitter):
    return NotificationChannel(RoomRegistry(), emitter, auth)


def test_connect_joins_room_and_welcomes(channel, emitter, auth, student):
    user = channel.connect("sid-1", auth.issue_token(student.user_id))

    assert user.user_id == student.user_id
    assert channel.registry.connections(student.user_id) == ["sid-1"]
    [(event, payload)] = emitter.to("sid-1")
    assert event == events.CONNECTED
    assert payload["userId"] == student.user_id
    assert payload["message"] == events.WELCOME_MESSAGE
    assert "timestamp" in payload


@pytest.mark.parametrize(
    "token, message",
    [
        (None, "Authentication error: No token provided"),
        ("", "Authentication error: No token provided"),
        ("not-a-jwt", "Authentication error: Invalid token"),
    ],
)
def test_connect_rejects_bad_tokens(channel, token, message):
    with pytest.raises(AuthenticationError, match=message):
        channel.connect("sid-1", token)

    assert channel.registry.connection_count() == 0


def test_connect_rejects_inactive_user(channel, users, auth, student):
    token = auth.issue_token(student.user_id)
    users.update_fields(student.user_id, {"is_active": False})

    with pytest.raises(AuthenticationError):
        channel.connect("sid-1", token)


def test_emit_reaches_every_connection_of_the_user_only(channel, emitter, auth, users, student):
    other = users.add(email="other@example.com")
    channel.connect("a", auth.issue_token(student.user_id))
    channel.connect("b", auth.issue_token(student.user_id))
    channel.connect("c", auth.issue_token(other.user_id))

    delivered = channel.notify(student.user_id, NotificationType.LECTURE_CREATED, "New lecture", {"lectureId": 7})

    assert delivered == 2
    for sid in ("a", "b"):
        event, payload = emitter.to(sid)[-1]
        assert event == events.NOTIFICATION
        assert payload["type"] == "lecture_created"
        assert payload["data"] == {"lectureId": 7}
        assert "timestamp" in payload
    assert [e for e, _ in emitter.to("c")] == [events.CONNECTED]


def test_emit_to_offline_user_is_dropped(channel, emitter):
    assert channel.emit_to_user(99, events.ATTENDANCE_UPDATED, {"subjectId": 1}) == 0
    assert emitter.sent == []


def test_failing_socket_does_not_raise(channel, emitter, auth, student):
    emitter.failing.add("broken")
    channel.connect("ok", auth.issue_token(student.user_id))
    channel.registry.join(student.user_id, "broken")

    assert channel.emit_to_user(student.user_id, events.ATTENDANCE_UPDATED, {"subjectId": 1}) == 1


def test_emit_to_others_skips_origin(channel, emitter, auth, student):
    channel.connect("a", auth.issue_token(student.user_id))
    channel.connect("b", auth.issue_token(student.user_id))

    assert channel.emit_to_others(student.user_id, "a", events.ATTENDANCE_UPDATED, {"subjectId": 1}) == 1
    assert [e for e, _ in emitter.to("a")] == [events.CONNECTED]


def test_disconnect_removes_connection(channel, auth, student):
    channel.connect("a", auth.issue_token(student.user_id))
    channel.connect("b", auth.issue_token(student.user_id))

    assert channel.disconnect("a") == student.user_id
    assert channel.disconnect("a") is None
    assert channel.registry.connections(student.user_id) == ["b"]
    channel.disconnect("b")
    assert channel.registry.user_count() == 0
