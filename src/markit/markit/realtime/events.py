"""Socket event names shared by the channel, the socket handlers and the services."""

CONNECTED = "connected"
NOTIFICATION = "notification"
ATTENDANCE_UPDATED = "attendance_updated"
LECTURE_NOTIFICATION = "lecture_notification"
SUBJECT_NOTIFICATION = "subject_notification"
ACHIEVEMENT = "achievement"
REMINDER_SET = "reminder_set"
USER_JOINED = "user_joined"
USER_LEFT = "user_left"
USER_TYPING = "user_typing"
USER_STOPPED_TYPING = "user_stopped_typing"
USER_STATUS_UPDATED = "user_status_updated"
USER_DISCONNECTED = "user_disconnected"
PONG = "pong"

WELCOME_MESSAGE = "Connected to MarkIt real-time server"
