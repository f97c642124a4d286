"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_ATTENDANCE_GOAL = 75
DEFAULT_SUBJECT_COLOR = "#3b82f6"

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Placeholder slot used when mark-attendance creates a lecture.
PLACEHOLDER_START_TIME = "09:00"
PLACEHOLDER_END_TIME = "10:00"
PLACEHOLDER_TOPIC = "Regular class"

OVERVIEW_DEFAULT_DAYS = 30
OVERVIEW_TREND_WEEKS = 8
DEFAULT_TREND_WEEKS = 4
UPCOMING_DAYS = 7
UPCOMING_LIMIT = 10
RECENT_LECTURES_LIMIT = 5
SUBJECT_DETAIL_LECTURES_LIMIT = 20
SUBJECT_STATS_RECENT_LIMIT = 10
LOW_ATTENDANCE_LIMIT = 3
STREAK_DATES_LIMIT = 7

DEMO_LECTURES_PER_SUBJECT = 10
DEMO_PRESENT_PROBABILITY = 0.7
