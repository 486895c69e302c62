"""
Scholar Planner — Data Models.

Tasks and calendar events are the two reminder-bearing record types.
Both carry the same alert bookkeeping (has_alerted / last_alerted_at) that
the reminder scheduler reads and updates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

SOUND_PRESETS = ("chime", "beep", "bell")
SILENT_SOUND = "none"


class AlertRepeat(str, Enum):
    """How often an alert fires once it is due."""

    ONCE = "once"
    EVERY_3 = "every_3"
    EVERY_5 = "every_5"

    @property
    def interval(self) -> timedelta | None:
        """Minimum gap between two fires, or None for one-shot alerts."""
        return _REPEAT_INTERVALS.get(self)

    @property
    def label(self) -> str:
        # "every_3" -> "every 3"
        return self.value.replace("_", " ")


_REPEAT_INTERVALS = {
    AlertRepeat.EVERY_3: timedelta(milliseconds=180_000),
    AlertRepeat.EVERY_5: timedelta(milliseconds=300_000),
}


class TaskPriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class EventType(str, Enum):
    CLASS = "class"
    MEETING = "meeting"
    ADMIN = "admin"
    PERSONAL = "personal"


class RecurrenceRule(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass
class Task:
    """A to-do item with a due time and an alarm.

    The alert trigger instant is the due date itself.
    """

    id: str
    title: str
    due_date: datetime
    completed: bool = False
    priority: TaskPriority = TaskPriority.MEDIUM
    notify_email: bool = False
    notify_sms: bool = False
    alert_email: str = ""
    alert_mobile: str = ""
    alarm_sound: str = "chime"         # preset key, "none", or an opaque sound reference
    has_alerted: bool = False
    alert_repeat: AlertRepeat = AlertRepeat.ONCE
    last_alerted_at: datetime | None = None


@dataclass
class CalendarEvent:
    """A calendar slot that alerts `alert_offset` minutes before it starts."""

    id: str
    title: str
    start: datetime
    end: datetime
    event_type: EventType = EventType.MEETING
    description: str = ""
    notify_email: bool = False
    notify_sms: bool = False
    alert_email: str = ""
    alert_mobile: str = ""
    alert_offset: int = 0              # minutes before start
    alert_sound: str = "chime"
    has_alerted: bool = False
    alert_repeat: AlertRepeat = AlertRepeat.ONCE
    last_alerted_at: datetime | None = None
    recurrence_rule: RecurrenceRule | None = None

    @property
    def trigger_time(self) -> datetime:
        return self.start - timedelta(minutes=self.alert_offset)
