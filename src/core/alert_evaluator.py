"""Reminder eligibility — pure business logic.

Decides which tasks and calendar events owe an alert at a given instant and
what bookkeeping to write back once they fire. Also renders the notification
text for a fired entity.

No I/O: `now` is always passed in, so every rule can be tested without a
real clock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Generic, Sequence, TypeVar

from src.data.models import AlertRepeat, CalendarEvent, Task


# Events stop alerting this long after they end
EVENT_GRACE_WINDOW = timedelta(milliseconds=7_200_000)

_DEFAULT_TASK_EMAIL = "Scholar (Default)"
_DEFAULT_TASK_MOBILE = "Registered Mobile"
_DEFAULT_EVENT_EMAIL = "Scholar"
_DEFAULT_EVENT_MOBILE = "Mobile"

EntityT = TypeVar("EntityT", Task, CalendarEvent)


@dataclass(frozen=True)
class AlertPatch:
    """Bookkeeping written to an entity after its alert fires."""

    has_alerted: bool
    last_alerted_at: datetime


@dataclass
class AlertEvaluation(Generic[EntityT]):
    """Outcome of one poll: who fires, and the patch for each of them."""

    fired: list[EntityT] = field(default_factory=list)
    updates: dict[str, AlertPatch] = field(default_factory=dict)

    @property
    def fired_ids(self) -> list[str]:
        return [entity.id for entity in self.fired]


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


def is_repeat_due(entity: Task | CalendarEvent, now: datetime) -> bool:
    """Apply the one-shot / repeating rule, assuming the entity is in its window.

    A repeating entity that has never fired, or has no recorded fire time,
    counts as a first-time fire.
    """
    if entity.alert_repeat == AlertRepeat.ONCE:
        return not entity.has_alerted

    if not entity.has_alerted or entity.last_alerted_at is None:
        return True
    return now - entity.last_alerted_at >= entity.alert_repeat.interval


def is_task_due(task: Task, now: datetime) -> bool:
    """Check if a task owes an alert right now."""
    if task.completed:
        return False
    if task.due_date > now:
        return False
    return is_repeat_due(task, now)


def is_event_due(event: CalendarEvent, now: datetime) -> bool:
    """Check if a calendar event owes an alert right now.

    The window opens at start - alert_offset and closes two hours after
    the event ends, whether or not the event has ever fired.
    """
    if now < event.trigger_time:
        return False
    if now - event.end >= EVENT_GRACE_WINDOW:
        return False
    return is_repeat_due(event, now)


def _build_evaluation(fired: list[EntityT], now: datetime) -> AlertEvaluation[EntityT]:
    patch = AlertPatch(has_alerted=True, last_alerted_at=now)
    return AlertEvaluation(
        fired=fired,
        updates={entity.id: patch for entity in fired},
    )


def evaluate_tasks(tasks: Sequence[Task], now: datetime) -> AlertEvaluation[Task]:
    """Pick at most one task to fire this tick.

    Only the first eligible task (in collection order) fires, so alerts
    from several overdue tasks never overlap. The rest wait for later ticks.
    """
    for task in tasks:
        if is_task_due(task, now):
            return _build_evaluation([task], now)
    return AlertEvaluation()


def evaluate_events(
    events: Sequence[CalendarEvent], now: datetime,
) -> AlertEvaluation[CalendarEvent]:
    """Fire every eligible calendar event together in this tick."""
    due = [ev for ev in events if is_event_due(ev, now)]
    return _build_evaluation(due, now)


# ---------------------------------------------------------------------------
# Notification text
# ---------------------------------------------------------------------------


def _channel_lines(
    entity: Task | CalendarEvent, default_email: str, default_mobile: str, prefix: str = "",
) -> list[str]:
    lines = []
    if entity.notify_email:
        lines.append(f"📧 {prefix}Email sent to: {entity.alert_email or default_email}")
    if entity.notify_sms:
        lines.append(f"📱 {prefix}SMS sent to: {entity.alert_mobile or default_mobile}")
    return lines


def format_task_alert(task: Task) -> str:
    """Format the notification payload for a fired task."""
    lines = [f"🔔 Reminder: {task.title}"]
    if task.alert_repeat != AlertRepeat.ONCE:
        lines.append(f"(Repeating {task.alert_repeat.label} minutes)")
    lines.extend(_channel_lines(
        task, _DEFAULT_TASK_EMAIL, _DEFAULT_TASK_MOBILE, prefix="Simulated ",
    ))
    return "\n".join(lines)


def format_event_alert(event: CalendarEvent) -> str:
    """Format the notification payload for a fired calendar event."""
    if event.alert_offset > 0:
        headline = f"📅 Event Reminder: {event.title} (In {event.alert_offset} mins)"
    else:
        headline = f"📅 Event Reminder: {event.title} (Starting Now)"

    lines = [headline]
    if event.alert_repeat != AlertRepeat.ONCE:
        lines.append(f"(Repeating {event.alert_repeat.label} minutes)")
    lines.extend(_channel_lines(event, _DEFAULT_EVENT_EMAIL, _DEFAULT_EVENT_MOBILE))
    return "\n".join(lines)
