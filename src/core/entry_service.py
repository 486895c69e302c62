"""
Scholar Planner — Entry Service.

UI-agnostic operations on tasks and calendar events: capture from free text
(single or bulk), recurring series, edits that reset alert state, completion
toggling, and silent cross-import between the two collections.

Every UI adapter calls these functions and renders the returned records in
its own way.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from dateutil.relativedelta import relativedelta

from src.core.parser import parse_lines
from src.data.models import (
    SILENT_SOUND,
    AlertRepeat,
    CalendarEvent,
    EventType,
    RecurrenceRule,
    Task,
    TaskPriority,
)
from src.data.store import new_id

if TYPE_CHECKING:
    from src.data.store import ReminderStore

logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 365
IMPORTED_EVENT_DURATION = timedelta(hours=1)

_RECURRENCE_STEPS = {
    RecurrenceRule.DAILY: relativedelta(days=1),
    RecurrenceRule.WEEKLY: relativedelta(days=7),
    RecurrenceRule.MONTHLY: relativedelta(months=1),
}


# ---------------------------------------------------------------------------
# Silent cross-import
# ---------------------------------------------------------------------------


def task_to_event(task: Task) -> CalendarEvent:
    """Build the calendar copy of a task with alerts permanently off.

    The copy is marked as already alerted, so the scheduler never picks it
    up and the user is not reminded twice for the same thing.
    """
    return CalendarEvent(
        id=f"evt-{task.id}",
        title=task.title,
        start=task.due_date,
        end=task.due_date + IMPORTED_EVENT_DURATION,
        event_type=EventType.ADMIN,
        description="Imported from Tasks",
        notify_email=False,
        notify_sms=False,
        alert_offset=0,
        alert_sound=SILENT_SOUND,
        has_alerted=True,
        alert_repeat=AlertRepeat.ONCE,
    )


def event_to_task(event: CalendarEvent) -> Task:
    """Build the task copy of a calendar event with alerts permanently off."""
    return Task(
        id=f"task-{event.id}",
        title=event.title,
        due_date=event.start,
        priority=TaskPriority.MEDIUM,
        notify_email=False,
        notify_sms=False,
        alert_email="",
        alert_mobile="",
        alarm_sound=SILENT_SOUND,
        has_alerted=True,
        alert_repeat=AlertRepeat.ONCE,
    )


def promote_task(store: ReminderStore, task_id: str) -> CalendarEvent:
    """Copy an existing task into the calendar."""
    event = task_to_event(store.get_task(task_id))
    return store.add_event(event)


def demote_event(store: ReminderStore, event_id: str) -> Task:
    """Copy an existing calendar event into the task list."""
    task = event_to_task(store.get_event(event_id))
    return store.add_task(task)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def create_task(
    store: ReminderStore,
    title: str,
    due_date: datetime,
    sync: bool = True,
    **prefs: Any,
) -> Task:
    """Create a task, and (by default) its silent calendar copy.

    Args:
        store: Target store.
        title: Task title, must not be blank.
        due_date: When the alarm is due.
        sync: Also add a silent calendar copy.
        **prefs: Any other Task field (priority, alarm_sound, alert_repeat...).

    Raises:
        ValueError: if the title is blank.
    """
    if not title.strip():
        raise ValueError("Task title is required")

    task = store.add_task(Task(id=new_id(), title=title.strip(), due_date=due_date, **prefs))
    if sync:
        store.add_event(task_to_event(task))
    return task


def create_tasks_from_text(
    store: ReminderStore,
    text: str,
    base_due: datetime,
    now: datetime | None = None,
    sync: bool = True,
    **prefs: Any,
) -> list[Task]:
    """Create one task per non-blank line of bulk text.

    Each line goes through the smart parser against the shared base due
    date, so "Call parents tomorrow 4pm" lands on its own date and time.
    All tasks share the same alert preferences.
    """
    parsed = parse_lines(text, base_due, now=now)
    if not parsed:
        raise ValueError("Please enter at least one task.")

    tasks = []
    for item in parsed:
        task = store.add_task(Task(
            id=new_id(),
            title=item.title or "Untitled Task",
            due_date=item.date,
            **prefs,
        ))
        tasks.append(task)

    if sync:
        for task in tasks:
            store.add_event(task_to_event(task))

    logger.info("Added %d tasks from bulk list", len(tasks))
    return tasks


def edit_task(
    store: ReminderStore,
    task_id: str,
    now: datetime | None = None,
    **changes: Any,
) -> Task:
    """Apply user edits to a task.

    Moving the due date clears last_alerted_at. If the new due date is in
    the future the task is also re-armed (has_alerted=False); moving an
    already-fired task into the past keeps it silent.
    """
    if now is None:
        now = datetime.now()

    task = store.get_task(task_id)
    new_due = changes.get("due_date", task.due_date)
    if new_due != task.due_date:
        changes["last_alerted_at"] = None
        if new_due > now:
            changes["has_alerted"] = False
        logger.debug("Task %s due date moved to %s", task_id, new_due)

    return store.update_task(task_id, **changes)


def toggle_complete(store: ReminderStore, task_id: str) -> Task:
    task = store.get_task(task_id)
    return store.update_task(task_id, completed=not task.completed)


# ---------------------------------------------------------------------------
# Calendar events
# ---------------------------------------------------------------------------


def expand_recurrence(
    start: datetime,
    end: datetime,
    rule: RecurrenceRule,
    until: datetime,
) -> list[tuple[datetime, datetime]]:
    """List (start, end) pairs for a recurring series.

    The series runs through the whole of `until`'s calendar day and is
    capped at MAX_OCCURRENCES. Monthly steps keep the original day of the
    month, clamped to shorter months.
    """
    step = _RECURRENCE_STEPS[RecurrenceRule(rule)]
    last_moment = until.replace(hour=23, minute=59, second=59, microsecond=999999)

    occurrences = []
    for i in range(MAX_OCCURRENCES):
        offset = step * i
        if start + offset > last_moment:
            break
        occurrences.append((start + offset, end + offset))
    return occurrences


def create_event(
    store: ReminderStore,
    title: str,
    start: datetime,
    end: datetime,
    recurrence_rule: RecurrenceRule | None = None,
    recurrence_end: datetime | None = None,
    sync: bool = True,
    **prefs: Any,
) -> list[CalendarEvent]:
    """Create a calendar event, or a whole recurring series.

    Returns every created event (one for a single event). With sync on,
    each event also gets a silent task copy.

    Raises:
        ValueError: blank title, end not after start, or a recurrence
                    rule without an end date (or with one before start).
    """
    if not title.strip():
        raise ValueError("Please provide an event title.")
    if end <= start:
        raise ValueError("End time must be after start time.")
    if recurrence_rule is not None and recurrence_end is None:
        raise ValueError("Please specify an end date for the recurring event.")
    if recurrence_rule is not None and recurrence_end.date() < start.date():
        raise ValueError("Recurrence end date must not be before the start.")

    if recurrence_rule is None:
        slots = [(start, end)]
    else:
        recurrence_rule = RecurrenceRule(recurrence_rule)
        slots = expand_recurrence(start, end, recurrence_rule, recurrence_end)

    events = [
        store.add_event(CalendarEvent(
            id=new_id(),
            title=title.strip(),
            start=slot_start,
            end=slot_end,
            recurrence_rule=recurrence_rule,
            **prefs,
        ))
        for slot_start, slot_end in slots
    ]

    if sync:
        for event in events:
            store.add_task(event_to_task(event))

    if len(events) > 1:
        logger.info("Added recurring schedule (%d events): %s", len(events), title)
    return events


def create_events_from_text(
    store: ReminderStore,
    text: str,
    base_start: datetime,
    base_end: datetime,
    now: datetime | None = None,
    sync: bool = True,
    **prefs: Any,
) -> list[CalendarEvent]:
    """Create one event per non-blank line of bulk text.

    Each line is parsed against base_start; every event keeps the base
    slot's duration. Bulk mode never creates recurring series.
    """
    if base_end <= base_start:
        raise ValueError("End time must be after start time.")

    parsed = parse_lines(text, base_start, now=now)
    if not parsed:
        raise ValueError("Please enter at least one valid event.")

    duration = base_end - base_start
    events = [
        store.add_event(CalendarEvent(
            id=new_id(),
            title=item.title or "Untitled Event",
            start=item.date,
            end=item.date + duration,
            **prefs,
        ))
        for item in parsed
    ]

    if sync:
        for event in events:
            store.add_task(event_to_task(event))

    logger.info("Added %d events via bulk list", len(events))
    return events


def edit_event(store: ReminderStore, event_id: str, **changes: Any) -> CalendarEvent:
    """Apply user edits to an event and re-arm its alert."""
    event = store.get_event(event_id)
    start = changes.get("start", event.start)
    end = changes.get("end", event.end)
    if end <= start:
        raise ValueError("End time must be after start time.")

    changes["has_alerted"] = False
    changes["last_alerted_at"] = None
    return store.update_event(event_id, **changes)
