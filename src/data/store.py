"""
Scholar Planner — Reminder Store.

Holds the live task and calendar-event collections for the running process.
Collections keep insertion order, which is also the order the reminder
scheduler walks them in.

Writes are targeted: every mutation names the records it touches, so a
scheduler tick that applies alert bookkeeping never overwrites a user edit
made to some other record in the meantime.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import fields, replace
from typing import TYPE_CHECKING, Any

from src.data.models import CalendarEvent, Task

if TYPE_CHECKING:
    from src.core.alert_evaluator import AlertPatch

logger = logging.getLogger(__name__)


def new_id() -> str:
    """Return a short opaque identifier."""
    return uuid.uuid4().hex[:8]


class _Collection:
    """Ordered, id-keyed collection of one record type."""

    def __init__(self, kind: str, record_type: type) -> None:
        self._kind = kind
        self._allowed = {f.name for f in fields(record_type)} - {"id"}
        self._items: dict[str, Any] = {}

    def add(self, record: Any) -> Any:
        if record.id in self._items:
            raise ValueError(f"Duplicate {self._kind} id: {record.id}")
        self._items[record.id] = record
        return record

    def get(self, record_id: str) -> Any:
        try:
            return self._items[record_id]
        except KeyError:
            raise KeyError(f"No {self._kind} with id {record_id!r}") from None

    def values(self) -> list[Any]:
        return list(self._items.values())

    def update(self, record_id: str, changes: dict[str, Any]) -> Any:
        unknown = set(changes) - self._allowed
        if unknown:
            raise ValueError(f"Unknown {self._kind} fields: {sorted(unknown)}")
        updated = replace(self.get(record_id), **changes)
        self._items[record_id] = updated
        return updated

    def delete(self, record_id: str) -> Any:
        record = self.get(record_id)
        del self._items[record_id]
        return record

    def clear(self) -> int:
        count = len(self._items)
        self._items.clear()
        return count

    def apply_alerts(self, updates: dict[str, AlertPatch]) -> list[str]:
        """Apply alert patches to the records that still exist."""
        applied = []
        for record_id, patch in updates.items():
            record = self._items.get(record_id)
            if record is None:
                logger.debug("Skipping alert patch for removed %s %s", self._kind, record_id)
                continue
            self._items[record_id] = replace(
                record,
                has_alerted=patch.has_alerted,
                last_alerted_at=patch.last_alerted_at,
            )
            applied.append(record_id)
        return applied


class ReminderStore:
    """In-memory store for tasks and calendar events.

    Records are immutable snapshots from the caller's point of view: every
    update swaps in a new dataclass instance, so a list returned by
    list_tasks() / list_events() is safe to evaluate while edits continue.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tasks = _Collection("task", Task)
        self._events = _Collection("event", CalendarEvent)

    # -- Tasks ---------------------------------------------------------------

    def add_task(self, task: Task) -> Task:
        with self._lock:
            self._tasks.add(task)
        logger.info("Added task %s: %s", task.id, task.title)
        return task

    def get_task(self, task_id: str) -> Task:
        with self._lock:
            return self._tasks.get(task_id)

    def list_tasks(self) -> list[Task]:
        with self._lock:
            return self._tasks.values()

    def update_task(self, task_id: str, **changes: Any) -> Task:
        with self._lock:
            return self._tasks.update(task_id, changes)

    def delete_task(self, task_id: str) -> Task:
        with self._lock:
            task = self._tasks.delete(task_id)
        logger.info("Deleted task %s", task_id)
        return task

    def clear_tasks(self) -> int:
        with self._lock:
            count = self._tasks.clear()
        logger.info("Cleared %d tasks", count)
        return count

    def apply_task_alerts(self, updates: dict[str, AlertPatch]) -> list[str]:
        with self._lock:
            return self._tasks.apply_alerts(updates)

    # -- Calendar events -----------------------------------------------------

    def add_event(self, event: CalendarEvent) -> CalendarEvent:
        with self._lock:
            self._events.add(event)
        logger.info("Added event %s: %s at %s", event.id, event.title, event.start)
        return event

    def get_event(self, event_id: str) -> CalendarEvent:
        with self._lock:
            return self._events.get(event_id)

    def list_events(self) -> list[CalendarEvent]:
        with self._lock:
            return self._events.values()

    def update_event(self, event_id: str, **changes: Any) -> CalendarEvent:
        with self._lock:
            return self._events.update(event_id, changes)

    def delete_event(self, event_id: str) -> CalendarEvent:
        with self._lock:
            event = self._events.delete(event_id)
        logger.info("Deleted event %s", event_id)
        return event

    def clear_events(self) -> int:
        with self._lock:
            count = self._events.clear()
        logger.info("Cleared %d events", count)
        return count

    def apply_event_alerts(self, updates: dict[str, AlertPatch]) -> list[str]:
        with self._lock:
            return self._events.apply_alerts(updates)
