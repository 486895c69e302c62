"""
Scholar Planner — Reminder Scheduler.

Two polling ticks, driven by the host's repeating timer:

- Task tick (every 2 s): fires at most one overdue task per tick.
- Event tick (every 10 s): fires every calendar event inside its alert window.

Each tick snapshots its collection, evaluates it with the pure rules in
src.core.alert_evaluator, plays the alarm and raises the notification for
every fired entity, then writes the alert bookkeeping back for exactly
those entities.

This module is provider-agnostic: it depends on the NotificationPort and
AudioPort protocols, not on specific implementations.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from src.core.alert_evaluator import (
    evaluate_events,
    evaluate_tasks,
    format_event_alert,
    format_task_alert,
)

if TYPE_CHECKING:
    from src.data.store import ReminderStore
    from src.ports.audio_port import AudioPort
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_DEFAULT_EVENT_SOUND = "chime"


# ---------------------------------------------------------------------------
# Side effects (never raise into the tick)
# ---------------------------------------------------------------------------


async def _play_alarm(audio: AudioPort, sound_ref: str) -> None:
    try:
        await audio.play(sound_ref)
    except Exception as exc:
        logger.warning("Alarm playback failed for %r: %s", sound_ref[:40], exc)


async def _send_alert(notifier: NotificationPort, payload: str) -> None:
    try:
        await notifier.notify(payload)
    except Exception as exc:
        logger.error("Failed to raise alert notification: %s", exc)


# ---------------------------------------------------------------------------
# Ticks
# ---------------------------------------------------------------------------


async def run_task_tick(
    store: ReminderStore,
    notifier: NotificationPort,
    audio: AudioPort,
    now: datetime | None = None,
) -> list[str]:
    """Run one task poll. Returns the ids whose alert bookkeeping was updated."""
    if now is None:
        now = datetime.now()

    evaluation = evaluate_tasks(store.list_tasks(), now)
    if not evaluation.fired:
        return []

    for task in evaluation.fired:
        await _play_alarm(audio, task.alarm_sound)
        await _send_alert(notifier, format_task_alert(task))

    applied = store.apply_task_alerts(evaluation.updates)
    logger.info("Task alert fired: %s", ", ".join(applied) or "(removed before update)")
    return applied


async def run_event_tick(
    store: ReminderStore,
    notifier: NotificationPort,
    audio: AudioPort,
    now: datetime | None = None,
) -> list[str]:
    """Run one calendar-event poll. Returns the ids whose bookkeeping was updated."""
    if now is None:
        now = datetime.now()

    evaluation = evaluate_events(store.list_events(), now)
    if not evaluation.fired:
        return []

    for event in evaluation.fired:
        await _play_alarm(audio, event.alert_sound or _DEFAULT_EVENT_SOUND)
        await _send_alert(notifier, format_event_alert(event))

    applied = store.apply_event_alerts(evaluation.updates)
    logger.info("Event alerts fired (%d): %s", len(applied), ", ".join(applied))
    return applied
