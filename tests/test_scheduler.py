"""Tests for src.core.scheduler — reminder poll ticks."""

from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from src.core.scheduler import run_event_tick, run_task_tick
from src.data.models import AlertRepeat, CalendarEvent, Task

NOW = datetime(2026, 10, 16, 10, 0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _task(task_id, **overrides):
    data = {"id": task_id, "title": f"Task {task_id}", "due_date": NOW - timedelta(minutes=1)}
    data.update(overrides)
    return Task(**data)


def _event(event_id, **overrides):
    data = {
        "id": event_id,
        "title": f"Event {event_id}",
        "start": NOW,
        "end": NOW + timedelta(hours=1),
    }
    data.update(overrides)
    return CalendarEvent(**data)


def _ports():
    notifier = AsyncMock()
    audio = AsyncMock()
    return notifier, audio


# ---------------------------------------------------------------------------
# Task tick
# ---------------------------------------------------------------------------


class TestRunTaskTick:
    @pytest.mark.asyncio
    async def test_fires_one_task_per_tick(self, store):
        store.add_task(_task("a", alarm_sound="bell"))
        store.add_task(_task("b"))
        notifier, audio = _ports()

        fired = await run_task_tick(store, notifier, audio, now=NOW)

        assert fired == ["a"]
        audio.play.assert_awaited_once_with("bell")
        notifier.notify.assert_awaited_once()
        assert "Task a" in notifier.notify.call_args[0][0]
        assert store.get_task("a").has_alerted is True
        assert store.get_task("a").last_alerted_at == NOW
        assert store.get_task("b").has_alerted is False

    @pytest.mark.asyncio
    async def test_next_tick_picks_the_next_task(self, store):
        store.add_task(_task("a"))
        store.add_task(_task("b"))
        notifier, audio = _ports()

        await run_task_tick(store, notifier, audio, now=NOW)
        second = await run_task_tick(store, notifier, audio, now=NOW + timedelta(seconds=2))
        third = await run_task_tick(store, notifier, audio, now=NOW + timedelta(seconds=4))

        assert second == ["b"]
        assert third == []
        assert notifier.notify.await_count == 2

    @pytest.mark.asyncio
    async def test_repeating_task_refires_after_interval(self, store):
        store.add_task(_task("a", alert_repeat=AlertRepeat.EVERY_3))
        notifier, audio = _ports()

        assert await run_task_tick(store, notifier, audio, now=NOW) == ["a"]
        assert await run_task_tick(store, notifier, audio, now=NOW + timedelta(minutes=2)) == []
        later = NOW + timedelta(minutes=3)
        assert await run_task_tick(store, notifier, audio, now=later) == ["a"]
        assert store.get_task("a").last_alerted_at == later

    @pytest.mark.asyncio
    async def test_nothing_due_has_no_side_effects(self, store):
        store.add_task(_task("a", due_date=NOW + timedelta(hours=1)))
        store.add_task(_task("b", completed=True))
        notifier, audio = _ports()

        assert await run_task_tick(store, notifier, audio, now=NOW) == []
        audio.play.assert_not_called()
        notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_audio_failure_is_swallowed(self, store):
        store.add_task(_task("a"))
        notifier, audio = _ports()
        audio.play.side_effect = RuntimeError("speaker unplugged")

        fired = await run_task_tick(store, notifier, audio, now=NOW)

        assert fired == ["a"]
        notifier.notify.assert_awaited_once()
        assert store.get_task("a").has_alerted is True

    @pytest.mark.asyncio
    async def test_notification_failure_is_swallowed(self, store):
        store.add_task(_task("a"))
        notifier, audio = _ports()
        notifier.notify.side_effect = RuntimeError("network down")

        assert await run_task_tick(store, notifier, audio, now=NOW) == ["a"]

    @pytest.mark.asyncio
    async def test_task_deleted_mid_tick_is_not_resurrected(self, store):
        store.add_task(_task("a"))
        notifier, audio = _ports()
        notifier.notify.side_effect = lambda payload: store.delete_task("a")

        assert await run_task_tick(store, notifier, audio, now=NOW) == []
        assert store.list_tasks() == []

    @pytest.mark.asyncio
    async def test_edits_landing_mid_tick_survive(self, store):
        store.add_task(_task("a"))
        store.add_task(_task("b", due_date=NOW + timedelta(hours=1)))
        notifier, audio = _ports()

        def _user_edits(payload):
            store.update_task("a", title="Renamed")
            store.update_task("b", completed=True)
            store.add_task(_task("c"))

        notifier.notify.side_effect = _user_edits
        await run_task_tick(store, notifier, audio, now=NOW)

        assert store.get_task("a").title == "Renamed"
        assert store.get_task("a").has_alerted is True
        assert store.get_task("b").completed is True
        assert store.get_task("c").has_alerted is False


# ---------------------------------------------------------------------------
# Event tick
# ---------------------------------------------------------------------------


class TestRunEventTick:
    @pytest.mark.asyncio
    async def test_fires_all_due_events_with_shared_timestamp(self, store):
        store.add_event(_event("e1"))
        store.add_event(_event("e2", alert_sound="beep"))
        store.add_event(_event("later", start=NOW + timedelta(hours=2), end=NOW + timedelta(hours=3)))
        notifier, audio = _ports()

        fired = await run_event_tick(store, notifier, audio, now=NOW)

        assert fired == ["e1", "e2"]
        assert notifier.notify.await_count == 2
        assert [c.args[0] for c in audio.play.await_args_list] == ["chime", "beep"]
        stamps = {ev.last_alerted_at for ev in store.list_events() if ev.has_alerted}
        assert stamps == {NOW}
        assert store.get_event("later").has_alerted is False

    @pytest.mark.asyncio
    async def test_blank_sound_defaults_to_chime(self, store):
        store.add_event(_event("e1", alert_sound=""))
        notifier, audio = _ports()

        await run_event_tick(store, notifier, audio, now=NOW)

        audio.play.assert_awaited_once_with("chime")

    @pytest.mark.asyncio
    async def test_silent_import_never_fires(self, store):
        from src.core.entry_service import task_to_event

        store.add_event(task_to_event(_task("a", due_date=NOW)))
        notifier, audio = _ports()

        assert await run_event_tick(store, notifier, audio, now=NOW) == []
        notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_long_finished_event_is_ignored(self, store):
        store.add_event(_event(
            "old",
            start=NOW - timedelta(hours=4),
            end=NOW - timedelta(hours=3),
        ))
        notifier, audio = _ports()

        assert await run_event_tick(store, notifier, audio, now=NOW) == []

    @pytest.mark.asyncio
    async def test_one_failing_event_does_not_block_others(self, store):
        store.add_event(_event("e1"))
        store.add_event(_event("e2"))
        notifier, audio = _ports()
        audio.play.side_effect = [RuntimeError("blocked"), None]

        assert await run_event_tick(store, notifier, audio, now=NOW) == ["e1", "e2"]
        assert notifier.notify.await_count == 2
