"""
Scholar Planner — Telegram Bot.

Telegram is the user interface: free-text capture of tasks and calendar
events (including repeating series), listing, completing, re-dating,
deleting, and moving entries between the task list and the calendar. The
bot's job queue also hosts the two reminder polls.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.helpers import escape_markdown
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.config import settings
from src.core.alert_evaluator import EVENT_GRACE_WINDOW
from src.data.models import AlertRepeat, RecurrenceRule

if TYPE_CHECKING:
    from src.data.models import CalendarEvent, Task
    from src.data.store import ReminderStore
    from src.ports.audio_port import AudioPort
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_COMMAND_PREFIX_RE = re.compile(r"^/\w+(?:@\w+)?\s*")

# "/event weekly until 2026-12-20 Office hours Monday at 3"
_RECURRENCE_RE = re.compile(
    r"^(?P<rule>daily|weekly|monthly)\s+until\s+(?P<until>\d{4}-\d{2}-\d{2})\s+(?P<text>.+)$",
    re.IGNORECASE | re.DOTALL,
)

_MAX_LISTED = 10


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _store(context: ContextTypes.DEFAULT_TYPE) -> ReminderStore:
    return context.bot_data["store"]


def _command_body(text: str) -> str:
    """Strip the leading /command (and @botname) but keep line breaks."""
    return _COMMAND_PREFIX_RE.sub("", text, count=1).strip()


def _fmt(dt: datetime) -> str:
    return dt.strftime("%a %d %b %H:%M")


def _md(text: str) -> str:
    """Escape user text for parse_mode="Markdown" replies."""
    return escape_markdown(text, version=1)


def _format_task_line(task: Task) -> str:
    mark = "✅" if task.completed else "⬜"
    repeat = "" if task.alert_repeat == AlertRepeat.ONCE else f" 🔁 {task.alert_repeat.label} min"
    return f"{mark} `{task.id}` — {_md(task.title)} (due {_fmt(task.due_date)}){repeat}"


def _format_event_line(event: CalendarEvent) -> str:
    series = f" 🔁 {event.recurrence_rule.value}" if event.recurrence_rule else ""
    return (
        f"📅 `{event.id}` — {_md(event.title)} "
        f"({_fmt(event.start)}–{event.end.strftime('%H:%M')}){series}"
    )


def default_task_due(now: datetime) -> datetime:
    """Fallback due time for captured tasks: a few minutes from now."""
    due = now + timedelta(minutes=settings.DEFAULT_TASK_LEAD_MINUTES)
    return due.replace(second=0, microsecond=0)


def default_event_slot(now: datetime) -> tuple[datetime, datetime]:
    """Fallback slot for captured events: today at the default hour."""
    start = now.replace(
        hour=settings.DEFAULT_EVENT_START_HOUR, minute=0, second=0, microsecond=0,
    )
    return start, start + timedelta(minutes=settings.DEFAULT_EVENT_DURATION_MINUTES)


def _single_arg(context: ContextTypes.DEFAULT_TYPE) -> str | None:
    args = context.args or []
    return args[0] if args else None


def _id_and_text(update: Update) -> tuple[str, str]:
    """Split "/cmd <id> <free text>" into (id, text); missing parts are ""."""
    parts = _command_body(update.message.text or "").split(maxsplit=1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


# ---------------------------------------------------------------------------
# Capture: free text -> tasks / events
# ---------------------------------------------------------------------------


async def _capture_tasks(text: str, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Shared logic: parse each line -> create tasks (with silent calendar copies)."""
    from src.core.entry_service import create_tasks_from_text

    now = datetime.now()
    try:
        tasks = create_tasks_from_text(_store(context), text, default_task_due(now), now=now)
    except ValueError as exc:
        await update.message.reply_text(str(exc))
        return
    except Exception as exc:
        logger.error("Task capture error: %s", exc)
        await update.message.reply_text(
            "Sorry, something went wrong while saving your tasks. Please try again."
        )
        return

    lines = [f"Added {len(tasks)} task(s):"]
    lines.extend(_format_task_line(t) for t in tasks)
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_task(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /task <text> — one task per line."""
    body = _command_body(update.message.text or "")
    if not body:
        await update.message.reply_text(
            "Usage: /task Grade papers tomorrow 5pm\n"
            "Send several lines to add several tasks at once."
        )
        return
    await _capture_tasks(body, update, context)


def _create_series(
    match: re.Match, now: datetime, context: ContextTypes.DEFAULT_TYPE,
) -> list[CalendarEvent]:
    """Create a recurring series from a matched "<rule> until <date> <text>" body."""
    from src.core.entry_service import create_event
    from src.core.parser import parse_smart_date

    try:
        until = datetime.strptime(match.group("until"), "%Y-%m-%d")
    except ValueError:
        raise ValueError("Until date must look like 2026-12-20.") from None

    base_start, base_end = default_event_slot(now)
    parsed = parse_smart_date(match.group("text").strip(), base_start, now=now)
    return create_event(
        _store(context),
        parsed.title,
        parsed.date,
        parsed.date + (base_end - base_start),
        recurrence_rule=RecurrenceRule(match.group("rule").lower()),
        recurrence_end=until,
        alert_offset=settings.DEFAULT_ALERT_OFFSET_MINUTES,
    )


@authorized_only
async def cmd_event(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /event <text> — one calendar event per line.

    "/event weekly until 2026-12-20 Office hours Monday at 3" creates a
    recurring series instead (daily, weekly or monthly).
    """
    from src.core.entry_service import create_events_from_text

    body = _command_body(update.message.text or "")
    if not body:
        await update.message.reply_text(
            "Usage: /event Staff meeting on Monday at 3\n"
            "Send several lines to add several events at once.\n"
            "Repeat with: /event weekly until 2026-12-20 Office hours Monday at 3"
        )
        return

    now = datetime.now()
    start, end = default_event_slot(now)
    series = _RECURRENCE_RE.match(body)
    try:
        if series:
            events = _create_series(series, now, context)
        else:
            events = create_events_from_text(
                _store(context), body, start, end, now=now,
                alert_offset=settings.DEFAULT_ALERT_OFFSET_MINUTES,
            )
    except ValueError as exc:
        await update.message.reply_text(str(exc))
        return
    except Exception as exc:
        logger.error("Event capture error: %s", exc)
        await update.message.reply_text(
            "Sorry, something went wrong while saving your events. Please try again."
        )
        return

    # A long series would overflow one Telegram message
    lines = [f"Added {len(events)} event(s):"]
    lines.extend(_format_event_line(ev) for ev in events[:_MAX_LISTED])
    if len(events) > _MAX_LISTED:
        lines.append(f"…and {len(events) - _MAX_LISTED} more")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — captured as tasks."""
    await _capture_tasks(update.message.text or "", update, context)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await update.message.reply_text(
        "Welcome to *Scholar Planner*!\n\n"
        "• Send me any text to add tasks, one per line (e.g. 'Grade papers tomorrow 5pm')\n"
        "• Use /event to add calendar events the same way\n"
        "• I'll ring and remind you when things are due\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/task <text> — Add tasks (one per line)\n"
        "/event <text> — Add calendar events (one per line)\n"
        "/event weekly until 2026-12-20 <text> — Add a repeating event\n"
        "/tasks — List tasks\n"
        "/events — List upcoming events\n"
        "/done <id> — Toggle a task complete\n"
        "/repeat <id> <once|every_3|every_5> — Set a task's alert repeat\n"
        "/movetask <id> <when> — Re-date a task (e.g. tomorrow 4pm)\n"
        "/moveevent <id> <when> — Move an event, keeping its length\n"
        "/deltask <id> — Delete a task\n"
        "/delevent <id> — Delete an event\n"
        "/toschedule <id> — Copy a task into the calendar\n"
        "/totask <id> — Copy an event into the task list\n"
        "/cleartasks — Delete all tasks\n"
        "/clearevents — Delete all events\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_tasks(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /tasks — list all tasks."""
    tasks = _store(context).list_tasks()
    if not tasks:
        await update.message.reply_text("No tasks yet.")
        return

    lines = ["*Tasks:*\n"]
    lines.extend(_format_task_line(t) for t in tasks)
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_events(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /events — list events that have not long finished."""
    now = datetime.now()
    events = [
        ev for ev in _store(context).list_events()
        if now - ev.end < EVENT_GRACE_WINDOW
    ]
    if not events:
        await update.message.reply_text("No upcoming events.")
        return

    events.sort(key=lambda ev: ev.start)
    lines = ["*Upcoming events:*\n"]
    lines.extend(_format_event_line(ev) for ev in events)
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <id> — toggle a task's completed flag."""
    from src.core.entry_service import toggle_complete

    task_id = _single_arg(context)
    if not task_id:
        await update.message.reply_text("Usage: /done <task_id>\nUse /tasks to see IDs.")
        return

    try:
        task = toggle_complete(_store(context), task_id)
    except KeyError:
        await update.message.reply_text(f"No task with ID {task_id}. Use /tasks to see IDs.")
        return

    state = "done" if task.completed else "not done"
    await update.message.reply_text(f"Marked '*{_md(task.title)}*' as {state}.", parse_mode="Markdown")


@authorized_only
async def cmd_repeat(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /repeat <id> <once|every_3|every_5>."""
    from src.core.entry_service import edit_task

    args = context.args or []
    if len(args) != 2:
        await update.message.reply_text("Usage: /repeat <task_id> <once|every_3|every_5>")
        return

    task_id, raw_repeat = args
    try:
        repeat = AlertRepeat(raw_repeat.lower())
    except ValueError:
        await update.message.reply_text("Repeat must be one of: once, every_3, every_5.")
        return

    try:
        task = edit_task(_store(context), task_id, alert_repeat=repeat)
    except KeyError:
        await update.message.reply_text(f"No task with ID {task_id}. Use /tasks to see IDs.")
        return

    await update.message.reply_text(f"'{task.title}' will now alert {repeat.label}.")


@authorized_only
async def cmd_movetask(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /movetask <id> <when> — re-date a task, e.g. "/movetask ab12 tomorrow 4pm"."""
    from src.core.entry_service import edit_task
    from src.core.parser import parse_smart_date

    task_id, when = _id_and_text(update)
    if not task_id or not when:
        await update.message.reply_text("Usage: /movetask <task_id> <when>, e.g. tomorrow 4pm")
        return

    store = _store(context)
    try:
        task = store.get_task(task_id)
    except KeyError:
        await update.message.reply_text(f"No task with ID {task_id}. Use /tasks to see IDs.")
        return

    now = datetime.now()
    parsed = parse_smart_date(when, task.due_date, now=now)
    if not (parsed.has_date or parsed.has_time):
        await update.message.reply_text(f"Couldn't find a date or time in '{when}'.")
        return

    task = edit_task(store, task_id, now=now, due_date=parsed.date)
    await update.message.reply_text(f"'{task.title}' is now due {_fmt(task.due_date)}.")


@authorized_only
async def cmd_moveevent(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /moveevent <id> <when> — move an event, keeping its length."""
    from src.core.entry_service import edit_event
    from src.core.parser import parse_smart_date

    event_id, when = _id_and_text(update)
    if not event_id or not when:
        await update.message.reply_text("Usage: /moveevent <event_id> <when>, e.g. friday at 2")
        return

    store = _store(context)
    try:
        event = store.get_event(event_id)
    except KeyError:
        await update.message.reply_text(f"No event with ID {event_id}. Use /events to see IDs.")
        return

    parsed = parse_smart_date(when, event.start, now=datetime.now())
    if not (parsed.has_date or parsed.has_time):
        await update.message.reply_text(f"Couldn't find a date or time in '{when}'.")
        return

    event = edit_event(
        store, event_id, start=parsed.date, end=parsed.date + (event.end - event.start),
    )
    await update.message.reply_text(f"'{event.title}' moved to {_fmt(event.start)}.")


@authorized_only
async def cmd_deltask(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /deltask <id>."""
    task_id = _single_arg(context)
    if not task_id:
        await update.message.reply_text("Usage: /deltask <task_id>")
        return
    try:
        task = _store(context).delete_task(task_id)
    except KeyError:
        await update.message.reply_text(f"No task with ID {task_id}.")
        return
    await update.message.reply_text(f"🗑️ Deleted task '{task.title}'.")


@authorized_only
async def cmd_delevent(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delevent <id>."""
    event_id = _single_arg(context)
    if not event_id:
        await update.message.reply_text("Usage: /delevent <event_id>")
        return
    try:
        event = _store(context).delete_event(event_id)
    except KeyError:
        await update.message.reply_text(f"No event with ID {event_id}.")
        return
    await update.message.reply_text(f"🗑️ Deleted event '{event.title}'.")


@authorized_only
async def cmd_toschedule(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /toschedule <task_id> — silent copy into the calendar."""
    from src.core.entry_service import promote_task

    task_id = _single_arg(context)
    if not task_id:
        await update.message.reply_text("Usage: /toschedule <task_id>")
        return
    try:
        event = promote_task(_store(context), task_id)
    except KeyError:
        await update.message.reply_text(f"No task with ID {task_id}.")
        return
    except ValueError:
        await update.message.reply_text("That task is already on the calendar.")
        return
    await update.message.reply_text(f"Added '{event.title}' to the calendar at {_fmt(event.start)}.")


@authorized_only
async def cmd_totask(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /totask <event_id> — silent copy into the task list."""
    from src.core.entry_service import demote_event

    event_id = _single_arg(context)
    if not event_id:
        await update.message.reply_text("Usage: /totask <event_id>")
        return
    try:
        task = demote_event(_store(context), event_id)
    except KeyError:
        await update.message.reply_text(f"No event with ID {event_id}.")
        return
    except ValueError:
        await update.message.reply_text("That event is already in your tasks.")
        return
    await update.message.reply_text(f"Added '{task.title}' to your tasks.")


@authorized_only
async def cmd_cleartasks(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    count = _store(context).clear_tasks()
    await update.message.reply_text(f"Cleared {count} task(s).")


@authorized_only
async def cmd_clearevents(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    count = _store(context).clear_events()
    await update.message.reply_text(f"Cleared {count} event(s).")


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    store: ReminderStore | None = None,
    notifier: NotificationPort | None = None,
    audio: AudioPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Entity store. Defaults to a fresh in-memory ReminderStore.
        notifier: Notification port. Defaults to TelegramNotifier
                  broadcasting to ALLOWED_USER_IDS.
        audio: Audio port. Defaults to TelegramAudioPlayer.
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    # Wire default adapters if not provided
    if store is None:
        from src.data.store import ReminderStore
        store = ReminderStore()

    if notifier is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot, settings.ALLOWED_USER_IDS)

    if audio is None:
        from src.adapters.telegram_audio import TelegramAudioPlayer
        audio = TelegramAudioPlayer(app.bot, settings.ALLOWED_USER_IDS)

    app.bot_data["store"] = store
    app.bot_data["notifier"] = notifier
    app.bot_data["audio"] = audio

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("task", cmd_task))
    app.add_handler(CommandHandler("event", cmd_event))
    app.add_handler(CommandHandler("tasks", cmd_tasks))
    app.add_handler(CommandHandler("events", cmd_events))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler("repeat", cmd_repeat))
    app.add_handler(CommandHandler("movetask", cmd_movetask))
    app.add_handler(CommandHandler("moveevent", cmd_moveevent))
    app.add_handler(CommandHandler("deltask", cmd_deltask))
    app.add_handler(CommandHandler("delevent", cmd_delevent))
    app.add_handler(CommandHandler("toschedule", cmd_toschedule))
    app.add_handler(CommandHandler("totask", cmd_totask))
    app.add_handler(CommandHandler("cleartasks", cmd_cleartasks))
    app.add_handler(CommandHandler("clearevents", cmd_clearevents))

    # Text messages (non-command)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    # Reminder polls — Telegram-specific scheduling logic
    _setup_reminder_jobs(app, store, notifier, audio)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_reminder_jobs(
    app: Application,
    store: ReminderStore,
    notifier: NotificationPort,
    audio: AudioPort,
) -> None:
    """Register the task and calendar-event reminder polls."""
    from src.core.scheduler import run_event_tick, run_task_tick

    async def _task_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await run_task_tick(store, notifier, audio)

    async def _event_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await run_event_tick(store, notifier, audio)

    app.job_queue.run_repeating(
        _task_job_callback,
        interval=settings.TASK_POLL_SECONDS,
        first=settings.TASK_POLL_SECONDS,
        name="task_reminders",
    )
    app.job_queue.run_repeating(
        _event_job_callback,
        interval=settings.EVENT_POLL_SECONDS,
        first=settings.EVENT_POLL_SECONDS,
        name="event_reminders",
    )

    logger.info(
        "Reminder polls scheduled every %.1fs (tasks) and %.1fs (events)",
        settings.TASK_POLL_SECONDS,
        settings.EVENT_POLL_SECONDS,
    )


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Scholar Planner bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
