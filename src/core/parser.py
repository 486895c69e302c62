"""
Scholar Planner — Smart Date/Time Parser.

Turns a loosely formatted entry ("Grade papers tomorrow 5pm") into a clean
title plus a best-guess timestamp. Recognition runs as an ordered series of
match-and-strip passes over the text:

    bullet marker -> tomorrow/today -> weekday -> time -> title cleanup

Each recognized fragment is removed before the next pass runs. Anything the
text is silent about is inherited from the caller's base date.

No I/O: this module only transforms data and never raises on bad input.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from pydantic import BaseModel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result contract — consumed by src.core.entry_service
# ---------------------------------------------------------------------------

class ParseResult(BaseModel):
    """Title and timestamp extracted from one line of free text.

    Example for "Grade papers tomorrow 5pm":
    {
        "title": "Grade papers",
        "date": "2026-10-20T17:00:00",
        "has_date": true,
        "has_time": true
    }
    """
    title: str
    date: datetime
    has_date: bool = False
    has_time: bool = False


# ---------------------------------------------------------------------------
# Patterns (all case-insensitive)
# ---------------------------------------------------------------------------

# "1. ", "2) ", "a) ", "- ", "* "
_BULLET_RE = re.compile(r"^(\d+[.)]|-|\*|[a-z][.)])\s+", re.IGNORECASE)

_TOMORROW_RE = re.compile(r"\b(tomorrow|tmrw)\b", re.IGNORECASE)
_TODAY_RE = re.compile(r"\btoday\b", re.IGNORECASE)

# Three-letter stem plus an optional tail, so "fri", "fris", "friday",
# "tues", "tuesday", "thurs" and "saturday" all resolve.
_WEEKDAY_RE = re.compile(
    r"\b(on\s+)?(sun|mon|tue|wed|thu|fri|sat)(day|s|es|sday|nesday|rsday|rs|urday)?\b",
    re.IGNORECASE,
)
_LAST_RE = re.compile(r"\blast\b", re.IGNORECASE)

# Sunday = 0 ... Saturday = 6
_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

# The 12-hour / "at" branch is tried first; the bare HH:MM branch only wins
# where the first one cannot start (e.g. digits glued to a preceding word).
_TIME_RE = re.compile(
    r"\b(?:at\s+)?(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<meridian>am|pm|a\.m\.|p\.m\.)?"
    r"|(?P<hour24>\d{1,2}):(?P<minute24>\d{2})\b",
    re.IGNORECASE,
)

# Bare hours below this are read as afternoon ("at 2" -> 14:00)
_AFTERNOON_CUTOFF = 7

_LEADING_PUNCT_RE = re.compile(r"^[-*,.]\s*")
_WHITESPACE_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _cut(text: str, match: re.Match) -> str:
    """Remove the matched span from text."""
    return text[:match.start()] + text[match.end():]


def _with_day(dt: datetime, day: datetime) -> datetime:
    """Move dt onto day's calendar date, keeping dt's time of day."""
    return dt.replace(year=day.year, month=day.month, day=day.day)


def _sunday_weekday(dt: datetime) -> int:
    """Weekday index with Sunday = 0."""
    return (dt.weekday() + 1) % 7


def _resolve_time(match: re.Match) -> tuple[int, int]:
    """Return (hour, minute) for a time match, applying meridian rules."""
    if match.group("hour24") is not None:
        return int(match.group("hour24")), int(match.group("minute24"))

    hours = int(match.group("hour"))
    minutes = int(match.group("minute")) if match.group("minute") else 0
    meridian = match.group("meridian")
    if meridian:
        meridian = meridian.replace(".", "").lower()

    if meridian == "pm" and hours < 12:
        hours += 12
    if meridian == "am" and hours == 12:
        hours = 0
    if not meridian and hours < _AFTERNOON_CUTOFF:
        hours += 12
    return hours, minutes


def _clean_title(text: str) -> str:
    collapsed = _WHITESPACE_RE.sub(" ", text).strip()
    return _LEADING_PUNCT_RE.sub("", collapsed, count=1)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_smart_date(
    text: str,
    base_date: datetime,
    now: datetime | None = None,
) -> ParseResult:
    """Extract a title and a date/time from one line of free text.

    Args:
        text: The raw entry, e.g. "2. Call parents on Monday at 4".
        base_date: Fallback date and time of day for whatever the text
                   does not mention.
        now: The real current time, used for "today", "tomorrow" and
             weekday names. Defaults to the local clock.

    Returns:
        ParseResult whose has_date / has_time flags tell whether the text
        itself carried a date or a time.
    """
    if now is None:
        now = datetime.now()

    remaining = text
    final_date = base_date
    has_date = False
    has_time = False

    # 1. Leading bullet / numbering
    remaining = _BULLET_RE.sub("", remaining, count=1)

    # 2. Relative days. "tomorrow" wins; a later "today" is only stripped.
    tomorrow = _TOMORROW_RE.search(remaining)
    if tomorrow:
        final_date = _with_day(final_date, now + timedelta(days=1))
        has_date = True
        remaining = _cut(remaining, tomorrow)

    today = _TODAY_RE.search(remaining)
    if today:
        if not tomorrow:
            final_date = _with_day(final_date, now)
            has_date = True
        remaining = _cut(remaining, today)

    # 3. Weekday names, always projected forward unless tagged "last"
    weekday = _WEEKDAY_RE.search(remaining)
    if weekday:
        target = weekday.group(2).lower()
        if target in _WEEKDAYS:
            days_to_add = _WEEKDAYS.index(target) - _sunday_weekday(now)
            if days_to_add <= 0 and not _LAST_RE.search(remaining):
                days_to_add += 7
            final_date = _with_day(final_date, now + timedelta(days=days_to_add))
            has_date = True
        remaining = _cut(remaining, weekday)

    # 4. One time expression per line
    time_match = _TIME_RE.search(remaining)
    if time_match:
        hours, minutes = _resolve_time(time_match)
        if 0 <= hours < 24:
            # Minutes past 59 roll into the next hour instead of failing
            final_date = final_date.replace(
                hour=hours, minute=0, second=0, microsecond=0,
            ) + timedelta(minutes=minutes)
            has_time = True
        else:
            logger.debug("Ignoring out-of-range hour %d in %r", hours, text)
        remaining = _cut(remaining, time_match)

    # 5. Title
    title = _clean_title(remaining) or text

    return ParseResult(
        title=title,
        date=final_date,
        has_date=has_date,
        has_time=has_time,
    )


def parse_lines(
    text: str,
    base_date: datetime,
    now: datetime | None = None,
) -> list[ParseResult]:
    """Parse bulk input, one entry per non-blank line.

    Every line shares the same base date; a line that names its own date
    or time overrides it for that line only.
    """
    if now is None:
        now = datetime.now()

    lines = [line.strip() for line in text.splitlines()]
    results = [parse_smart_date(line, base_date, now=now) for line in lines if line]
    logger.debug("Parsed %d entries from bulk input", len(results))
    return results
