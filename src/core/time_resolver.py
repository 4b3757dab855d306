"""
Reminder Assistant — Time Resolver.

Turns a free-text message ("call mom at 6pm", "vitamin tomorrow") plus the
user's fixed UTC offset into an absolute UTC instant, the task text, and a
display string in the user's local time.

Clock times, day words ("tomorrow", "friday", "next week") and relative
offsets ("in 20 minutes") are read directly from the text. dateparser is only
asked about explicit calendar dates ("Oct 25", "25/10"). Everything is
evaluated against the user's local wall clock. The offset is a plain number
captured at onboarding; no daylight saving adjustment is applied.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from dateparser.search import search_dates

from src.core.context_classifier import ContextLabel, classify

logger = logging.getLogger(__name__)

DEFAULT_HOUR = 9  # clock time used when only a day was given
TONIGHT_HOUR = 20
MAX_DAYS_AHEAD = 366
EMPTY_TASK_PLACEHOLDER = "Reminder"

_BOUNDARY_RE = re.compile(
    r"\s+(?:at|on|in|tomorrow|today|next|tonight)(?=\s|$)", re.IGNORECASE,
)
_COMMAND_PREFIXES = ("remind me to", "reminder to", "remind", "remember to")

_CLOCK_RE = re.compile(
    r"\b(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<meridiem>[ap])\.?m\b\.?"
    r"|\b(?P<hour24>\d{1,2}):(?P<minute24>\d{2})\b"
    r"|\b(?P<named>noon|midnight)\b",
    re.IGNORECASE,
)
_RELATIVE_RE = re.compile(
    r"\bin\s+(?P<amount>\d+|an?|one)\s+"
    r"(?P<unit>seconds?|secs?|minutes?|mins?|hours?|hrs?|days?|weeks?)\b",
    re.IGNORECASE,
)
_RELATIVE_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}

_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_WEEKDAY_RE = re.compile(
    r"\b(?:(?P<qualifier>next|this|on)\s+)?(?P<day>" + "|".join(_WEEKDAYS) + r")\b",
)
_DAY_WORD_OFFSETS = {"day after tomorrow": 2, "tomorrow": 1, "tonight": 0, "today": 0}
_DAY_WORD_RE = re.compile(r"\b(day after tomorrow|tomorrow|tonight|today)\b")
_NEXT_WEEK_RE = re.compile(r"\bnext week\b")
_TONIGHT_RE = re.compile(r"\btonight\b", re.IGNORECASE)

_MONTH_RE = re.compile(
    r"\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\b", re.IGNORECASE,
)
_NUMERIC_DATE_RE = re.compile(r"\b\d{1,4}[/.-]\d{1,2}(?:[/.-]\d{2,4})?\b")

_DATEPARSER_SETTINGS = {
    "PREFER_DATES_FROM": "future",
    "RETURN_AS_TIMEZONE_AWARE": False,
}


@dataclass
class ResolvedTime:
    task: str
    scheduled_utc: datetime     # aware, UTC
    local_time: datetime        # naive wall clock in the user's timezone
    local_display: str
    context: ContextLabel


# ---------------------------------------------------------------------------
# Task text
# ---------------------------------------------------------------------------


def extract_task(message_text: str) -> str:
    """Cut the trailing time clause and any leading command prefix."""
    text = message_text.strip()
    match = _BOUNDARY_RE.search(text)
    if match:
        text = text[:match.start()]

    lowered = text.lower()
    for prefix in _COMMAND_PREFIXES:
        if lowered.startswith(prefix):
            text = text[len(prefix):]
            break

    text = text.strip(" \t,.:;-")
    return text or EMPTY_TASK_PLACEHOLDER


# ---------------------------------------------------------------------------
# Time parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClockTime:
    hour: int
    minute: int
    start: int      # span of the clock text in the message
    end: int


def format_local(local_time: datetime) -> str:
    """Human-readable local time, e.g. 'Mon, Oct 19 at 6:00 PM'."""
    hour = local_time.hour % 12 or 12
    return (
        f"{local_time:%a, %b} {local_time.day} at "
        f"{hour}:{local_time:%M} {local_time:%p}"
    )


def find_clock(text: str) -> ClockTime | None:
    """Locate an explicit clock time ("6pm", "7:30 am", "18:45", "noon")."""
    match = _CLOCK_RE.search(text)
    if match is None:
        return None

    if match.group("named"):
        hour, minute = (12, 0) if match.group("named").lower() == "noon" else (0, 0)
    elif match.group("meridiem"):
        hour, minute = int(match.group("hour")), int(match.group("minute") or 0)
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if match.group("meridiem").lower() == "p" else 0)
    else:
        hour, minute = int(match.group("hour24")), int(match.group("minute24"))
        if hour > 23:
            return None
    if minute > 59:
        return None
    return ClockTime(hour, minute, match.start(), match.end())


def _find_relative(text: str) -> timedelta | None:
    match = _RELATIVE_RE.search(text)
    if match is None:
        return None
    amount = match.group("amount").lower()
    count = int(amount) if amount.isdigit() else 1
    return timedelta(**{_RELATIVE_UNITS[match.group("unit")[0].lower()]: count})


def _looks_like_date(phrase: str) -> bool:
    """Only phrases naming a calendar date are taken from dateparser."""
    if _NUMERIC_DATE_RE.search(phrase):
        return True
    return bool(_MONTH_RE.search(phrase)) and any(ch.isdigit() for ch in phrase)


def _search(text: str, local_now: datetime) -> list[tuple[str, datetime]]:
    settings = dict(_DATEPARSER_SETTINGS, RELATIVE_BASE=local_now)
    try:
        found = search_dates(text, languages=["en"], settings=settings)
    except Exception as exc:
        logger.warning("Date search failed for '%s': %s", text, exc)
        return []
    return list(found or [])


def find_day(text: str, local_now: datetime) -> date | None:
    """Resolve the day named in a phrase (clock text already removed)."""
    today = local_now.date()
    lowered = text.lower()

    match = _DAY_WORD_RE.search(lowered)
    if match:
        return today + timedelta(days=_DAY_WORD_OFFSETS[match.group(1)])

    match = _WEEKDAY_RE.search(lowered)
    if match:
        ahead = (_WEEKDAYS.index(match.group("day")) - today.weekday()) % 7
        if ahead == 0 and match.group("qualifier") == "next":
            ahead = 7
        return today + timedelta(days=ahead)

    if _NEXT_WEEK_RE.search(lowered):
        return today + timedelta(days=7)

    for phrase, found in _search(text, local_now):
        if _looks_like_date(phrase):
            return found.date()
    return None


def parse_local_time(text: str, local_now: datetime) -> datetime | None:
    """Resolve a phrase to a naive local datetime, or None.

    The clock time and the day are read separately and then combined. A
    clock time alone means today; a day alone gets DEFAULT_HOUR (TONIGHT_HOUR
    for "tonight"). "in 20 minutes" style offsets are taken as exact.
    Results more than MAX_DAYS_AHEAD away are refused.
    """
    relative = _find_relative(text)
    if relative is not None and relative < timedelta(days=1):
        return (local_now + relative).replace(second=0, microsecond=0)

    clock = find_clock(text)
    remainder = text if clock is None else f"{text[:clock.start]} {text[clock.end:]}"
    if relative is not None:
        day = (local_now + relative).date()
    else:
        day = find_day(remainder, local_now)

    if clock is None and day is None:
        return None
    if clock is None:
        hour = TONIGHT_HOUR if _TONIGHT_RE.search(text) else DEFAULT_HOUR
        result = datetime.combine(day, time(hour))
    else:
        result = datetime.combine(day or local_now.date(), time(clock.hour, clock.minute))

    if result - local_now > timedelta(days=MAX_DAYS_AHEAD):
        logger.warning("Refusing '%s': %s is too far ahead", text[:80], result.isoformat())
        return None
    return result


def resolve(
    message_text: str,
    timezone_offset_hours: float | None,
    now: datetime | None = None,
) -> ResolvedTime | None:
    """Resolve a message to a UTC instant in the user's timezone.

    Returns None when no time can be found; the caller asks for one.
    Whether the instant lies in the future is not checked here.
    """
    now_utc = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    offset = timedelta(hours=timezone_offset_hours or 0)
    local_now = (now_utc + offset).replace(tzinfo=None)

    local_time = parse_local_time(message_text, local_now)
    if local_time is None:
        logger.info("No time found in '%s'", message_text[:80])
        return None

    scheduled_utc = (local_time - offset).replace(tzinfo=timezone.utc)
    task = extract_task(message_text)
    return ResolvedTime(
        task=task,
        scheduled_utc=scheduled_utc,
        local_time=local_time,
        local_display=format_local(local_time),
        context=classify(task),
    )
