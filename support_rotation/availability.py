"""
availability.py - Engineer Availability for the Support Rotation

Resolver:
  is_non_working_day(state, user_id, day)
    Saturday/Sunday are non-working for everyone. Otherwise a day is
    non-working when its ISO date is in the user's specificDates or its
    weekday name is in the user's recurringDays.

Filter:
  get_available_engineers(state, roster, start, end)
    Keeps engineers working on every calendar date of [start, end].

Orchestration helpers (status text, rotation window, elapsed working days)
live here too since they answer the same question: who can be on duty when.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from support_rotation.config import OOO_KEYWORDS
from support_rotation.state import WEEKDAY_NAMES, RotationState

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------

def _as_date(day: DateLike) -> date:
    """Calendar date from the value's own fields (no timezone conversion)."""
    return date(day.year, day.month, day.day)


def is_weekend(day: DateLike) -> bool:
    return _as_date(day).weekday() >= 5


def weekday_name(day: DateLike) -> str:
    """Lowercase weekday name, e.g. 'friday'."""
    # date.weekday(): Monday=0; WEEKDAY_NAMES starts at Sunday
    return WEEKDAY_NAMES[(_as_date(day).weekday() + 1) % 7]


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp, including the trailing 'Z' form older state files use."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def iter_dates(start: DateLike, end: DateLike) -> List[date]:
    """All calendar dates in [start, end]. Empty if start > end."""
    out = []
    d = _as_date(start)
    last = _as_date(end)
    while d <= last:
        out.append(d)
        d += timedelta(days=1)
    return out


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

def is_non_working_day(state: RotationState, user_id: str, day: DateLike) -> bool:
    """True if `day` is a weekend or a recorded non-working day for `user_id`."""
    if is_weekend(day):
        return True

    entry = state.get_non_working_days(user_id)
    if entry is None:
        return False

    if _as_date(day).isoformat() in entry.specific_dates:
        return True
    return weekday_name(day) in entry.recurring_days


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------

def get_available_engineers(
    state: RotationState,
    roster: Iterable[str],
    start_date: DateLike,
    end_date: DateLike,
) -> List[str]:
    """
    Return the engineers of `roster` (in roster order) who are working on
    every date from start_date to end_date inclusive.
    """
    dates = iter_dates(start_date, end_date)
    available = [
        engineer for engineer in roster
        if all(not is_non_working_day(state, engineer, d) for d in dates)
    ]
    logger.debug(
        f"Availability {dates[0] if dates else start_date}..{end_date}: "
        f"{len(available)} available"
    )
    return available


# ---------------------------------------------------------------------------
# Status filter
# ---------------------------------------------------------------------------

def is_out_of_office(status_text: Optional[str]) -> bool:
    """Case-insensitive substring match of the status text against OOO_KEYWORDS."""
    if not status_text:
        return False
    text = status_text.lower()
    return any(keyword in text for keyword in OOO_KEYWORDS)


def filter_by_status(
    roster: Iterable[str],
    statuses: Mapping[str, Dict[str, str]],
) -> List[str]:
    """Drop engineers whose Slack status marks them out of office."""
    kept = []
    for engineer in roster:
        status = statuses.get(engineer)
        if status and is_out_of_office(status.get("status_text", "")):
            logger.info(f"Excluding {engineer}: status '{status.get('status_text')}'")
            continue
        kept.append(engineer)
    return kept


# ---------------------------------------------------------------------------
# Rotation window / elapsed working days
# ---------------------------------------------------------------------------

def get_rotation_window(today: DateLike, days_per_rotation: int) -> Tuple[date, date]:
    """
    Return (today, end) where end is the date on which `days_per_rotation`
    weekdays after today have been counted.
    """
    start = _as_date(today)
    end = start
    weekdays = 0
    while weekdays < days_per_rotation:
        end += timedelta(days=1)
        if not is_weekend(end):
            weekdays += 1
    return start, end


def count_working_days_since(last_rotation: Optional[DateLike], today: DateLike) -> Optional[int]:
    """
    Weekdays from the day after `last_rotation` through `today` inclusive.
    None when there was no previous rotation.
    """
    if last_rotation is None:
        return None
    return sum(
        1 for d in iter_dates(_as_date(last_rotation) + timedelta(days=1), today)
        if not is_weekend(d)
    )
