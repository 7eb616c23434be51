"""
non_working_days.py - Editing engineers' non-working days

Entries are either ISO dates ("2024-03-01") stored in specificDates, or
weekday names ("friday", "Fri", "THURS") stored as canonical lowercase names
in recurringDays. Anything else is reported back as rejected, never raised.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from support_rotation.config import WEEKDAY_ALIASES
from support_rotation.state import RotationState

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

KIND_DATE = "date"
KIND_WEEKDAY = "weekday"

CLEAR_SCOPES = (None, "specific", "recurring")


@dataclass
class EditResult:
    state: RotationState
    accepted: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)


def normalize_day(day: str) -> Optional[str]:
    """Canonical weekday name for a full name or abbreviation, else None."""
    return WEEKDAY_ALIASES.get(day.strip().lower())


def classify_entry(entry: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Classify one administrative token.

    Returns (KIND_DATE, "YYYY-MM-DD"), (KIND_WEEKDAY, "friday") or (None, None).
    """
    token = str(entry).strip()
    if DATE_PATTERN.match(token):
        return KIND_DATE, token
    day = normalize_day(token)
    if day:
        return KIND_WEEKDAY, day
    return None, None


def add_non_working_days(
    state: RotationState,
    user_id: str,
    entries: Iterable[str],
) -> EditResult:
    """Add dates / recurring weekdays for `user_id`, upgrading a legacy entry first."""
    record = state.ensure_non_working_days(user_id)
    result = EditResult(state=state)

    for entry in entries:
        kind, value = classify_entry(entry)
        if kind == KIND_DATE:
            if value not in record.specific_dates:
                record.specific_dates.append(value)
        elif kind == KIND_WEEKDAY:
            if value not in record.recurring_days:
                record.recurring_days.append(value)
        else:
            result.rejected.append(entry)
            continue
        result.accepted.append(value)

    record.normalize()
    if result.rejected:
        logger.warning(f"Ignored unrecognised non-working day entries for {user_id}: {result.rejected}")
    logger.info(f"Non-working days for {user_id}: {record.to_dict()}")
    return result


def remove_non_working_days(
    state: RotationState,
    user_id: str,
    entries: Iterable[str],
) -> EditResult:
    """Remove dates / recurring weekdays for `user_id`. Absent values are a no-op."""
    result = EditResult(state=state)
    record = None
    if user_id in state.non_working_days:
        record = state.ensure_non_working_days(user_id)

    for entry in entries:
        kind, value = classify_entry(entry)
        if kind is None:
            result.rejected.append(entry)
            continue
        result.accepted.append(value)
        if record is None:
            continue
        if kind == KIND_DATE:
            record.specific_dates = [d for d in record.specific_dates if d != value]
        else:
            record.recurring_days = [d for d in record.recurring_days if d != value]

    if result.rejected:
        logger.warning(f"Ignored unrecognised non-working day entries for {user_id}: {result.rejected}")
    return result


def clear_non_working_days(
    state: RotationState,
    user_id: str,
    scope: Optional[str] = None,
) -> RotationState:
    """
    Clear a user's non-working days.

    scope=None removes the whole entry; "specific" empties the dates;
    "recurring" empties the weekdays.
    """
    if scope not in CLEAR_SCOPES:
        raise ValueError(f"Unknown scope {scope!r}; expected one of {CLEAR_SCOPES}")
    if user_id not in state.non_working_days:
        return state

    if scope is None:
        del state.non_working_days[user_id]
        logger.info(f"Cleared all non-working days for {user_id}")
        return state

    record = state.ensure_non_working_days(user_id)
    if scope == "specific":
        record.specific_dates = []
    else:
        record.recurring_days = []
    logger.info(f"Cleared {scope} non-working days for {user_id}")
    return state
