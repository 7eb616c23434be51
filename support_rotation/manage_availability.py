"""
manage_availability.py - Manage engineers' non-working days

Actions (ACTION / --action):
  add_non_working_days, add_recurring_days        add DAYS for USER_ID
  remove_non_working_days, remove_recurring_days  remove DAYS for USER_ID
  clear_non_working_days                          remove USER_ID's entry
  clear_recurring_days                            empty recurring weekdays
  clear_specific_days                             empty specific dates

DAYS is comma separated: "2024-03-01, friday, tue".

When an addition makes today or tomorrow non-working for an engineer who is
currently on support, the rotation is reassigned in the same run. State is
saved once at the end.

Usage:
  python -m support_rotation.manage_availability --action add_non_working_days \
      --user-id U123456 --days 2024-03-01,friday
"""

import argparse
import logging
import os
import random
import sys
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from support_rotation.assign import commit_assignment, get_eligible_roster, make_client
from support_rotation.availability import is_non_working_day, is_weekend
from support_rotation.config import Settings, get_settings, load_rotation_state, save_rotation_state
from support_rotation.engine import get_next_engineers
from support_rotation.non_working_days import (
    add_non_working_days,
    clear_non_working_days,
    remove_non_working_days,
)
from support_rotation.slack_client import SlackClient
from support_rotation.state import RotationState

logger = logging.getLogger(__name__)

ADD_ACTIONS = ("add_non_working_days", "add_recurring_days")
REMOVE_ACTIONS = ("remove_non_working_days", "remove_recurring_days")
CLEAR_ACTIONS = {
    "clear_non_working_days": None,
    "clear_recurring_days": "recurring",
    "clear_specific_days": "specific",
}
ACTIONS = ADD_ACTIONS + REMOVE_ACTIONS + tuple(CLEAR_ACTIONS)

REASSIGN_MESSAGE = "Reassigning support due to non-working days update."


def parse_days(raw: Optional[str]) -> List[str]:
    """Split a comma-separated DAYS value, dropping blanks."""
    if not raw:
        return []
    return [d.strip() for d in raw.split(",") if d.strip()]


def check_and_reassign_if_needed(
    settings: Settings,
    state: RotationState,
    user_id: str,
    today: date,
    client: Optional[SlackClient] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> Optional[List[str]]:
    """
    Reassign support if `user_id` is on duty and today or tomorrow is now a
    non-working day for them. Returns the new engineers, or None.

    Weekend days are not checked; they are non-working for everyone.
    """
    if user_id not in state.current_engineers:
        return None

    days = [d for d in (today, today + timedelta(days=1)) if not is_weekend(d)]
    if not any(is_non_working_day(state, user_id, d) for d in days):
        return None

    logger.info(f"User {user_id} is currently on support but now has a non-working day. Reassigning...")
    available = get_eligible_roster(settings, state, today, client)
    engineers = get_next_engineers(state, available, settings.engineers_per_shift, rng=rng)
    if not engineers:
        logger.warning("No engineers available to take over. Keeping the current assignment.")
        return None
    commit_assignment(settings, state, engineers, REASSIGN_MESSAGE, client, now)
    logger.info(f"Support reassigned to: {', '.join(engineers)}")
    return engineers


def run_manage_availability(
    action: str,
    user_id: str,
    days: Sequence[str] = (),
    settings: Optional[Settings] = None,
    today: Optional[date] = None,
    client: Optional[SlackClient] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Apply one availability action and save the state.

    Returns:
        {state, accepted, rejected, reassigned}
    """
    if not action:
        raise ValueError("ACTION is required")
    if action not in ACTIONS:
        raise ValueError(f"Unknown action: {action}")
    if not user_id:
        raise ValueError("USER_ID is required")
    if action in ADD_ACTIONS + REMOVE_ACTIONS and not days:
        raise ValueError("At least one day must be specified")

    settings = settings or get_settings()
    settings.validate()
    today = today or date.today()

    state = load_rotation_state(settings.data_path)
    result: Dict[str, Any] = {"accepted": [], "rejected": [], "reassigned": None}
    recurring = "recurring " if "recurring" in action else ""

    if action in ADD_ACTIONS:
        edit = add_non_working_days(state, user_id, days)
        result.update(accepted=edit.accepted, rejected=edit.rejected)
        logger.info(f"Added {recurring}non-working days for user {user_id}: {', '.join(edit.accepted)}")
        if client is None:
            client = make_client(settings)
        result["reassigned"] = check_and_reassign_if_needed(
            settings, state, user_id, today, client=client, rng=rng, now=now,
        )
    elif action in REMOVE_ACTIONS:
        edit = remove_non_working_days(state, user_id, days)
        result.update(accepted=edit.accepted, rejected=edit.rejected)
        logger.info(f"Removed {recurring}non-working days for user {user_id}: {', '.join(edit.accepted)}")
    else:
        clear_non_working_days(state, user_id, CLEAR_ACTIONS[action])

    save_rotation_state(state, settings.data_path)
    result["state"] = state
    return result


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(description="Manage engineers' non-working days")
    parser.add_argument("--action",  default=os.getenv("ACTION", ""), help=f"One of: {', '.join(ACTIONS)}")
    parser.add_argument("--user-id", default=os.getenv("USER_ID", ""), help="Slack user ID")
    parser.add_argument("--days",    default=os.getenv("DAYS", ""),
                        help="Comma-separated dates (YYYY-MM-DD) and/or weekday names")
    args = parser.parse_args(argv)

    try:
        run_manage_availability(args.action, args.user_id, parse_days(args.days))
    except Exception:
        logger.exception("Error in non-working days management")
        sys.exit(1)

    logger.info("Non-working days management completed successfully.")


if __name__ == "__main__":
    main()
