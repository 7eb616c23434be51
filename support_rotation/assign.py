"""
assign.py - Support Rotation Orchestrator

Full cycle:
  1. Load settings and rotation state
  2. Build the roster (Slack user group, roster CSV, or rotation order)
  3. Drop out-of-office statuses, then engineers with non-working days in
     the rotation window
  4. Select, announce, commit
  5. Save state once

Actions:
  assign          rotate when DAYS_PER_ROTATION weekdays have passed
  force_reassign  rotate now, preferring a different set of engineers
  skip            skip USER_ID's next turn
  report          export history CSV / Excel / fairness report

Usage:
  python -m support_rotation.assign
  python -m support_rotation.assign --action force_reassign
  python -m support_rotation.assign --action skip --user-id U123456
  python -m support_rotation.assign --action report --output-dir outputs/
"""

import argparse
import logging
import os
import random
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from support_rotation.availability import (
    count_working_days_since,
    filter_by_status,
    get_available_engineers,
    get_rotation_window,
    is_weekend,
    iter_dates,
    parse_timestamp,
)
from support_rotation.config import (
    DEFAULT_ENGINEERS,
    DEFAULT_OUTPUTS_DIR,
    Settings,
    get_settings,
    load_roster,
    load_roster_names,
    load_rotation_state,
    save_rotation_state,
)
from support_rotation.engine import (
    calculate_fairness_metrics,
    force_reassign,
    get_next_engineers,
    skip_user,
    update_rotation,
)
from support_rotation.exporter import (
    export_assignment_chart,
    export_fairness_report,
    export_history_csv,
    export_history_excel,
)
from support_rotation.slack_client import SlackClient, log_support_assignment
from support_rotation.state import RotationState

logger = logging.getLogger(__name__)

ACTIONS = ("assign", "force_reassign", "skip", "report")

REASSIGNED_MESSAGE = "Support duty has been reassigned."


# ---------------------------------------------------------------------------
# Shared orchestration steps
# ---------------------------------------------------------------------------

def make_client(settings: Settings) -> Optional[SlackClient]:
    if not settings.slack_enabled:
        return None
    return SlackClient(settings.slack_token, timeout=settings.slack_timeout)


def resolve_roster(
    settings: Settings,
    state: RotationState,
    client: Optional[SlackClient] = None,
) -> Tuple[List[str], Dict[str, Dict[str, Any]]]:
    """Return (engineers, statuses) from Slack, or a local fallback when Slack is off."""
    if client is not None:
        engineers = client.get_usergroup_members(settings.usergroup_id)
        statuses = client.get_user_statuses(engineers)
        return engineers, statuses

    logger.info("Slack is disabled. Using local roster.")
    if settings.roster_path.exists():
        return load_roster(settings.roster_path), {}
    if state.rotation_order:
        return list(state.rotation_order), {}
    return list(DEFAULT_ENGINEERS), {}


def get_eligible_roster(
    settings: Settings,
    state: RotationState,
    today: date,
    client: Optional[SlackClient] = None,
) -> List[str]:
    """
    Roster after the status filter and the non-working-day filter.

    Availability is checked on each weekday of the rotation window. Weekends
    are non-working for everyone, so a window spanning one would otherwise
    exclude the whole roster.
    """
    engineers, statuses = resolve_roster(settings, state, client)
    status_filtered = filter_by_status(engineers, statuses)
    start, end = get_rotation_window(today, settings.days_per_rotation)
    available = status_filtered
    for day in iter_dates(start, end):
        if not is_weekend(day):
            available = get_available_engineers(state, available, day, day)
    logger.info(
        f"Roster {len(engineers)} → {len(status_filtered)} after status → "
        f"{len(available)} available {start}..{end}"
    )
    return available


def announce(
    settings: Settings,
    engineers: Sequence[str],
    message: Optional[str] = None,
    client: Optional[SlackClient] = None,
) -> None:
    if client is not None:
        client.post_support_assignment(
            settings.channel_id, engineers, message, settings.days_per_rotation,
        )
    else:
        log_support_assignment(engineers, message, settings.days_per_rotation)


def commit_assignment(
    settings: Settings,
    state: RotationState,
    engineers: Sequence[str],
    message: Optional[str] = None,
    client: Optional[SlackClient] = None,
    now: Optional[datetime] = None,
) -> RotationState:
    """Announce first, then record; a failed announcement leaves state untouched."""
    announce(settings, engineers, message, client)
    return update_rotation(state, engineers, now=now)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

def _no_engineers(**details) -> Dict[str, Any]:
    logger.warning("No engineers available for the rotation window. Keeping the current assignment.")
    return {"rotated": False, "reason": "no_engineers", **details}


def _assign(settings, state, today, client, rng, now) -> Dict[str, Any]:
    last = parse_timestamp(state.last_rotation_date) if state.last_rotation_date else None
    days_since = count_working_days_since(last, today)

    if days_since is not None and days_since < settings.days_per_rotation:
        logger.info(f"Not time for rotation yet. Days since last rotation: {days_since}")
        return {"rotated": False, "reason": "not_due", "days_since": days_since}

    logger.info("Time for a new rotation.")
    if is_weekend(today):
        logger.info("Today is a weekend day. Skipping rotation until next weekday.")
        return {"rotated": False, "reason": "weekend", "days_since": days_since}

    available = get_eligible_roster(settings, state, today, client)
    engineers = get_next_engineers(state, available, settings.engineers_per_shift, rng=rng)
    if not engineers:
        return _no_engineers(days_since=days_since)
    commit_assignment(settings, state, engineers, None, client, now)
    logger.info(f"New support assignment: {', '.join(engineers)}")
    return {"rotated": True, "engineers": engineers, "days_since": days_since}


def _force_reassign(settings, state, today, client, rng, now) -> Dict[str, Any]:
    logger.info("Forcing support reassignment.")
    available = get_eligible_roster(settings, state, today, client)
    engineers = force_reassign(state, available, settings.engineers_per_shift, rng=rng)
    if not engineers:
        return _no_engineers()
    commit_assignment(settings, state, engineers, REASSIGNED_MESSAGE, client, now)
    logger.info(f"Support reassigned to: {', '.join(engineers)}")
    return {"rotated": True, "engineers": engineers}


def _skip(state, user_id) -> Dict[str, Any]:
    if not user_id:
        raise ValueError("USER_ID is required for the skip action")
    skip_user(state, user_id)
    if user_id in state.current_engineers:
        logger.info(f"{user_id} is on duty now; the skip applies from the next rotation")
    return {"rotated": False, "skipped": user_id}


def _report(settings, state, today, output_dir: Path, visual: bool) -> Dict[str, Any]:
    output_dir = Path(output_dir)
    prefix = f"rotation_{today.isoformat()}"
    names = load_roster_names(settings.roster_path)
    metrics = calculate_fairness_metrics(state.history, state.rotation_order or None)

    outputs = {
        "csv":    output_dir / f"{prefix}_history.csv",
        "excel":  output_dir / f"{prefix}_history.xlsx",
        "report": output_dir / f"{prefix}_fairness_report.txt",
    }
    export_history_csv(state.history, outputs["csv"])
    export_history_excel(state.history, outputs["excel"], names=names)
    report_text = export_fairness_report(
        metrics, outputs["report"], names=names,
        current_engineers=state.current_engineers, skip_list=state.skip_list,
    )
    if visual:
        outputs["chart"] = output_dir / f"{prefix}_assignments.png"
        export_assignment_chart(metrics, outputs["chart"], names=names)

    print(report_text)
    return {"rotated": False, "metrics": metrics, "outputs": outputs}


# ---------------------------------------------------------------------------
# Main orchestrator
# ---------------------------------------------------------------------------

def run_rotation(
    action: str = "assign",
    settings: Optional[Settings] = None,
    today: Optional[date] = None,
    user_id: Optional[str] = None,
    client: Optional[SlackClient] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
    output_dir: Path = DEFAULT_OUTPUTS_DIR,
    visual: bool = False,
) -> Dict[str, Any]:
    """
    Run one rotation action end to end.

    Args:
        action:     One of ACTIONS.
        settings:   Defaults to get_settings() (environment).
        today:      Defaults to date.today().
        user_id:    Engineer for the skip action.
        client:     Slack client; built from settings when Slack is enabled.
        rng:        Randomness for rotation-order shuffles.
        now:        Commit timestamp (defaults to the current UTC time).
        output_dir: Report output directory.
        visual:     Also write the assignment chart for the report action.

    Returns:
        Dict with 'rotated', 'engineers' (when rotated) and action details.
        State is saved only when something changed.
    """
    if action not in ACTIONS:
        raise ValueError(f"Unknown action: {action}. Expected one of {ACTIONS}")

    settings = settings or get_settings()
    today = today or date.today()

    state = load_rotation_state(settings.data_path)

    if action == "report":
        return _report(settings, state, today, output_dir, visual)

    settings.validate()

    if client is None:
        client = make_client(settings)

    if action == "assign":
        result = _assign(settings, state, today, client, rng, now)
    elif action == "force_reassign":
        result = _force_reassign(settings, state, today, client, rng, now)
    else:
        result = _skip(state, user_id)

    if result.get("rotated") or action == "skip":
        save_rotation_state(state, settings.data_path)

    result["state"] = state
    return result


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(description="Support rotation: assign engineers to support duty")
    parser.add_argument("--action",     default=os.getenv("ACTION") or "assign", choices=ACTIONS)
    parser.add_argument("--user-id",    default=os.getenv("USER_ID") or None, help="Engineer for --action skip")
    parser.add_argument("--output-dir", default=None, help="Report directory (default: outputs/)")
    parser.add_argument("--visual",     action="store_true", help="Write an assignment chart with the report")
    args = parser.parse_args(argv)

    try:
        run_rotation(
            action=args.action,
            user_id=args.user_id,
            output_dir=Path(args.output_dir) if args.output_dir else DEFAULT_OUTPUTS_DIR,
            visual=args.visual,
        )
    except Exception:
        logger.exception("Error in support rotation")
        sys.exit(1)

    logger.info("Support rotation process completed successfully.")


if __name__ == "__main__":
    main()
