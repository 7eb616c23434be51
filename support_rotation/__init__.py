"""
Support Duty Rotation

Modules:
- state: Rotation state model and legacy non-working-day upgrade
- availability: Non-working day resolver, availability filter, status filter
- engine: Rotation selector, commit, skip, force reassign, fairness metrics
- non_working_days: Add / remove / clear engineers' non-working days
- config: Settings, rotation state persistence, roster CSV
- slack_client: Slack Web API integration
- assign / manage_availability: CLI orchestrators
"""

from .state import (
    NonWorkingDays,
    RotationState,
    upgrade_non_working_days,
    WEEKDAY_NAMES,
)

from .availability import (
    is_non_working_day,
    get_available_engineers,
    is_out_of_office,
    filter_by_status,
    get_rotation_window,
    count_working_days_since,
)

from .engine import (
    get_next_engineers,
    update_rotation,
    skip_user,
    force_reassign,
    calculate_fairness_metrics,
)

from .non_working_days import (
    EditResult,
    add_non_working_days,
    remove_non_working_days,
    clear_non_working_days,
)

from .config import (
    Settings,
    get_settings,
    load_rotation_state,
    save_rotation_state,
    load_roster,
    HISTORY_LIMIT,
)

__all__ = [
    "NonWorkingDays",
    "RotationState",
    "upgrade_non_working_days",
    "WEEKDAY_NAMES",
    "is_non_working_day",
    "get_available_engineers",
    "is_out_of_office",
    "filter_by_status",
    "get_rotation_window",
    "count_working_days_since",
    "get_next_engineers",
    "update_rotation",
    "skip_user",
    "force_reassign",
    "calculate_fairness_metrics",
    "EditResult",
    "add_non_working_days",
    "remove_non_working_days",
    "clear_non_working_days",
    "Settings",
    "get_settings",
    "load_rotation_state",
    "save_rotation_state",
    "load_roster",
    "HISTORY_LIMIT",
]
