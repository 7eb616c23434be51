"""
state.py - Rotation State Model

The single persisted aggregate for the support rotation:

  rotationOrder     fixed circular traversal order (shuffled once at bootstrap)
  currentEngineers  engineers currently on duty; last one anchors the next pick
  skipList          one-shot exclusions, cleared when the engineer next serves
  history           last HISTORY_LIMIT commits as {date, engineers}
  lastRotationDate  ISO timestamp of the last commit (None before the first)
  nonWorkingDays    {engineer_id: {specificDates: [...], recurringDays: [...]}}

JSON keys stay camelCase so existing rotation.json files load unchanged.

Schema versions for nonWorkingDays entries:
  legacy      ["2024-01-05", "2024-01-08"]        flat list of dates
  structured  {"specificDates": [...], "recurringDays": [...]}

upgrade_non_working_days() is the one-way upgrade applied at the load boundary.
Writes always use the structured shape.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

# Sunday(0) .. Saturday(6), the order recurring days are stored in
WEEKDAY_NAMES: List[str] = [
    "sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday",
]
WEEKDAY_ORDER: Dict[str, int] = {name: i for i, name in enumerate(WEEKDAY_NAMES)}


@dataclass
class NonWorkingDays:
    """Structured non-working-day entry for one engineer."""

    specific_dates: List[str] = field(default_factory=list)
    recurring_days: List[str] = field(default_factory=list)

    def normalize(self) -> "NonWorkingDays":
        """De-duplicate and sort in place (dates lexically, weekdays Sun..Sat)."""
        self.specific_dates = sorted(set(self.specific_dates))
        self.recurring_days = sorted(
            set(self.recurring_days),
            key=lambda d: WEEKDAY_ORDER.get(d, len(WEEKDAY_ORDER)),
        )
        return self

    def is_empty(self) -> bool:
        return not self.specific_dates and not self.recurring_days

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "specificDates": list(self.specific_dates),
            "recurringDays": list(self.recurring_days),
        }


NonWorkingDaysRaw = Union[NonWorkingDays, List[str], Dict[str, Any]]


def upgrade_non_working_days(raw: NonWorkingDaysRaw) -> NonWorkingDays:
    """
    Upgrade any stored non-working-day shape to NonWorkingDays.

    Accepts:
      - NonWorkingDays (returned as-is)
      - legacy flat list of ISO dates -> specific_dates, no recurring days
      - structured dict with specificDates / recurringDays (either may be missing)
    """
    if isinstance(raw, NonWorkingDays):
        return raw
    if isinstance(raw, (list, tuple)):
        return NonWorkingDays(specific_dates=[str(d) for d in raw], recurring_days=[]).normalize()
    if isinstance(raw, dict):
        return NonWorkingDays(
            specific_dates=[str(d) for d in raw.get("specificDates") or []],
            recurring_days=[str(d).lower() for d in raw.get("recurringDays") or []],
        ).normalize()
    raise TypeError(f"Unsupported non-working-day entry: {raw!r}")


@dataclass
class RotationState:
    """
    Mutable rotation record. One orchestrator owns it per invocation:
    loaded once, mutated by the engine / editor functions, saved once.
    """

    rotation_order: List[str] = field(default_factory=list)
    current_engineers: List[str] = field(default_factory=list)
    skip_list: List[str] = field(default_factory=list)
    history: List[Dict[str, Any]] = field(default_factory=list)
    last_rotation_date: Optional[str] = None
    non_working_days: Dict[str, NonWorkingDaysRaw] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RotationState":
        """Build from the persisted JSON shape, upgrading legacy entries."""
        data = data or {}
        non_working: Dict[str, NonWorkingDaysRaw] = {}
        legacy_count = 0
        for user_id, raw in (data.get("nonWorkingDays") or {}).items():
            if isinstance(raw, list):
                legacy_count += 1
            non_working[user_id] = upgrade_non_working_days(raw)
        if legacy_count:
            logger.info(f"Upgraded {legacy_count} legacy non-working-day entries")

        return cls(
            rotation_order=list(data.get("rotationOrder") or []),
            current_engineers=list(data.get("currentEngineers") or []),
            skip_list=list(data.get("skipList") or []),
            history=copy.deepcopy(list(data.get("history") or [])),
            last_rotation_date=data.get("lastRotationDate"),
            non_working_days=non_working,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rotationOrder": list(self.rotation_order),
            "currentEngineers": list(self.current_engineers),
            "skipList": list(self.skip_list),
            "history": copy.deepcopy(self.history),
            "lastRotationDate": self.last_rotation_date,
            "nonWorkingDays": {
                user_id: upgrade_non_working_days(entry).to_dict()
                for user_id, entry in self.non_working_days.items()
            },
        }

    def get_non_working_days(self, user_id: str) -> Optional[NonWorkingDays]:
        """Read-only structured view of a user's entry (None if absent)."""
        # States built in code may still hold a raw legacy list; reads upgrade
        # a copy and leave the stored entry alone
        raw = self.non_working_days.get(user_id)
        if raw is None:
            return None
        return upgrade_non_working_days(raw)

    def ensure_non_working_days(self, user_id: str) -> NonWorkingDays:
        """Return the user's entry for editing, creating or upgrading it in place."""
        entry = upgrade_non_working_days(self.non_working_days.get(user_id, []))
        self.non_working_days[user_id] = entry
        return entry
